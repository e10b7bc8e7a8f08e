"""
Pyactive 异常定义
"""

from typing import Any, Optional


class PyactiveException(Exception):
    """Pyactive 基础异常类"""


class MassAssignmentError(PyactiveException):
    """批量赋值异常（未配置 __fillable__ 且处于保护模式）"""
    def __init__(self, model_name: str, key: str):
        self.model_name = model_name
        self.key = key
        super().__init__(
            f"Cannot mass assign '{key}' on {model_name}: define __fillable__ "
            f"or set __protect_fields__ = False"
        )


class ModelError(PyactiveException):
    """模型操作异常（如空列集合的 create/update）"""


class DatabaseError(PyactiveException):
    """数据库异常（连接层失败或未返回自增主键）"""


class RecordNotFoundError(PyactiveException):
    """记录不存在异常"""
    def __init__(self, model_name: str, key: Any = None):
        self.model_name = model_name
        self.key = key
        if key is None:
            message = f"{model_name} was not found"
        else:
            message = f"{model_name} with primary key '{key}' was not found"
        super().__init__(message)


class LogicError(PyactiveException):
    """关系声明或解析逻辑错误"""


class MissingMorphTypeError(LogicError):
    """多态反向关联的类型列为空（记录没有所属对象）"""
    def __init__(self, model_name: str, relation: str, type_column: str):
        self.model_name = model_name
        self.relation = relation
        self.type_column = type_column
        super().__init__(f"Cannot resolve '{relation}' on {model_name}: '{type_column}' is empty")


class KindNotFoundError(LogicError):
    """多态类型标记无法映射到已注册的模型类"""
    def __init__(self, tag: str, namespace: Optional[str] = None):
        self.tag = tag
        self.namespace = namespace
        where = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"No model registered for type '{tag}'{where}")


class ConfigurationError(PyactiveException):
    """配置错误（如模型未绑定连接）"""
