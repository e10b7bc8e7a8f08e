"""
Pyactive 配置选项 dataclass 定义

该模块定义了连接器的配置选项，替代 **kwargs 参数。
"""
from dataclasses import dataclass
from typing import Optional, Union, Dict


@dataclass(slots=True)
class SqliteConnectorOptions:
    """SQLite 连接器配置选项"""
    check_same_thread: bool = True  # 检查同一线程
    timeout: Optional[float] = None  # 连接超时时间
    isolation_level: Optional[str] = None  # 事务隔离级别（None 为自动提交）
    foreign_keys: bool = False  # 是否启用 PRAGMA foreign_keys


# Connector 选项联合类型
ConnectorOptions = Union[SqliteConnectorOptions]


def get_default_connector_options(db_type: str) -> ConnectorOptions:
    """根据连接器类型返回默认选项"""
    defaults: Dict[str, ConnectorOptions] = {
        'sqlite': SqliteConnectorOptions()
    }
    return defaults.get(db_type, SqliteConnectorOptions())
