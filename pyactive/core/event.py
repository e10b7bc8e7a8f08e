"""
Pyactive 模型事件钩子系统

提供轻量级事件回调机制，在记录的生命周期节点触发。

Model 级事件：
- before_insert / after_insert
- before_update / after_update
- before_delete / after_delete
- retrieved（从查询结果实例化之后）

使用方式：
    from pyactive import event

    # 装饰器注册
    @event.listens_for(User, 'before_insert')
    def set_slug(instance):
        instance.slug = slugify(instance.name)

    # 函数式注册
    event.listen(User, 'after_update', audit_changes)

    # 移除监听器
    event.remove(User, 'before_insert', set_slug)
"""

from typing import Any, Callable, Dict, List, Set, Tuple


# 有效的事件名称
MODEL_EVENTS: Set[str] = {
    'before_insert', 'after_insert',
    'before_update', 'after_update',
    'before_delete', 'after_delete',
    'retrieved',
}


class EventManager:
    """
    事件管理器

    全局单例，管理所有 Model 级事件监听器。
    监听器注册在基类上时，对所有子类生效。
    """

    def __init__(self) -> None:
        # {(model_class, event_name): [callbacks]}
        self._listeners: Dict[Tuple[type, str], List[Callable[..., Any]]] = {}

    def listen(self, target: type, event_name: str, fn: Callable[..., Any]) -> None:
        """
        注册事件监听器

        Args:
            target: 模型类
            event_name: 事件名称
            fn: 回调函数，接收模型实例
        """
        if event_name not in MODEL_EVENTS:
            raise ValueError(
                f"Unknown event: '{event_name}'. "
                f"Valid events: {', '.join(sorted(MODEL_EVENTS))}"
            )
        self._listeners.setdefault((target, event_name), []).append(fn)

    def listens_for(self, target: type, event_name: str) -> Callable[..., Any]:
        """
        装饰器方式注册事件监听器

        Args:
            target: 模型类
            event_name: 事件名称

        Returns:
            装饰器函数
        """
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.listen(target, event_name, fn)
            return fn
        return decorator

    def remove(self, target: type, event_name: str, fn: Callable[..., Any]) -> None:
        """移除事件监听器"""
        listeners = self._listeners.get((target, event_name), [])
        if fn in listeners:
            listeners.remove(fn)

    def contains(self, target: type, event_name: str, fn: Callable[..., Any]) -> bool:
        return fn in self._listeners.get((target, event_name), [])

    def dispatch(self, model_class: type, event_name: str, instance: Any) -> None:
        """
        分发 Model 级事件

        按 MRO 顺序调用模型类及其基类上注册的监听器。

        Args:
            model_class: 模型类
            event_name: 事件名称
            instance: 模型实例
        """
        for klass in model_class.__mro__:
            for fn in list(self._listeners.get((klass, event_name), [])):
                fn(instance)

    def clear(self, target: Any = None) -> None:
        """
        清除监听器

        Args:
            target: None 清除所有，模型类清除该模型的
        """
        if target is None:
            self._listeners.clear()
            return
        for key in [k for k in self._listeners if k[0] is target]:
            del self._listeners[key]


# 全局单例
event = EventManager()
