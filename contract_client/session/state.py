from __future__ import annotations

from typing import Callable, List, Optional

from contract_client.auth.model import SessionSnapshot, UserProfile
from contract_client.common.log import logger

Listener = Callable[[SessionSnapshot], None]


class SessionState:
    """内存中的登录态：当前用户 + 启动加载标记，可被 UI 订阅"""

    def __init__(self) -> None:
        self._user: Optional[UserProfile] = None
        self._loading: bool = True
        self._listeners: List[Listener] = []

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def loading(self) -> bool:
        return self._loading

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(user=self._user, loading=self._loading)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册监听器，返回取消订阅函数"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_user(self, user: Optional[UserProfile]) -> None:
        self._user = user
        self._notify()

    def set_loading(self, loading: bool) -> None:
        if self._loading == loading:
            return
        self._loading = loading
        self._notify()

    def _notify(self) -> None:
        # 同步通知，保证路由守卫在下一次检查前看到新状态
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("会话状态监听器执行失败")
