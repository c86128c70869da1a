from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import httpx

from contract_client.auth.errors import RefreshFailed, StorageUnavailable
from contract_client.auth.model import (
    SessionSnapshot,
    TokenResponse,
    UserCredentials,
    UserProfile,
)
from contract_client.common.app_settings import AppSettings, settings
from contract_client.common.log import logger
from contract_client.integrations.api.auth import AuthApi
from contract_client.integrations.api.transport import AuthenticatedTransport
from contract_client.session.refresh import RefreshCoordinator
from contract_client.session.state import Listener, SessionState
from contract_client.session.store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    CredentialStore,
    FileCredentialStore,
)

RedirectListener = Callable[[str], None]


class Session:
    """会话门面：负责登录态的建立、恢复、登出，以及鉴权管线的装配

    生命周期：create()/bootstrap() 启动，teardown() 停止定时刷新并关闭连接。
    UI 协作方通过 subscribe() 观察登录态，通过 on_redirect() 接收强制登出后的跳转。
    """

    def __init__(
        self,
        store: CredentialStore,
        config: AppSettings = settings,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.state = SessionState()
        self.login_path = config.login_path
        self._redirect_listeners: List[RedirectListener] = []
        self._verify_task: Optional[asyncio.Task[None]] = None
        self._bootstrapped = False

        self.transport = AuthenticatedTransport(
            store,
            base_url=config.api_url,
            refresh_path=AuthApi.REFRESH_PATH,
            ensure_fresh=lambda: self.refresher.ensure_fresh(),
            on_expired=self.force_sign_out,
            timeout=config.http_timeout,
            transport=http_transport,
        )
        self.auth_api = AuthApi(self.transport)
        self.refresher = RefreshCoordinator(
            store,
            exchange=self.auth_api.refresh_token,
            on_expired=self.force_sign_out,
            is_logged_in=lambda: self.state.user is not None,
            refresh_interval=config.refresh_interval,
        )

    @classmethod
    async def create(
        cls,
        store: Optional[CredentialStore] = None,
        config: AppSettings = settings,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Session":
        session = cls(
            store or FileCredentialStore(config.credential_file),
            config=config,
            http_transport=http_transport,
        )
        await session.bootstrap()
        return session

    async def __aenter__(self) -> "Session":
        await self.bootstrap()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()

    @property
    def current_user(self) -> Optional[UserProfile]:
        return self.state.user

    @property
    def is_loading(self) -> bool:
        return self.state.loading

    def snapshot(self) -> SessionSnapshot:
        return self.state.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.state.subscribe(listener)

    def on_redirect(self, listener: RedirectListener) -> Callable[[], None]:
        """订阅强制登出后的跳转事件，参数为登录入口路径"""
        self._redirect_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._redirect_listeners:
                self._redirect_listeners.remove(listener)

        return unsubscribe

    async def bootstrap(self) -> None:
        """启动时从缓存恢复登录态，后台校验令牌，不阻塞就绪"""
        if self._bootstrapped:
            return
        self._bootstrapped = True
        try:
            user = self._load_cached_user()
            if user is not None:
                self.state.set_user(user)
                self._verify_task = asyncio.get_running_loop().create_task(
                    self._verify()
                )
        finally:
            self.state.set_loading(False)
        self.refresher.start()

    def _load_cached_user(self) -> Optional[UserProfile]:
        try:
            raw = self.store.get(USER_KEY)
            if not raw:
                return None
            if not self.store.get(REFRESH_TOKEN_KEY):
                logger.warning("缓存的用户资料缺少刷新令牌，已清理")
                self.sign_out()
                return None
        except StorageUnavailable as e:
            logger.error(f"加载持久化会话失败: {e}")
            self.sign_out()
            return None

        try:
            return UserProfile.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"缓存的用户资料无法解析，已清理: {e}")
            self.sign_out()
            return None

    async def _verify(self) -> None:
        try:
            await self.refresher.ensure_fresh()
        except (RefreshFailed, StorageUnavailable) as e:
            logger.warning(f"启动校验失败，已登出: {e}")

    async def sign_in(self, email: str, password: str) -> UserProfile:
        """登录成功后原子地写入资料与令牌对，并更新登录态"""
        result = await self.auth_api.login(email, password)
        self._persist(result)
        logger.info(f"用户登录成功: {result.user.email}")
        return result.user

    async def sign_up(self, credentials: UserCredentials) -> UserProfile:
        """注册后显式调用一次登录，以登录接口签发的令牌建立会话"""
        await self.auth_api.register(credentials.email, credentials.password)
        return await self.sign_in(credentials.email, credentials.password)

    def _persist(self, result: TokenResponse) -> None:
        try:
            self.store.update(
                {
                    USER_KEY: result.user.model_dump_json(exclude_none=True),
                    ACCESS_TOKEN_KEY: result.access,
                    REFRESH_TOKEN_KEY: result.refresh,
                }
            )
        except StorageUnavailable:
            self.force_sign_out("storage_unavailable")
            raise
        self.state.set_user(result.user)

    def sign_out(self) -> None:
        """清空登录态与全部凭据；不会失败，可重复调用"""
        try:
            self.store.clear()
        except StorageUnavailable as e:
            logger.error(f"清理凭据失败: {e}")
        self.state.set_user(None)
        logger.info("用户已登出")

    def force_sign_out(self, reason: str) -> None:
        """不可恢复的鉴权失败：登出并通知 UI 跳转到登录入口"""
        had_session = self.state.user is not None or not self._store_is_empty()
        self.sign_out()
        if not had_session:
            return
        logger.warning(f"强制登出: {reason}")
        for listener in list(self._redirect_listeners):
            try:
                listener(self.login_path)
            except Exception:
                logger.exception("跳转监听器执行失败")

    def _store_is_empty(self) -> bool:
        try:
            return self.store.is_empty()
        except StorageUnavailable:
            return False

    async def teardown(self) -> None:
        """停止定时刷新，等待进行中的刷新落定后关闭连接"""
        await self.refresher.stop()
        task = self._verify_task
        self._verify_task = None
        if task is not None and not task.done():
            # _verify 自行处理刷新失败，这里只等待结束
            await asyncio.wait([task])
        await self.refresher.drain()
        await self.transport.aclose()
