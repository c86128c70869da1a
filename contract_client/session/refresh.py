from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

from contract_client.auth.errors import (
    ApiError,
    NetworkUnavailable,
    RefreshFailed,
    RefreshFailureReason,
    StorageUnavailable,
)
from contract_client.auth.model import RefreshResponse
from contract_client.common.log import logger
from contract_client.session.store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    CredentialStore,
)


class RefreshCoordinator:
    """刷新协调器：单飞地用刷新令牌换取新的访问令牌，并负责定时刷新

    定时刷新与 401 触发的被动刷新都走 ensure_fresh()，同一时刻最多只有一次交换在进行，
    其余调用方等待同一个结果。
    """

    def __init__(
        self,
        store: CredentialStore,
        exchange: Callable[[str], Awaitable[RefreshResponse]],
        on_expired: Callable[[str], None],
        is_logged_in: Callable[[], bool],
        refresh_interval: int,
    ):
        self.store = store
        self.refresh_interval = refresh_interval
        self._exchange = exchange
        self._on_expired = on_expired
        self._is_logged_in = is_logged_in
        self._inflight: Optional[asyncio.Task[str]] = None
        self._timer: Optional[asyncio.Task[None]] = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def ensure_fresh(self) -> str:
        """返回新的访问令牌；失败时强制登出并抛出 RefreshFailed"""
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._run_exchange())
            self._inflight = task
        # shield：某个等待方被取消时不影响交换本身及其他等待方
        return await asyncio.shield(task)

    async def _run_exchange(self) -> str:
        refresh_token: Optional[str] = None
        try:
            refresh_token = self.store.get(REFRESH_TOKEN_KEY)
            if not refresh_token:
                raise RefreshFailed(RefreshFailureReason.NO_REFRESH_TOKEN)

            try:
                result = await self._exchange(refresh_token)
            except NetworkUnavailable as e:
                raise RefreshFailed(RefreshFailureReason.NETWORK) from e
            except ApiError as e:
                raise RefreshFailed(
                    RefreshFailureReason.EXCHANGE_REJECTED, str(e)
                ) from e

            if self._session_changed(refresh_token):
                # 交换期间会话已登出或被替换，本次结果作废
                logger.warning("刷新期间会话已变更，丢弃本次刷新结果")
                current = self.store.get(ACCESS_TOKEN_KEY)
                if current:
                    return current
                raise RefreshFailed(RefreshFailureReason.NO_REFRESH_TOKEN)

            values = {ACCESS_TOKEN_KEY: result.access}
            if result.refresh:
                values[REFRESH_TOKEN_KEY] = result.refresh
            self.store.update(values)
            logger.info(
                "访问令牌刷新成功" + ("（刷新令牌已轮换）" if result.refresh else "")
            )
            return result.access
        except (RefreshFailed, StorageUnavailable) as e:
            if refresh_token and self._session_changed(refresh_token):
                # 失败属于已结束的会话，不能登出替换它的新会话
                logger.warning(f"过期会话的令牌刷新失败，已忽略: {e}")
            else:
                logger.error(f"令牌刷新失败: {e}")
                self._on_expired(f"refresh_failed: {e}")
            raise
        finally:
            self._inflight = None

    def _session_changed(self, refresh_token: str) -> bool:
        try:
            return self.store.get(REFRESH_TOKEN_KEY) != refresh_token
        except StorageUnavailable:
            return False

    def start(self) -> None:
        """启动定时刷新任务；已在运行时不重复创建"""
        if self.refresh_interval <= 0:
            return
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    async def stop(self) -> None:
        """停止定时刷新任务"""
        timer = self._timer
        self._timer = None
        if timer is None or timer.done():
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer

    async def drain(self) -> None:
        """等待进行中的交换落定（不取消，避免丢失服务端轮换的刷新令牌）"""
        task = self._inflight
        if task is not None:
            await asyncio.wait([task])

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.tick()

    async def tick(self) -> None:
        """定时器回调：已登录时刷新一次"""
        # 未登录时跳过，登录后下一次 tick 自动恢复
        if not self._is_logged_in():
            return
        try:
            await self.ensure_fresh()
        except (RefreshFailed, StorageUnavailable) as e:
            # 失败时已强制登出
            logger.warning(f"定时刷新任务失败: {e}")
