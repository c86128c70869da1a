from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from contract_client.auth.errors import (
    ApiError,
    AuthExpiredFinal,
    NetworkUnavailable,
    RefreshFailed,
    StorageUnavailable,
    Unauthorized,
)
from contract_client.common.log import logger
from contract_client.session.store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    CredentialStore,
)

# 单个请求因 401 最多重放一次
MAX_AUTH_RETRIES = 1


def error_detail(response: httpx.Response, default: str = "") -> str:
    """从错误响应中提取 detail 字段"""
    try:
        body = response.json()
    except ValueError:
        return response.text or default
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return str(detail)
    return default or response.reason_phrase


class AuthenticatedTransport:
    """鉴权请求管线：附加访问令牌，401 时刷新并重放一次，无法恢复时强制登出"""

    def __init__(
        self,
        store: CredentialStore,
        base_url: str,
        refresh_path: str,
        ensure_fresh: Optional[Callable[[], Awaitable[str]]] = None,
        on_expired: Optional[Callable[[str], None]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.refresh_path = refresh_path
        self._ensure_fresh = ensure_fresh
        self._on_expired = on_expired or (lambda _reason: None)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def is_refresh_endpoint(self, url: str) -> bool:
        path = httpx.URL(url).path
        return path.rstrip("/").endswith(self.refresh_path.rstrip("/"))

    async def request(
        self,
        method: str,
        url: str,
        *,
        authenticate: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """发送请求并返回 2xx 响应

        authenticate=False 用于登录/注册/刷新等凭据接口：不附加令牌，401 不触发刷新。
        """
        retries = 0
        # 记录发起请求时的会话，过期登出只作用于同一会话
        marker = self._session_marker()
        while True:
            response = await self._send(method, url, authenticate, **kwargs)
            if response.status_code != httpx.codes.UNAUTHORIZED:
                return self._raise_for_status(response)

            detail = error_detail(response, "未授权")

            # 刷新接口自身 401：直接登出，避免刷新死循环
            if self.is_refresh_endpoint(url):
                logger.error("刷新接口返回 401，强制登出")
                self._expire("refresh_rejected", marker)
                raise Unauthorized(response.status_code, detail)

            if not authenticate:
                return self._raise_for_status(response)

            if retries >= MAX_AUTH_RETRIES:
                logger.error(f"重放后仍未授权: {method} {url}")
                self._expire("auth_expired", marker)
                raise AuthExpiredFinal(response.status_code, detail)

            if self._ensure_fresh is None:
                self._expire("auth_expired", marker)
                raise Unauthorized(response.status_code, detail)

            retries += 1
            logger.info(f"请求未授权，尝试刷新令牌后重放: {method} {url}")
            try:
                await self._ensure_fresh()
            except (RefreshFailed, StorageUnavailable) as e:
                # 刷新失败时协调器已强制登出，这里向调用方抛出原始 401
                raise Unauthorized(response.status_code, detail) from e
            # 刷新可能轮换了刷新令牌
            marker = self._session_marker()

    def _session_marker(self) -> Optional[str]:
        try:
            return self.store.get(REFRESH_TOKEN_KEY)
        except StorageUnavailable:
            return None

    def _expire(self, reason: str, marker: Optional[str]) -> None:
        if self._session_marker() != marker:
            logger.warning(f"请求发起后会话已被替换，不再强制登出: {reason}")
            return
        self._on_expired(reason)

    async def _send(
        self,
        method: str,
        url: str,
        authenticate: bool,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(headers or {})
        if authenticate:
            # 发送时实时读取，保证使用刷新后的令牌
            try:
                token = self.store.get(ACCESS_TOKEN_KEY)
            except StorageUnavailable:
                self._on_expired("storage_unavailable")
                raise
            if token:
                headers["Authorization"] = f"Bearer {token}"
        try:
            return await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"网络错误: {method} {url}: {e}")
            raise NetworkUnavailable() from e

    def _raise_for_status(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        try:
            payload: Any = response.json()
        except ValueError:
            payload = None
        raise ApiError(response.status_code, error_detail(response), payload)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
