from typing import Any, Dict

from contract_client.auth.errors import (
    ApiError,
    InvalidCredentials,
    RegistrationFailed,
)
from contract_client.auth.model import RefreshResponse, TokenResponse
from contract_client.common.log import logger
from contract_client.integrations.api.transport import AuthenticatedTransport


class AuthApi:
    """领域 API 的认证接口"""

    LOGIN_PATH = "/token/"
    REFRESH_PATH = "/token/refresh/"
    REGISTER_PATH = "/register/"

    def __init__(self, transport: AuthenticatedTransport):
        self.transport = transport

    async def login(self, email: str, password: str) -> TokenResponse:
        """用户登录（邮箱 + 密码），返回用户资料与令牌对"""
        try:
            resp = await self.transport.post(
                self.LOGIN_PATH,
                json={"email": email, "password": password},
                authenticate=False,
            )
        except ApiError as e:
            logger.error(f"用户登录失败: {email}: {e}")
            raise InvalidCredentials(
                e.status_code, e.detail or "邮箱或密码错误", e.payload
            ) from e

        try:
            return TokenResponse.model_validate(resp.json())
        except ValueError as e:
            raise InvalidCredentials(resp.status_code, "登录响应格式错误") from e

    async def register(self, email: str, password: str) -> Dict[str, Any]:
        """用户注册；注册成功不代表已登录"""
        try:
            resp = await self.transport.post(
                self.REGISTER_PATH,
                json={"email": email, "password": password},
                authenticate=False,
            )
        except ApiError as e:
            logger.error(f"用户注册失败: {email}: {e}")
            raise RegistrationFailed(
                e.status_code, e.detail or "注册失败", e.payload
            ) from e

        logger.info(f"用户注册成功: {email}")
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def refresh_token(self, refresh: str) -> RefreshResponse:
        """用刷新令牌换取新的访问令牌"""
        resp = await self.transport.post(
            self.REFRESH_PATH,
            json={"refresh": refresh},
            authenticate=False,
        )
        try:
            return RefreshResponse.model_validate(resp.json())
        except ValueError as e:
            raise ApiError(resp.status_code, "刷新响应格式错误") from e
