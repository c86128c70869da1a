"""客户端异常体系。

    ContractClientError
    +-- StorageUnavailable      凭据存储读写失败
    +-- NetworkUnavailable      请求未得到任何响应
    +-- StorageError            对象存储调用失败
    +-- RefreshFailed           刷新令牌交换失败（附带 reason）
    +-- ApiError                非 2xx 响应
        +-- InvalidCredentials  登录被拒绝
        +-- RegistrationFailed  注册被拒绝（重复邮箱、校验失败等）
        +-- Unauthorized        401 且刷新未能挽回
            +-- AuthExpiredFinal  重放后仍为 401
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ContractClientError(Exception):
    """所有客户端异常的基类"""


class StorageUnavailable(ContractClientError):
    """凭据存储不可用（IO / 配额错误）"""


class NetworkUnavailable(ContractClientError):
    """网络不可用：请求没有得到响应"""

    def __init__(self, message: str = "网络错误，请检查网络连接"):
        super().__init__(message)


class StorageError(ContractClientError):
    """对象存储调用失败"""


class RefreshFailureReason(str, Enum):
    NO_REFRESH_TOKEN = "no_refresh_token"
    EXCHANGE_REJECTED = "exchange_rejected"
    NETWORK = "network"


class RefreshFailed(ContractClientError):
    def __init__(self, reason: RefreshFailureReason, message: str = ""):
        self.reason = reason
        super().__init__(message or f"令牌刷新失败: {reason.value}")


class ApiError(ContractClientError):
    """服务端返回非 2xx 响应"""

    def __init__(
        self,
        status_code: int,
        detail: str = "",
        payload: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.detail = detail
        self.payload = payload
        super().__init__(f"[{status_code}] {detail}" if detail else f"[{status_code}]")


class InvalidCredentials(ApiError):
    pass


class RegistrationFailed(ApiError):
    pass


class Unauthorized(ApiError):
    pass


class AuthExpiredFinal(Unauthorized):
    pass
