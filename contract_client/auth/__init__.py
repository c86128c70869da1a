"""认证领域模块。"""

from contract_client.auth.errors import (
    ApiError,
    AuthExpiredFinal,
    ContractClientError,
    InvalidCredentials,
    NetworkUnavailable,
    RefreshFailed,
    RefreshFailureReason,
    RegistrationFailed,
    StorageError,
    StorageUnavailable,
    Unauthorized,
)
from contract_client.auth.model import (
    RefreshResponse,
    SessionSnapshot,
    TokenResponse,
    UserCredentials,
    UserProfile,
)

__all__ = [
    "ApiError",
    "AuthExpiredFinal",
    "ContractClientError",
    "InvalidCredentials",
    "NetworkUnavailable",
    "RefreshFailed",
    "RefreshFailureReason",
    "RegistrationFailed",
    "StorageError",
    "StorageUnavailable",
    "Unauthorized",
    "RefreshResponse",
    "SessionSnapshot",
    "TokenResponse",
    "UserCredentials",
    "UserProfile",
]
