from contract_client.integrations.api.transport import (
    AuthenticatedTransport,
    MAX_AUTH_RETRIES,
)
from contract_client.integrations.api.auth import AuthApi

__all__ = ["AuthenticatedTransport", "MAX_AUTH_RETRIES", "AuthApi"]
