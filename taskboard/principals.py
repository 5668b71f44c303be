"""Service principals for the token API.

A caller presenting a bearer token acts as the principal that token maps to.
Only one principal is configured today (``MCP_API_TOKEN`` -> ``MCP_USER_ID``),
but the auth check itself only knows the token table.
"""
from dataclasses import dataclass
import hmac
from typing import Dict, Optional

from . import config
from .errors import AuthError, ConfigurationError


@dataclass(frozen=True)
class ServicePrincipal:
    name: str
    user_id: str


def service_accounts() -> Dict[str, ServicePrincipal]:
    """Build the token -> principal table from the environment."""
    token = config.mcp_api_token()
    if not token:
        return {}
    user_id = config.mcp_user_id()
    if not user_id:
        raise ConfigurationError("MCP_USER_ID not configured")
    return {token: ServicePrincipal(name=config.mcp_service_name(), user_id=user_id)}


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Unauthorized")
    return authorization[len("Bearer "):]


def resolve_principal(
    authorization: Optional[str],
    accounts: Optional[Dict[str, ServicePrincipal]] = None,
) -> ServicePrincipal:
    """Resolve an ``Authorization`` header to a principal or raise AuthError."""
    token = bearer_token(authorization)
    if accounts is None:
        accounts = service_accounts()
    for expected, principal in accounts.items():
        if hmac.compare_digest(token.encode(), expected.encode()):
            return principal
    raise AuthError("Unauthorized")
