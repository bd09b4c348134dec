"""Bearer-token authentication and capability checks for the HTTP surface.

Tokens are HS256 JWTs carrying ``sub`` (the user id) and ``role``. A role
maps to a fixed set of capabilities; routes ask for a capability, never for a
role name:

    @router.post("/{order_id}/refund")
    async def refund(order_id: str, principal: Principal = Depends(require("order:refund"))):
        ...
"""

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

logger = structlog.get_logger(__name__)

_CUSTOMER = frozenset(
    {
        "cart:manage",
        "checkout",
        "order:create",
        "order:read",
        "order:cancel",
    }
)
_MODERATOR = _CUSTOMER | {
    "order:read:any",
    "order:update_status",
    "order:track",
}
_ADMIN = _MODERATOR | {
    "order:refund",
    "order:cancel:any",
    "inventory:manage",
}

ROLE_CAPABILITIES = {
    "customer": _CUSTOMER,
    "moderator": _MODERATOR,
    "admin": _ADMIN,
}

_DEV_SECRET = "change-me-in-production"


class Unauthenticated(Exception):
    status_code = 401
    title = "Unauthenticated"

    def __init__(self, message="Authentication required"):
        super().__init__(message)
        self.message = message


class Forbidden(Exception):
    status_code = 403
    title = "Forbidden"

    def __init__(self, capability):
        message = f"Missing permission: {capability}"
        super().__init__(message)
        self.message = message
        self.capability = capability


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str
    capabilities: frozenset = field(default_factory=frozenset)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


class AuthGateway:
    """Issues and verifies access tokens."""

    def __init__(self, secret: str | None = None, algorithm: str = "HS256") -> None:
        self.secret = secret or os.environ.get("ORDERING_JWT_SECRET", _DEV_SECRET)
        self.algorithm = algorithm

    def issue_token(self, user_id: str, role: str = "customer", expires_in: int = 3600) -> str:
        now = datetime.now(UTC)
        claims = {
            "sub": str(user_id),
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def current_user(self, token: str | None) -> Principal:
        if not token:
            raise Unauthenticated()
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise Unauthenticated("Token has expired")
        except JWTError:
            raise Unauthenticated("Invalid token")

        user_id = claims.get("sub")
        if not user_id:
            raise Unauthenticated("Invalid token")

        role = claims.get("role", "customer")
        return Principal(
            user_id=str(user_id),
            role=role,
            capabilities=ROLE_CAPABILITIES.get(role, frozenset()),
        )


_current_gateway: AuthGateway | None = None


def get_auth_gateway() -> AuthGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = AuthGateway()
        if _current_gateway.secret == _DEV_SECRET:
            logger.warning("jwt_secret_not_configured", env_var="ORDERING_JWT_SECRET")
    return _current_gateway


def set_auth_gateway(gateway: AuthGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------
bearer_scheme = HTTPBearer(auto_error=False)


async def current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    token = credentials.credentials if credentials is not None else None
    return get_auth_gateway().current_user(token)


def require(capability: str):
    """Dependency that resolves the caller and insists on ``capability``."""

    async def _require(principal: Principal = Depends(current_principal)) -> Principal:
        if not principal.can(capability):
            logger.info("capability_denied", user_id=principal.user_id, capability=capability)
            raise Forbidden(capability)
        return principal

    return _require
