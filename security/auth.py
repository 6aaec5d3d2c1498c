from __future__ import annotations

from typing import Final

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.errors import auth_invalid_token
from core.settings import get_settings
from security.principal import AuthPrincipal

logger = structlog.get_logger(__name__)

token_auth_scheme = HTTPBearer(auto_error=True)
AUTH_ROLES: Final[tuple[str, ...]] = ('applicant', 'consultant', 'admin',)
ALGORITHM: Final[str] = "HS256"


def decode_access_token(token: str, secret_key: str) -> AuthPrincipal:
    try:
        claims = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as err:
        raise auth_invalid_token(details={"reason": "expired"}) from err
    except jwt.InvalidTokenError as err:
        logger.info("access_token_rejected", error=str(err))
        raise auth_invalid_token() from err

    role = str(claims.get("role") or "").lower()
    if role not in AUTH_ROLES:
        raise auth_invalid_token(details={"role": claims.get("role")})

    try:
        user_id = int(claims["user_id"])
    except (KeyError, TypeError, ValueError) as err:
        raise auth_invalid_token(details={"reason": "user_id claim missing"}) from err

    return AuthPrincipal(user_id=user_id, role=role, jwt_token=token)


async def verify_any_token(
    credentials: HTTPAuthorizationCredentials = Depends(token_auth_scheme),
) -> AuthPrincipal:
    return decode_access_token(credentials.credentials, get_settings().secret_key)
