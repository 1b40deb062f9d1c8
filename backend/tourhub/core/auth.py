from uuid import UUID

import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tourhub.core.config import settings
from tourhub.core.database import get_db
from tourhub.core.errors import AuthenticationError
from tourhub.core.permissions import AuthenticatedPrincipal
from tourhub.repositories.user_repository import UserRepository


def decode_access_token(token: str) -> UUID:
    """Return the user id carried in the ``sub`` claim of a bearer token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return UUID(str(payload["sub"]))
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Access token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise AuthenticationError("Invalid access token") from None


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthenticationError("Authentication required")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")
    token = auth_header[7:]
    if not token:
        raise AuthenticationError("Access token is required")
    return token


def get_current_principal(
    request: Request,
    db: Session = Depends(get_db),
) -> AuthenticatedPrincipal:
    """Resolve the caller from the Authorization header.

    The token only identifies the user. Role, guide status and activation
    are always read from the database so that a demotion or deactivation
    takes effect on the next request.
    """
    user_id = decode_access_token(_bearer_token(request))
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AuthenticationError("Unknown user")

    request.state.principal_id = user.id
    return AuthenticatedPrincipal(
        id=user.id,  # type: ignore[arg-type]
        role=str(user.role),
        guide_status=str(user.guide_status),
        is_active=bool(user.is_active),
    )


def principal_id_from_request(request: Request) -> UUID | None:
    """Best-effort caller id for request auditing. Never raises."""
    principal_id = getattr(request.state, "principal_id", None)
    if principal_id is not None:
        return principal_id  # type: ignore[no-any-return]
    try:
        return decode_access_token(_bearer_token(request))
    except AuthenticationError:
        return None
