# storefront/api/deps.py
from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from storefront.core.security import decode_id_token
from storefront.services.cart_service import CartOwner

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Account id from the bearer token; ``None`` only when no token was sent."""
    if not credentials:
        return None
    try:
        payload = decode_id_token(credentials.credentials)
    except JWTError:
        raise _credentials_exception()
    if not payload.get("sub"):
        raise _credentials_exception()
    return str(payload["sub"])


def get_current_user_id(user_id: str | None = Depends(get_optional_user_id)) -> str:
    if user_id is None:
        raise _credentials_exception("Authentication required")
    return user_id


def get_cart_owner(
    user_id: str | None = Depends(get_optional_user_id),
    x_session_id: str | None = Header(default=None, alias="X-Session-Id", max_length=120),
    session_id: str | None = Query(default=None, max_length=120, description="Guest cart session id"),
) -> CartOwner:
    """Authenticated carts win over the guest session carried by the request."""
    if user_id:
        return CartOwner(user_id=user_id)
    return CartOwner(session_id=x_session_id or session_id)
