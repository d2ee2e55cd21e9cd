from datetime import datetime, timedelta, timezone
import logging

from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import AuthenticationError
from app.middleware.logging import organization_id_var
from app.models.user import User
from app.services.tenancy import OrganizationContext, Principal, TenancyResolver

# Initialize logging
logger = logging.getLogger(__name__)

# Header carrying the explicit organization selector (id or slug)
ORGANIZATION_HEADER = "X-Organization"

# OAuth2 scheme for token validation; cookies are accepted as a fallback
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


# Function to create an access token with an expiration time
def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (user id) in token data.")
    to_encode["sub"] = str(to_encode["sub"])

    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


# Function to decode an access token into a user id
def decode_access_token(token: str) -> int:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.info("Token expired")
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning("JWT decoding failed: %s", e)
        raise AuthenticationError("Invalid token")

    subject = payload.get("sub")
    if subject is None:
        logger.warning("Token is missing 'sub' claim")
        raise AuthenticationError("Token does not contain 'sub' field.")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Token subject is not a user id")


async def get_current_principal(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Authenticate the caller from a bearer token (or the access_token cookie)."""
    token = token or request.cookies.get("access_token")
    if not token:
        raise AuthenticationError("Could not validate credentials")

    user_id = decode_access_token(token)
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("Token for unknown or inactive user %d", user_id)
        raise AuthenticationError("Could not validate credentials")

    return Principal(user_id=user.id, email=user.email, is_platform_admin=user.is_platform_admin)


async def get_organization_context(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    organization: str | None = Header(default=None, alias=ORGANIZATION_HEADER),
) -> OrganizationContext:
    """Resolve the organization this request operates on."""
    context = await TenancyResolver(db).resolve(principal, organization)
    # Picked up by the structured logging middleware
    request.state.organization_id = context.organization_id
    organization_id_var.set(context.organization_id)
    return context
