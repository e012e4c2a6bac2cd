from datetime import datetime, timedelta, timezone
from hmac import compare_digest
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from crewportal.config import settings
from crewportal.schemas.auth import CurrentUser, TokenData

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the way the identity provider does; used by tooling and tests."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> TokenData:
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return TokenData(sub=payload.get("sub"), email=payload.get("email"))


def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise credentials_exception
    try:
        token_data = decode_access_token(credentials.credentials)
    except JWTError:
        raise credentials_exception
    if not token_data.sub or not token_data.email:
        raise credentials_exception
    return CurrentUser(id=token_data.sub, email=token_data.email.lower())


def _bearer_value(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def _matches(candidate: Optional[str], secret: str) -> bool:
    return bool(candidate) and bool(secret) and compare_digest(candidate.encode(), secret.encode())


def verify_webhook_secret(
    authorization: Annotated[Optional[str], Header()] = None,
    x_webhook_secret: Annotated[Optional[str], Header(alias="X-Webhook-Secret")] = None,
) -> None:
    """Accept the shared secret as a bearer token or in X-Webhook-Secret."""
    if _matches(_bearer_value(authorization), settings.webhook_secret) or _matches(
        x_webhook_secret, settings.webhook_secret
    ):
        return
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def verify_cron_secret(authorization: Annotated[Optional[str], Header()] = None) -> None:
    if not _matches(_bearer_value(authorization), settings.cron_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
