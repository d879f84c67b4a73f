"""Request dependencies: caller identity and chain access"""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from voxen.config import get_settings
from voxen.services.chain_client import ChainClient, get_chain_client

settings = get_settings()

security = HTTPBearer()
# Does not reject requests without credentials
optional_security = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_in: timedelta = timedelta(days=7)) -> str:
    """Issue a bearer token for a verified user id"""
    payload = {"id": user_id, "exp": datetime.utcnow() + expires_in}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _user_id_from_token(token: str) -> str:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return str(user_id)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> str:
    """Resolve the bearer token to an opaque user id"""
    return _user_id_from_token(credentials.credentials)


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> Optional[str]:
    """Like get_current_user_id, but anonymous requests resolve to None"""
    if credentials is None:
        return None
    return _user_id_from_token(credentials.credentials)


async def get_chain() -> ChainClient:
    return await get_chain_client()
