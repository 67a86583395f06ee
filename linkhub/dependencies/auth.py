# linkhub/dependencies/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from linkhub.config import Settings, get_settings
from linkhub.infrastructure.redis_cache import redis_client
from linkhub.utils.security import decode_token

# tokens are issued by the identity service; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def is_access_jti_blacklisted(jti: str) -> bool:
    return await redis_client.exists(f"bl:{jti}") == 1


async def get_current_user_id(token: str = Depends(oauth2_scheme), settings: Settings = Depends(get_settings)) -> str:
    try:
        payload = decode_token(token, settings.secret_key, settings.algorithm)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    if payload.get("type", "access") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token type")
    jti = payload.get("jti")
    if jti and await is_access_jti_blacklisted(jti):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token revoked")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    return str(user_id)
