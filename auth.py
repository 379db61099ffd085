from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

import config
from errors import AuthInvalid, AuthMissing, Forbidden

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenUser(BaseModel):
    id: str
    role: str = "user"
    name: Optional[str] = None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unrecognised hash format
        return False


def issue_token(identity: str, role: str, display_name: Optional[str]) -> str:
    payload = {
        "id": identity,
        "role": role,
        "name": display_name,
        "exp": datetime.now(timezone.utc) + timedelta(days=config.TOKEN_TTL_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def verify_token(token: str) -> TokenUser:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError:
        raise AuthInvalid()
    if not payload.get("id"):
        raise AuthInvalid()
    return TokenUser(id=payload["id"], role=payload.get("role", "user"), name=payload.get("name"))


def get_current_user(authorization: Optional[str] = Header(None)) -> TokenUser:
    if not authorization:
        raise AuthMissing()
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid auth scheme")
    except ValueError:
        raise AuthInvalid("Invalid Authorization header")
    return verify_token(token)


def require_admin(user: TokenUser = Depends(get_current_user)) -> TokenUser:
    if user.role != "admin":
        raise Forbidden()
    return user
