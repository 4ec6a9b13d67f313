from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pymongo.database import Database

from database import get_db, object_id
from errors import Forbidden, Unauthorized, ValidationFailure
import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
JWT_ALGO = "HS256"
bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(user_doc: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_doc.get("_id")),
        "role": user_doc.get("role", "user"),
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXP_MIN),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Not authorized, token failed")


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     db: Database = Depends(get_db)) -> Dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Not authorized, no token")
    payload = decode_token(credentials.credentials)
    try:
        user_id = object_id(payload.get("sub"))
    except ValidationFailure:
        raise Unauthorized("Not authorized, token failed")
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise Unauthorized("User not found")
    if user.get("is_banned"):
        raise Forbidden("Your account has been banned")
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise Forbidden("Not authorized as an admin")
    return user
