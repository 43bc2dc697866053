# app/auth.py
from datetime import timedelta
from typing import Optional, Dict, Any

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException

from . import config, database
from .core import now_utc


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())

def is_admin(email: str) -> bool:
    return bool(database.select("admins", email=email.lower()))

def ensure_admins() -> None:
    for email in config.get_admin_emails():
        if not is_admin(email):
            database.insert("admins", {"email": email})


def create_token(user: Dict[str, Any]) -> str:
    payload = {
        "sub": user["id"],
        "email": user["email"],
        "exp": now_utc() + timedelta(days=config.TOKEN_TTL_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    if not authorization:
        raise HTTPException(status_code=401, detail="No authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = database.get("users", payload.get("sub", ""))
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not is_admin(user["email"]):
        raise HTTPException(status_code=403, detail="Admin only")
    return user
