import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import USERS, get_db
from errors import BadRequest, Forbidden, Unauthorized

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ---------------------- Passwords ----------------------
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a recognised hash
        return False


def check_password_policy(password: Optional[str]) -> None:
    if not password or len(password) < config.MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")


# ---------------------- JWT ----------------------
def create_jwt(payload: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=config.TOKEN_EXPIRE_MIN)
    to_encode = {"exp": exp, "iat": now, **payload}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALG)


def decode_jwt(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except ExpiredSignatureError:
        raise Unauthorized("Token expired. Please login again.")
    except JWTError:
        raise Unauthorized("Invalid token")


def token_for(account: Dict[str, Any]) -> str:
    return create_jwt({
        "sub": str(account["_id"]),
        "email": account.get("email"),
        "role": account.get("role"),
    })


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_account(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if not creds or creds.scheme.lower() != "bearer":
        raise Unauthorized("No token provided. Authorization denied.")
    data = decode_jwt(creds.credentials)
    account_id = data.get("sub")
    if not account_id or not ObjectId.is_valid(account_id):
        raise Unauthorized("Invalid token")
    account = db[USERS].find_one({"_id": ObjectId(account_id)}, {"password": 0})
    if not account:
        raise Unauthorized("Account not found")
    if not account.get("is_active", True):
        raise Forbidden("Account is deactivated. Please contact support.")
    return account


def get_current_admin(account: Dict[str, Any] = Depends(get_current_account)) -> Dict[str, Any]:
    if account.get("role") != "admin":
        raise Forbidden("Admin access required")
    return account


def admin_profile(account: Dict[str, Any]) -> Dict[str, Any]:
    created_at = account.get("created_at")
    return {
        "id": str(account["_id"]),
        "name": account.get("name"),
        "surname": account.get("surname"),
        "email": account.get("email"),
        "created_at": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
    }
