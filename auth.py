import bcrypt
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from pymongo.database import Database

import config
from database import get_db
from errors import InvalidToken, Unauthenticated
from stores import UserStore

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode()[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(_password_bytes(password), salt).decode()


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode())


def create_token(user_doc: dict) -> str:
    payload = {
        "userId": str(user_doc["_id"]),
        "email": user_doc["email"],
        "exp": datetime.now(timezone.utc) + timedelta(hours=config.TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.PyJWTError:
        raise InvalidToken()
    if "userId" not in payload:
        raise InvalidToken()
    return payload


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    """Resolve the bearer token on the request to the acting user document."""
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if not token:
        raise Unauthenticated()
    if scheme.lower() != "bearer":
        raise InvalidToken()
    payload = decode_token(token)
    user = UserStore(db).get(payload["userId"])
    if not user:
        raise InvalidToken()
    return user
