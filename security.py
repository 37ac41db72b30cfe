import hashlib
import hmac
import secrets
from datetime import datetime, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import get_settings
from database import get_db, serialize_doc
from errors import AuthError

JWT_ALGO = "HS256"
BCRYPT_ROUNDS = 10
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode()[:72], hashed.encode())
    except ValueError:
        return False


def generate_user_id() -> str:
    return secrets.token_urlsafe(9)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _token_payload(user: dict) -> dict:
    return {"id": str(user["_id"]), "email": user["email"], "userId": user["userId"]}


def create_token(payload: dict, secret: str, expires_in) -> str:
    exp = datetime.now(timezone.utc) + expires_in
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, secret, algorithm=JWT_ALGO)


def decode_token(token: str, secret: str) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGO])
    except jwt.InvalidTokenError:
        raise AuthError("Invalid or expired token")


def create_access_token(user: dict, settings) -> str:
    return create_token({**_token_payload(user), "type": "access"}, settings.jwt_secret, settings.jwt_expiry)


def create_refresh_token(user: dict, settings) -> str:
    return create_token(
        {**_token_payload(user), "type": "refresh"}, settings.jwt_refresh_secret, settings.jwt_refresh_expiry
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
    settings=Depends(get_settings),
):
    if credentials is None or not credentials.credentials:
        raise AuthError("No token provided")
    payload = decode_token(credentials.credentials, settings.jwt_secret)
    if payload.get("type") != "access" or not payload.get("userId"):
        raise AuthError("Invalid or expired token")
    user = db["user"].find_one({"userId": payload["userId"]})
    if not user:
        raise AuthError("User not found")
    return serialize_doc(user)


def require_admin_key(request: Request, settings=Depends(get_settings)):
    api_key = request.headers.get("x-api-key")
    expected = settings.admin_api_key
    if not api_key or not expected or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise AuthError("Unauthorized: Invalid or missing API key")
    return True
