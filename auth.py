"""
Token and password helpers plus the FastAPI dependencies guarding routes.

Clients send the JWT in a custom ``token`` header.
"""
import logging
import re
from typing import Optional

import bcrypt
import jwt
from fastapi import Header

import config
from errors import InvalidRequest, NotAuthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
NOT_AUTHORIZED = "Not Authorized Login Again"

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{9,14}$")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(10)).decode("utf-8")


def check_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def validate_email(email: str) -> bool:
    return bool(email and EMAIL_RE.match(email))


def normalize_phone(phone: str) -> str:
    return re.sub(r"\s", "", phone or "")


def validate_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(normalize_phone(phone)))


def validate_new_password(password: Optional[str], message: str = "Please enter a strong password"):
    if not password or len(password) < config.MIN_PASSWORD_LENGTH:
        raise InvalidRequest(message)


def create_token(user_id) -> str:
    return jwt.encode({"id": str(user_id)}, config.JWT_SECRET, algorithm=ALGORITHM)


def create_admin_token(email: str) -> str:
    return jwt.encode({"role": "admin", "email": email}, config.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: Optional[str]) -> dict:
    if not token:
        raise NotAuthorized(NOT_AUTHORIZED)
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info("Rejected token: %s", e)
        raise NotAuthorized(NOT_AUTHORIZED)


def current_user_id(token: Optional[str] = Header(None)) -> str:
    payload = decode_token(token)
    user_id = payload.get("id")
    if not user_id:
        raise NotAuthorized(NOT_AUTHORIZED)
    return user_id


def require_admin(token: Optional[str] = Header(None)) -> str:
    payload = decode_token(token)
    if payload.get("role") != "admin" or not config.ADMIN_EMAIL or payload.get("email") != config.ADMIN_EMAIL:
        raise NotAuthorized(NOT_AUTHORIZED)
    return payload["email"]
