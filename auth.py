"""
Accounts, bearer tokens and the access gate.

Tokens are HS256 JWTs carrying the user id and a 30 day expiry. There is
no revocation list, so `get_current_user` re-reads the user on every
request: deactivating an account locks out tokens that are still valid.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import bcrypt
import jwt
import structlog
from fastapi import Depends, Header
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, parse_id, to_public
from errors import (
    AccountDisabled,
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    Unauthenticated,
    UserNotFound,
)
from schemas import CurrentUser, User

logger = structlog.get_logger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=30)
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))

# -----------------
# Passwords
# -----------------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # over-long password or corrupt hash
        return False

# -----------------
# Tokens
# -----------------

def signing_secret() -> str:
    if not JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not set")
    return JWT_SECRET


def issue_token(user_id: str, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {"id": str(user_id), "iat": issued_at, "exp": issued_at + TOKEN_TTL}
    return jwt.encode(payload, signing_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> str:
    """Return the user id bound to `token` or raise Unauthenticated."""
    try:
        claims = jwt.decode(
            token,
            signing_secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "id"]},
        )
    except jwt.InvalidTokenError as e:
        logger.info("Token rejected", reason=type(e).__name__)
        raise Unauthenticated("Not authorized, invalid token.")
    user_id = claims.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise Unauthenticated("Not authorized, invalid token.")
    return user_id

# -----------------
# Access gate
# -----------------

def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = to_public(doc)
    doc.pop("password_hash", None)
    return doc


def get_current_user(authorization: Optional[str] = Header(None), database=Depends(get_db)) -> CurrentUser:
    if not authorization:
        raise Unauthenticated("Not authorized, no token provided.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Not authorized, no token provided.")

    user_id = verify_token(token.strip())
    oid = parse_id(user_id)
    doc = database.user.find_one({"_id": oid}) if oid else None
    if not doc or not doc.get("is_active", True):
        raise Unauthenticated("User not found.")
    return CurrentUser(**public_user(doc))


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if current_user.role != "admin":
        logger.info("Admin route refused", user_id=current_user.id)
        raise Forbidden()
    return current_user

# -----------------
# Registration / login
# -----------------

def normalize_email(email: str) -> str:
    return email.strip().lower()


def register_user(database, name: str, email: str, password: str) -> Tuple[Dict[str, Any], str]:
    email = normalize_email(email)
    if database.user.find_one({"email": email}):
        raise DuplicateEmail()

    user = User(name=name, email=email, password_hash=hash_password(password))
    try:
        user_id = create_document(database, "user", user)
    except DuplicateKeyError:
        raise DuplicateEmail()
    logger.info("User registered", user_id=user_id)
    return public_user(database.user.find_one({"_id": parse_id(user_id)})), issue_token(user_id)


def login_user(database, email: str, password: str) -> Tuple[Dict[str, Any], str]:
    doc = database.user.find_one({"email": normalize_email(email)})
    if not doc or not check_password(password, doc.get("password_hash", "")):
        raise InvalidCredentials()
    if not doc.get("is_active", True):
        raise AccountDisabled()
    user = public_user(doc)
    return user, issue_token(user["id"])

# -----------------
# Account administration
# -----------------

def list_users(database) -> List[Dict[str, Any]]:
    return [public_user(d) for d in database.user.find({}).sort("created_at", 1)]


def toggle_user_active(database, user_id: str) -> bool:
    oid = parse_id(user_id)
    doc = database.user.find_one({"_id": oid}) if oid else None
    if not doc:
        raise UserNotFound()
    is_active = not doc.get("is_active", True)
    database.user.update_one(
        {"_id": oid},
        {"$set": {"is_active": is_active, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("User active flag changed", user_id=user_id, is_active=is_active)
    return is_active
