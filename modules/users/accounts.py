# modules/users/accounts.py
"""
Accounts
- Email/password registration and login
- Kakao social login (find or create by Kakao id)
- Account deletion with cascade to the user's session data
"""

import logging
import re
import secrets
from typing import Literal

import pydantic
from pydantic import BaseModel, field_validator
from pymongo.errors import DuplicateKeyError
from werkzeug.security import check_password_hash, generate_password_hash

from database.models import new_user_document
from utils.errors import (
    AuthError,
    DuplicateAccountError,
    InvalidPayloadError,
    UserNotFoundError,
)
from utils.kakao_client import fetch_kakao_profile

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$")


class RegisterIn(BaseModel):
    email: str
    name: str
    password: str
    age: int
    gender: Literal["male", "female", "other"]
    occupation: str

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        if len(v.strip()) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v.strip()

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v

    @field_validator("age")
    @classmethod
    def _age(cls, v):
        if v < 0:
            raise ValueError("Age must be a positive number")
        return v

    @field_validator("occupation")
    @classmethod
    def _occupation(cls, v):
        if not v.strip():
            raise ValueError("Occupation is required")
        return v.strip()


def register_user(store, payload):
    try:
        data = RegisterIn.model_validate(payload if isinstance(payload, dict) else {})
    except pydantic.ValidationError as e:
        raise InvalidPayloadError.from_pydantic(e) from e

    if store.find_user_by_email(data.email):
        raise DuplicateAccountError("An account with this email already exists.")

    doc = new_user_document(
        email=data.email,
        password_hash=generate_password_hash(data.password),
        name=data.name,
        age=data.age,
        gender=data.gender,
        occupation=data.occupation,
    )
    try:
        doc["_id"] = store.insert_user(doc)
    except DuplicateKeyError as e:
        # lost a race with a concurrent registration
        raise DuplicateAccountError("An account with this email already exists.") from e

    logger.info("New user registered: %s", data.email)
    return doc


def authenticate(store, email, password):
    if not email or not password:
        raise AuthError("Email and password are required")

    user = store.find_user_by_email(str(email).strip().lower())
    if not user or not check_password_hash(user["password"], password):
        raise AuthError("Invalid email or password")
    return user


def kakao_login(store, kakao_token):
    if not kakao_token:
        raise AuthError("Kakao token is required")

    try:
        profile = fetch_kakao_profile(kakao_token)
    except RuntimeError as e:
        logger.exception("Kakao login failed")
        raise AuthError("Kakao login failed") from e

    kakao_id = str(profile["id"])
    user = store.find_user_by_kakao_id(kakao_id)
    if user:
        return user

    account = profile.get("kakao_account") or {}
    nickname = (profile.get("properties") or {}).get("nickname")
    doc = new_user_document(
        email=(account.get("email") or f"kakao_{kakao_id}@kakao.local").lower(),
        # never used for login; Kakao users authenticate through Kakao
        password_hash=generate_password_hash(secrets.token_urlsafe(16)),
        name=nickname or f"kakao_{kakao_id}",
        age=0,
        gender="other",
        occupation="not specified",
        kakao_id=kakao_id,
    )
    try:
        doc["_id"] = store.insert_user(doc)
    except DuplicateKeyError as e:
        raise DuplicateAccountError("An account with this email already exists.") from e

    logger.info("New Kakao user created: kakao_id=%s", kakao_id)
    return doc


def delete_account(store, user_id):
    removed = store.run_in_transaction(lambda session: store.delete_user_cascade(user_id, session=session))
    if not removed.get("users"):
        raise UserNotFoundError("User not found")
    logger.info("Deleted user %s and session data %s", user_id, removed)
    return removed
