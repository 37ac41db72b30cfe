import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, Response
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

import emails
from config import get_settings
from database import create_document, get_db, utcnow
from errors import AuthError, ConflictError, NotFoundError
from guards import captcha_check, honeypot_check, rate_limit
from mailer import get_notifier
from schemas import User as UserSchema
from security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_user_id,
    hash_password,
    hash_reset_token,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

REFRESH_COOKIE = "refreshToken"
RESET_TOKEN_TTL = timedelta(minutes=30)


class SignupBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordBody(BaseModel):
    email: EmailStr


class ResetPasswordBody(BaseModel):
    password: str = Field(..., min_length=1)


def public_user(user: dict) -> dict:
    return {
        "_id": str(user["_id"]),
        "name": user["name"],
        "email": user["email"],
        "phone": user.get("phone"),
        "createdAt": user.get("createdAt"),
        "userId": user["userId"],
    }


def set_refresh_cookie(response: Response, user: dict, settings):
    response.set_cookie(
        REFRESH_COOKIE,
        create_refresh_token(user, settings),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=int(settings.jwt_refresh_expiry.total_seconds()),
    )


@router.post(
    "/signup",
    dependencies=[Depends(rate_limit("signup")), Depends(honeypot_check), Depends(captcha_check)],
)
def signup(
    body: SignupBody,
    response: Response,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    settings=Depends(get_settings),
    notifier=Depends(get_notifier),
):
    if db["user"].find_one({"email": body.email}):
        raise ConflictError("Email already exists")

    user = UserSchema(
        name=body.name,
        email=body.email,
        phone=body.phone,
        password=hash_password(body.password),
        userId=generate_user_id(),
    )
    try:
        create_document(db, "user", user)
    except DuplicateKeyError:
        raise ConflictError("Email already exists")
    doc = db["user"].find_one({"userId": user.userId})
    logger.info("New user %s registered", user.userId)

    notifier.dispatch(
        background_tasks,
        body.email,
        "Welcome to Sumansi!",
        emails.welcome(body.name, body.email, body.phone, doc["createdAt"]),
    )
    set_refresh_cookie(response, doc, settings)
    return {
        "message": "User registered successfully",
        "accessToken": create_access_token(doc, settings),
        "user": public_user(doc),
    }


@router.post("/login", dependencies=[Depends(rate_limit("login")), Depends(captcha_check)])
def login(
    body: LoginBody,
    response: Response,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    settings=Depends(get_settings),
    notifier=Depends(get_notifier),
):
    user = db["user"].find_one({"email": body.email})
    # same message for unknown email and wrong password
    if not user or not verify_password(body.password, user.get("password")):
        raise AuthError("Invalid credentials")

    notifier.dispatch(
        background_tasks,
        user["email"],
        "Login Notification - Sumansi",
        emails.login_notice(user["name"], user["email"], utcnow()),
    )
    set_refresh_cookie(response, user, settings)
    result = public_user(user)
    result.pop("createdAt")
    return {"message": "Login successful", "accessToken": create_access_token(user, settings), "user": result}


@router.post("/refresh")
def refresh(
    refreshToken: Optional[str] = Cookie(default=None),
    db=Depends(get_db),
    settings=Depends(get_settings),
):
    if not refreshToken:
        raise AuthError("No refresh token")
    try:
        payload = decode_token(refreshToken, settings.jwt_refresh_secret)
    except AuthError:
        raise AuthError("Invalid or expired refresh token")
    if payload.get("type") != "refresh":
        raise AuthError("Invalid or expired refresh token")
    user = db["user"].find_one({"userId": payload.get("userId")})
    if not user:
        raise AuthError("User not found")
    return {"accessToken": create_access_token(user, settings)}


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPasswordBody,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    settings=Depends(get_settings),
    notifier=Depends(get_notifier),
):
    user = db["user"].find_one({"email": body.email})
    if not user:
        raise NotFoundError("No user found with that email")

    reset_token = secrets.token_hex(32)
    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {
                "resetPasswordToken": hash_reset_token(reset_token),
                "resetPasswordExpires": utcnow() + RESET_TOKEN_TTL,
            }
        },
    )
    reset_url = f"{settings.frontend_url.rstrip('/')}/reset-password/{reset_token}"
    notifier.dispatch(background_tasks, user["email"], "Password Reset - Sumansi", emails.password_reset(user["name"], reset_url))
    return {"message": "Password reset link sent to your email."}


@router.post("/reset-password/{token}")
def reset_password(
    token: str,
    body: ResetPasswordBody,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    user = db["user"].find_one(
        {"resetPasswordToken": hash_reset_token(token), "resetPasswordExpires": {"$gt": utcnow()}}
    )
    if not user:
        raise AuthError("Invalid or expired token")

    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(body.password), "updatedAt": utcnow()},
            "$unset": {"resetPasswordToken": "", "resetPasswordExpires": ""},
        },
    )
    notifier.dispatch(background_tasks, user["email"], "Password Changed - Sumansi", emails.password_changed(user["name"]))
    return {"message": "Password has been reset successfully."}
