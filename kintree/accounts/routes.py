"""Signup, login and profile endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from kintree.accounts import db as adb
from kintree.accounts import security
from kintree.accounts.models import AuthOut, LoginIn, SignupIn, UpdateProfileIn, UserOut
from kintree.accounts.security import Viewer, require_user

logger = logging.getLogger("kintree.accounts.routes")

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _user_out(row) -> UserOut:
    return UserOut(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        avatar=row["avatar"],
        bio=row["bio"],
        reminder_notes=row["reminder_notes"],
        created_at=row["created_at"],
    )


@router.post("/signup", status_code=201)
async def signup(body: SignupIn) -> AuthOut:
    """Register a new user and log them in."""
    row = await adb.create_user(body.name, body.email, security.hash_password(body.password))
    if row is None:
        raise HTTPException(409, "Email already registered")
    token = await security.issue_token(str(row["id"]))
    logger.info("Registered user %s", row["id"])
    return AuthOut(user=_user_out(row), token=token)


@router.post("/login")
async def login(body: LoginIn) -> AuthOut:
    """Exchange email + password for a bearer token."""
    creds = await adb.get_user_credentials(body.email)
    if creds is None or not security.verify_password(body.password, creds["password_hash"]):
        raise HTTPException(401, "Invalid email or password")
    row = await adb.get_user(str(creds["id"]))
    token = await security.issue_token(str(creds["id"]))
    return AuthOut(user=_user_out(row), token=token)


@router.post("/logout")
async def logout(viewer: Viewer = Depends(require_user)) -> dict:
    """Revoke the token used for this request."""
    await adb.delete_session(security.hash_token(viewer.token))
    return {"logged_out": True}


@router.get("/me")
async def get_me(viewer: Viewer = Depends(require_user)) -> UserOut:
    row = await adb.get_user(viewer.user_id)
    if row is None:
        raise HTTPException(404, "User not found")
    return _user_out(row)


@router.patch("/me")
async def update_me(body: UpdateProfileIn, viewer: Viewer = Depends(require_user)) -> UserOut:
    """Update the caller's profile."""
    fields = body.model_dump(exclude_unset=True)
    if fields.get("name", "") is None:
        raise HTTPException(400, "name cannot be null")
    row = await adb.update_user(viewer.user_id, **fields)
    if row is None:
        raise HTTPException(404, "User not found")
    return _user_out(row)
