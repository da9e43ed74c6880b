"""JWT-based stateless authentication and the caller's own profile."""
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from app.api.deps import (
    CurrentUser,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.config import settings
from app.models.audit import AuditAction, EntityType
from app.models.user import User, UserCreate, UserUpdate, serialize_user
from app.services.audit import record_audit
from app.services.lookups import safe_object_id

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _token_payload(user: User, message: str) -> dict:
    return {
        "success": True,
        "user": serialize_user(user),
        "token": create_access_token(str(user.id), user.role.value, user.name),
        "refresh_token": create_refresh_token(str(user.id)),
        "token_type": "bearer",
        "message": message,
    }


@router.post("/register", status_code=201)
async def register(data: UserCreate, request: Request):
    email = data.email.strip().lower()
    existing = await User.find_one(User.email == email)
    if existing:
        raise HTTPException(status_code=400, detail="This email is already registered")
    user = User(
        name=data.name.strip(),
        email=email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
        organization=data.organization or settings.default_organization,
        phone=data.phone,
        age_bracket=data.age_bracket,
        district=data.district,
        state=data.state,
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="This email is already registered")
    await record_audit(
        AuditAction.USER_REGISTERED,
        actor=user,
        entity_type=EntityType.USER,
        entity_id=str(user.id),
        request=request,
    )
    return _token_payload(user, "Account created successfully")


@router.post("/login")
async def login(req: LoginRequest, request: Request):
    user = await User.find_one(User.email == req.email.strip().lower())
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    await record_audit(
        AuditAction.USER_LOGIN,
        actor=user,
        entity_type=EntityType.USER,
        entity_id=str(user.id),
        request=request,
    )
    return _token_payload(user, "Login successful")


@router.post("/refresh")
async def refresh_token(req: RefreshRequest):
    user_id = decode_token(req.refresh_token, expected_type="refresh")
    oid = safe_object_id(user_id)
    user = await User.get(oid) if oid else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _token_payload(user, "Token refreshed")


@router.get("/me")
async def me(user: CurrentUser):
    return {"success": True, "user": serialize_user(user)}


@router.patch("/me")
async def update_me(data: UserUpdate, user: CurrentUser, request: Request):
    """Profile edits never touch attendance snapshots already frozen into reports."""
    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(user, key, value)
    user.updated_at = datetime.utcnow()
    await user.save()
    await record_audit(
        AuditAction.USER_UPDATED,
        actor=user,
        entity_type=EntityType.USER,
        entity_id=str(user.id),
        metadata={"fields": sorted(update_data)},
        request=request,
    )
    return {"success": True, "user": serialize_user(user)}


@router.get("/user/{user_id}")
async def get_user(user_id: str, user: CurrentUser):
    oid = safe_object_id(user_id)
    found = await User.get(oid) if oid else None
    if not found:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "user": serialize_user(found)}
