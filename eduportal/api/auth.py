"""JWT-based stateless authentication and own-profile management."""
from datetime import datetime

from beanie import PydanticObjectId
from fastapi import APIRouter, HTTPException
from jose import JWTError, jwt
from pydantic import BaseModel

from eduportal.api.deps import (
    CurrentUser,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
)
from eduportal.config import settings
from eduportal.models.user import ProfileUpdate, User, UserCreate, UserOut, UserRole
from eduportal.services import roster

router = APIRouter()


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str
    role: UserRole | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class FCMTokenRequest(BaseModel):
    token: str


class DeviceRequest(BaseModel):
    device_id: str


def _tokens_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(str(user.id), user.role.value),
        refresh_token=create_refresh_token(str(user.id)),
    )


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest):
    user = await User.find_one(User.email == req.email)
    if not user or not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    # the student and staff apps each sign in through their own screen
    if req.role and user.role != req.role:
        raise HTTPException(status_code=403, detail=f"This account is not a {req.role.value} account")
    return _tokens_for(user)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: UserCreate):
    existing = await User.find_one(User.email == data.email)
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if data.role == UserRole.STUDENT and not (data.roll_number or "").strip():
        raise HTTPException(status_code=400, detail="Roll number is required for students")
    user = User(
        email=data.email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
        name=data.name,
        roll_number=data.roll_number,
        system_number=data.system_number,
        year=data.year,
        class_names=data.class_names,
        department=data.department,
        # students wait for staff approval before any attendance counts
        is_approved=data.role == UserRole.STAFF,
    )
    await user.insert()
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: RefreshRequest):
    try:
        payload = jwt.decode(req.refresh_token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        if payload.get("type") != "refresh":
            raise HTTPException(status_code=401, detail="Invalid token type")
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid refresh token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Expired or invalid refresh token")

    user = await User.get(PydanticObjectId(user_id))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return _tokens_for(user)


@router.get("/me", response_model=UserOut)
async def me(user: CurrentUser):
    return UserOut.from_user(user)


@router.patch("/me", response_model=UserOut)
async def update_me(data: ProfileUpdate, user: CurrentUser):
    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        if value is not None:
            setattr(user, key, value)
    user.updated_at = datetime.utcnow()
    await user.save()
    return UserOut.from_user(user)


@router.post("/fcm-token")
async def register_fcm_token(req: FCMTokenRequest, user: CurrentUser):
    if req.token not in user.fcm_tokens:
        user.fcm_tokens.append(req.token)
        limit = settings.max_fcm_tokens_per_user
        if len(user.fcm_tokens) > limit:
            user.fcm_tokens = user.fcm_tokens[-limit:]
        await user.save()
    return {"status": "ok"}


@router.post("/device", response_model=UserOut)
async def bind_device(req: DeviceRequest, user: CurrentUser):
    user = await roster.bind_device(user, req.device_id)
    return UserOut.from_user(user)
