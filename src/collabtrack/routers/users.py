from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..auth import get_current_user
from ..models import UserEntity
from ..repositories import Store, get_store
from ..schemas import MessageOut, UserCreate, UserOut, UserUpdate
from ..services import UserService

router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
)


def _get_users(store: Store = Depends(get_store)) -> UserService:
    return UserService(store)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register User",
    responses={409: {"description": "Username or email already exists"}},
)
def register_user(payload: UserCreate, service: UserService = Depends(_get_users)) -> UserOut:
    return UserOut(**service.register_user(payload))


# PUBLIC_INTERFACE
@router.get("/me", response_model=UserOut, summary="Get Profile")
def get_profile(user: UserEntity = Depends(get_current_user)) -> UserOut:
    return UserOut(**user)


# PUBLIC_INTERFACE
@router.put(
    "/me",
    response_model=UserOut,
    summary="Update Profile",
    responses={409: {"description": "Username or email already exists"}},
)
def update_profile(
    payload: UserUpdate,
    user: UserEntity = Depends(get_current_user),
    service: UserService = Depends(_get_users),
) -> UserOut:
    return UserOut(**service.update_profile(user, payload))


# PUBLIC_INTERFACE
@router.delete(
    "/me",
    response_model=MessageOut,
    summary="Delete Account",
    description="Delete the caller's account, their projects and those projects' tasks.",
)
def delete_account(
    user: UserEntity = Depends(get_current_user),
    service: UserService = Depends(_get_users),
) -> MessageOut:
    service.delete_account(user)
    return MessageOut(
        message="Account deleted successfully. All your projects and tasks have been removed."
    )
