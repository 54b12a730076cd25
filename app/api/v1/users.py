"""User endpoints: own profile and password, plus staff/admin account management."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import (
    get_account_service,
    get_current_user,
    require_admin,
    require_staff,
)
from app.models.user import UserRole
from app.schemas.auth import (
    AccountListResponse,
    AccountOut,
    AccountResponse,
    ChangePasswordRequest,
    CurrentUser,
    MessageResponse,
    UpdateProfileRequest,
)
from app.services.accounts import AccountService

router = APIRouter()


def _list(accounts: list) -> AccountListResponse:
    return AccountListResponse(users=[AccountOut.model_validate(a) for a in accounts])


@router.get("/profile", response_model=AccountResponse)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountResponse:
    account = accounts.get_profile(current_user.id)
    return AccountResponse(
        user=AccountOut.model_validate(account), message="User profile fetched successfully"
    )


@router.put("/profile", response_model=AccountResponse)
def update_profile(
    body: UpdateProfileRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountResponse:
    account = accounts.update_profile(
        current_user.id, username=body.username, email=body.email, image=body.image
    )
    return AccountResponse(
        user=AccountOut.model_validate(account), message="User profile updated successfully"
    )


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    accounts.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("", response_model=AccountListResponse)
def list_users(
    _staff: Annotated[CurrentUser, Depends(require_staff)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountListResponse:
    """All active accounts, newest first (staff and above)."""
    return _list(accounts.list_active())


@router.get("/search", response_model=AccountListResponse)
def search_users(
    search: Annotated[str, Query(min_length=2, max_length=100)],
    _staff: Annotated[CurrentUser, Depends(require_staff)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountListResponse:
    return _list(accounts.search(search))


@router.get("/role/{role}", response_model=AccountListResponse)
def users_by_role(
    role: UserRole,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountListResponse:
    return _list(accounts.list_by_role(role))


@router.get("/{user_id}", response_model=AccountOut)
def get_user(
    user_id: int,
    _staff: Annotated[CurrentUser, Depends(require_staff)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountOut:
    return AccountOut.model_validate(accounts.get_account(user_id))


@router.patch("/{user_id}/soft-delete", response_model=MessageResponse)
@router.delete("/{user_id}", response_model=MessageResponse)
def soft_delete_user(
    user_id: int,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    """Deactivate an account (admin and above). The row is kept."""
    accounts.soft_delete(user_id)
    return MessageResponse(message="Deleted successfully")
