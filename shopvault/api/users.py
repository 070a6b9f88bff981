"""
ShopVault — User routes
"""
from fastapi import APIRouter, Depends, status

from shopvault.api.deps import get_vault
from shopvault.db.container import ShopVault
from shopvault.schemas.user import UserCreate, UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, vault: ShopVault = Depends(get_vault)):
    return await vault.users.create(payload)


@router.get("/email/{email}", response_model=UserResponse)
async def get_user_by_email(email: str, vault: ShopVault = Depends(get_vault)):
    return await vault.users.get_by_email(email)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, vault: ShopVault = Depends(get_vault)):
    return await vault.users.get(user_id)
