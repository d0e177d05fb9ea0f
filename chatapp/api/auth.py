import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chatapp.database import get_db
from chatapp.repositories.user_repository import UserRepository
from chatapp.schemas.user import UserCreate, UserLogin, UserUpdate, serialize_user
from chatapp.auth import authenticate_user, create_user_token, get_current_user
from chatapp.models.user import User
from chatapp.uploads import ImageUploader, get_image_uploader
from chatapp.websocket_manager import manager

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/signup")
async def signup(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    try:
        user_repo = UserRepository(db)
        if await user_repo.exists_by_email(user_data.email):
            return {"success": False, "message": "Account already exists"}

        user = await user_repo.create(user_data)
        logger.info("Created user %s", user.id)

        return {
            "success": True,
            "userData": serialize_user(user),
            "token": create_user_token(user),
            "message": "Account created successfully"
        }
    except Exception as e:
        logger.exception("Signup failed")
        return {"success": False, "message": str(e)}

@router.post("/login")
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    try:
        user = await authenticate_user(db, credentials.email, credentials.password)
        if not user:
            return {"success": False, "message": "Invalid credentials"}

        return {
            "success": True,
            "userData": serialize_user(user),
            "token": create_user_token(user),
            "message": "Login successful"
        }
    except Exception as e:
        logger.exception("Login failed")
        return {"success": False, "message": str(e)}

@router.get("/check")
async def check_auth(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": serialize_user(current_user)}

@router.put("/update-profile")
async def update_profile(
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    uploader: ImageUploader = Depends(get_image_uploader)
):
    user_id = current_user.id
    try:
        fields = user_data.model_dump(exclude_unset=True, exclude_none=True, exclude={"profile_pic"})
        if user_data.profile_pic:
            fields["profile_pic"] = await uploader.upload(user_data.profile_pic)

        user = await UserRepository(db).update(user_id, fields)
        return {"success": True, "user": serialize_user(user)}
    except Exception as e:
        logger.exception("Profile update failed for user %s", user_id)
        return {"success": False, "message": str(e)}

@router.delete("/delete/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Remove a user; their messages stay in the other party's history"""
    caller_id = current_user.id
    try:
        if not await UserRepository(db).delete(user_id):
            return {"success": False, "message": "User not found"}

        logger.info("User %s deleted by %s", user_id, caller_id)
        await manager.drop_user(user_id)
        return {"success": True, "message": "User deleted successfully"}
    except Exception as e:
        logger.exception("Failed to delete user %s", user_id)
        return {"success": False, "message": str(e)}
