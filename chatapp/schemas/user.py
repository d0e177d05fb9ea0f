from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

class UserCreate(CamelModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    bio: Optional[str] = None

class UserLogin(CamelModel):
    email: EmailStr
    password: str

class UserUpdate(CamelModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    bio: Optional[str] = None
    profile_pic: Optional[str] = None

class UserResponse(CamelModel):
    id: int = Field(alias="_id")
    email: str
    full_name: str
    profile_pic: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

def serialize_user(user) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json", by_alias=True)
