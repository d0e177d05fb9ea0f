from sqlalchemy import Column, String, Text
from .base import BaseModel

class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    profile_pic = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
