from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    bio: str | None = None

class UserLogin(BaseModel):
    # username, email or phone number
    credentials: str
    password: str

class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=50)
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    bio: str | None = None

class UserPublic(BaseModel):
    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None

    class Config:
        from_attributes = True

class UserOut(UserPublic):
    email: str
    phone_number: str | None = None
    bio: str | None = None
    created_at: datetime | None = None
