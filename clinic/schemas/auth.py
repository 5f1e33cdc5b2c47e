from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not any(c.isdigit() for c in v) or not any(c.isalpha() for c in v):
            raise ValueError("Password must contain letters and digits")
        return v

class SessionResponse(BaseModel):
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    role_id: Optional[int] = None
    role: Optional[str] = None
    is_admin: bool = False

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: SessionResponse

class PermissionRuleResponse(BaseModel):
    action: str
    subject: str
    fields: Optional[List[str]] = None

class AbilityResponse(BaseModel):
    role: Optional[str] = None
    rules: List[PermissionRuleResponse]

class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role_id: int
    name: str
    description: Optional[str] = None
    is_active: int = 1

class PermissionRowResponse(BaseModel):
    subject: str
    action: str
    field_name: Optional[str] = None
    can_access: Optional[int] = None

class UserPermissionsResponse(BaseModel):
    user_id: int
    username: str
    full_name: Optional[str] = None
    role_name: str
    permissions: List[PermissionRowResponse]

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=255)
    role_id: int

class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role_id: Optional[int] = None
    is_active: Optional[bool] = None

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role_id: Optional[int] = None
    is_admin: bool = False
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
