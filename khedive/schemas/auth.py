import re
from datetime import datetime
from pydantic import EmailStr, Field, field_validator
from khedive.schemas.base import CamelModel

class UserCreate(CamelModel):
    """회원가입 요청 시 받을 데이터"""
    name: str = Field(..., min_length=1, max_length=100, description="표시 이름")
    email: EmailStr = Field(..., description="사용자 이메일 (로그인 ID)")
    password: str = Field(..., min_length=8, description="비밀번호 (8자 이상)")

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not re.search(r"[a-zA-Z]", v):
            raise ValueError('Password must contain at least one letter.')
        if not re.search(r"\d", v):
            raise ValueError('Password must contain at least one digit.')
        return v

class LoginRequest(CamelModel):
    email: EmailStr
    password: str

class RefreshRequest(CamelModel):
    refresh_token: str

class UserResponse(CamelModel):
    """회원가입/정보 조회 시 돌려줄 데이터 (비밀번호 제외!)"""
    id: str
    name: str
    email: str
    created_at: datetime

class Token(CamelModel):
    """JWT 토큰 쌍"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class AuthResponse(Token):
    """가입/로그인 성공 시: 토큰 + 유저 정보"""
    user: UserResponse
