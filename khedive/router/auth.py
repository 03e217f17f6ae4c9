from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from khedive.core.database import get_db
from khedive.core.security import create_access_token, create_refresh_token, get_current_user, verify_refresh_token
from khedive.models.users import User
from khedive.schemas.auth import AuthResponse, LoginRequest, RefreshRequest, Token, UserCreate, UserResponse
from khedive.service.auth_service import create_user, authenticate_user

router = APIRouter()

def _issue(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )

@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    """새로운 사용자를 등록하고 바로 토큰을 발급합니다."""
    # 중복 검사는 service에서 처리
    user = await create_user(db, user_in)
    return _issue(user)

@router.post("/login", response_model=AuthResponse)
async def login(credentials: LoginRequest, db: AsyncSession = Depends(get_db)):
    """이메일/비밀번호를 확인하고 JWT 토큰 쌍을 반환합니다."""
    user = await authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue(user)

@router.post("/refresh", response_model=Token)
async def refresh_token(request: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """리프레시 토큰을 사용해 새로운 토큰 쌍을 발급받습니다."""
    user = await verify_refresh_token(request.refresh_token, db)
    return Token(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )

@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """토큰을 검증하고 현재 사용자를 반환합니다."""
    return current_user
