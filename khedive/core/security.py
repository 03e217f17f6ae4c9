"""
토큰 발급/검증

서명된 JWT가 "현재 유저"의 유일한 출처다. 클라이언트가 보낸 유저 객체는 믿지 않고
요청마다 토큰을 검증해서 sub(유저 ID)로 DB에서 다시 읽는다.
"""
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from khedive.core.config import settings
from khedive.core.database import get_db
from khedive.models.users import User
from khedive.repository import user_repo

# HTTPBearer: Authorization 헤더에서 "Bearer <token>" 자동 추출
# auto_error=False: 게스트 허용 엔드포인트가 있어서 자동 에러를 끕니다.
security_schema = HTTPBearer(auto_error=False)

def _create_token(user_id: str, token_type: str, expires_delta: timedelta) -> str:
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

def create_access_token(user_id: str) -> str:
    return _create_token(user_id, "access", timedelta(minutes=settings.jwt_expire_minutes))

def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, "refresh", timedelta(days=settings.jwt_refresh_expire_days))

def decode_token(token: str, expected_type: str) -> str:
    """서명/만료/타입 검증 후 user_id 반환: 실패하면 401"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token verification failed")

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != expected_type:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid {expected_type} token")
    return user_id

async def _load_user(db: AsyncSession, user_id: str) -> User:
    user = await user_repo.find_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user

async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_schema),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    게스트 허용 엔드포인트용 (채팅, 업로드)
    - 토큰 없음 → None (게스트)
    - 토큰이 있는데 검증 실패 → 401 (조용히 게스트로 낮추지 않음)
    """
    if credentials is None:
        return None
    user_id = decode_token(credentials.credentials, "access")
    return await _load_user(db, user_id)

async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """로그인 필수 엔드포인트용"""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

async def verify_refresh_token(refresh_token: str, db: AsyncSession) -> User:
    """리프레시 토큰을 검증하고 User 객체를 반환합니다."""
    user_id = decode_token(refresh_token, "refresh")
    return await _load_user(db, user_id)
