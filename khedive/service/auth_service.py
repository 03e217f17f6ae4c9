import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from khedive.core.logger import get_logger
from khedive.models.users import User
from khedive.repository import user_repo
from khedive.schemas.auth import UserCreate

logger = get_logger("auth")

def get_password_hash(password: str) -> str:
    """비밀번호 평문을 bcrypt로 해싱"""
    # bcrypt는 72바이트 초과 비밀번호를 허용하지 않음: 현재는 기본 동작 사용.
    salt = bcrypt.gensalt()
    hashed_password = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed_password.decode('utf-8')

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """입력받은 평문과 DB의 해시가 일치하는지 검증"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False

async def create_user(db: AsyncSession, user_in: UserCreate) -> User:
    """회원가입 비즈니스 로직"""

    # 1. 이메일 중복 확인
    if await user_repo.find_by_email(db, user_in.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already registered."
        )

    # 2. User 모델 객체 생성 (비밀번호 해싱!)
    db_user = User(
        name=user_in.name.strip(),
        email=user_in.email.lower(),
        hashed_password=get_password_hash(user_in.password)
    )

    # 3. DB 저장: 동시 가입으로 UNIQUE 위반이 나도 같은 400
    try:
        user = await user_repo.create(db, db_user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already registered."
        )

    logger.info("user registered", extra={"extra_data": {"user_id": user.id}})
    return user

async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    """로그인 검증: 유저가 없거나 비밀번호가 틀리면 None"""
    user = await user_repo.find_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
