from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from khedive.models.users import User


async def find_by_id(db: AsyncSession, user_id: str) -> User | None:
    """토큰의 sub(유저 ID)로 조회"""
    return await db.get(User, user_id)


async def find_by_email(db: AsyncSession, email: str) -> User | None:
    """이메일로 유저 조회 (대소문자 무시: 저장 시 소문자로 정규화)"""
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


async def create(db: AsyncSession, user: User) -> User:
    """유저 저장"""
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
