import asyncio
import logging

from sqlalchemy import func, select

from app.core.permissions import Role
from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed the database with the initial administrator.
    """
    async with AsyncSessionLocal() as session:
        email = settings.seed_admin_email.lower()
        stmt = select(User).where(func.lower(User.email) == email)
        result = await session.execute(stmt)
        user = result.scalar_one_or_none()

        if user:
            logger.info("Seed admin %s already exists", email)
            return

        session.add(
            User(
                email=email,
                hashed_password=get_password_hash(settings.seed_admin_password),
                is_active=True,
                role=Role.ADMIN.value,
                token_version=0,
                full_name=settings.seed_admin_full_name,
            )
        )
        await session.commit()
        logger.info("Seed admin %s created", email)


if __name__ == "__main__":
    asyncio.run(init_db())
