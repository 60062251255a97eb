from loguru import logger
from sqlmodel import Session, SQLModel, select
from chatsync.db.session import engine
from chatsync.core.config import settings
from chatsync.models import (  # noqa: F401
    user,
    chat_session,
    chat_message,
)
from chatsync.models.enums import UserRole
from chatsync.models.user import User
from chatsync.services.auth_service import hash_password


def init_db(drop_all: bool = False) -> None:
    if drop_all:
        SQLModel.metadata.drop_all(engine)
    if (
        settings.DATABASE_URL.startswith('sqlite')
        or settings.ENV != 'production'
        or settings.AUTO_CREATE_TABLES
    ):
        SQLModel.metadata.create_all(engine)


def seed_admin() -> None:
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return
    with Session(engine) as session:
        existing = session.exec(select(User).where(User.email == settings.ADMIN_EMAIL)).first()
        if existing:
            return
        admin = User(
            email=settings.ADMIN_EMAIL,
            username=settings.ADMIN_USERNAME,
            hashed_password=hash_password(settings.ADMIN_PASSWORD),
            role=UserRole.ADMIN,
        )
        session.add(admin)
        session.commit()
        logger.info('db.seed.admin_created', email=settings.ADMIN_EMAIL)
