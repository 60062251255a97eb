from sqlalchemy import create_engine, inspect
from sqlmodel import Session, select

from chatsync.core import config as config_module
from chatsync.db import init_db as init_module
from chatsync.models.enums import UserRole
from chatsync.models.user import User


def _memory_engine():
    return create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})


def test_init_db_creates_tables_for_sqlite_in_production(monkeypatch):
    engine = _memory_engine()
    monkeypatch.setattr(init_module, "engine", engine)
    monkeypatch.setattr(config_module.settings, "ENV", "production")
    monkeypatch.setattr(config_module.settings, "DATABASE_URL", "sqlite:///:memory:")

    init_module.init_db(drop_all=True)

    tables = inspect(engine).get_table_names()
    assert {"users", "chat_sessions", "chat_messages"} <= set(tables)


def test_init_db_creates_tables_when_auto_create_enabled(monkeypatch):
    engine = _memory_engine()
    monkeypatch.setattr(init_module, "engine", engine)
    monkeypatch.setattr(config_module.settings, "ENV", "production")
    monkeypatch.setattr(config_module.settings, "DATABASE_URL", "mysql+pymysql://chat:chat@db:3306/chatsync")
    monkeypatch.setattr(config_module.settings, "AUTO_CREATE_TABLES", True)

    init_module.init_db(drop_all=True)

    assert "users" in inspect(engine).get_table_names()


def test_init_db_skips_tables_in_production_without_auto_create(monkeypatch):
    engine = _memory_engine()
    monkeypatch.setattr(init_module, "engine", engine)
    monkeypatch.setattr(config_module.settings, "ENV", "production")
    monkeypatch.setattr(config_module.settings, "DATABASE_URL", "mysql+pymysql://chat:chat@db:3306/chatsync")
    monkeypatch.setattr(config_module.settings, "AUTO_CREATE_TABLES", False)

    init_module.init_db()

    assert inspect(engine).get_table_names() == []


def test_seed_admin_is_idempotent(monkeypatch):
    engine = _memory_engine()
    monkeypatch.setattr(init_module, "engine", engine)
    monkeypatch.setattr(config_module.settings, "DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setattr(config_module.settings, "ADMIN_EMAIL", "root@b.com")
    monkeypatch.setattr(config_module.settings, "ADMIN_PASSWORD", "secret123")
    init_module.init_db()

    init_module.seed_admin()
    init_module.seed_admin()

    with Session(engine) as session:
        admins = session.exec(select(User).where(User.email == "root@b.com")).all()
    assert len(admins) == 1
    assert admins[0].role == UserRole.ADMIN
