import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JOB_WORKER_ENABLED", "false")
os.environ["OPENAI_API_KEY"] = ""

from typing import Optional
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import Conversation, Customer, Message, Tenant, User
from app.models.enums import Direction, MessageChannel
from app.services.auth_service import create_access_token, hash_password
from app.services.capabilities import reset_capabilities
from app.services.channels import ChannelAdapter, get_whatsapp_adapter
from app.services.result import Result
from app.services.tenant_service import DEFAULT_TENANT_SETTINGS


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite opens transactions lazily, which breaks SAVEPOINT. Let SQLAlchemy emit BEGIN.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Real SQLAlchemy session on an in-memory SQLite database."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _reset_capabilities():
    reset_capabilities()
    yield
    reset_capabilities()


@pytest.fixture
def fake_adapter():
    """Channel adapter that records sends and always succeeds."""
    adapter = Mock(spec=ChannelAdapter)
    adapter.send_text.return_value = Result.success("bb-msg-1")
    return adapter


@pytest.fixture
def client(db_session, fake_adapter):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_whatsapp_adapter] = lambda: fake_adapter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")


# Factories


def make_tenant(db, slug: str = "demo", settings: Optional[dict] = None, name: Optional[str] = None) -> Tenant:
    tenant = Tenant(slug=slug, name=name or slug.title(), settings=settings or dict(DEFAULT_TENANT_SETTINGS))
    db.add(tenant)
    db.commit()
    return tenant


def make_user(db, tenant: Tenant, email: str = "agent@demo.local", password: str = "secret", role: str = "AGENT") -> User:
    user = User(tenant_id=tenant.id, email=email, name="Agent", password_hash=hash_password(password), role=role)
    db.add(user)
    db.commit()
    return user


def make_conversation(
    db,
    tenant: Tenant,
    phone: str = "+5491112345678",
    text: Optional[str] = "hola",
    channel: str = MessageChannel.WHATSAPP.value,
) -> Conversation:
    customer = Customer(tenant_id=tenant.id, phone_number=phone, name=f"Cliente {phone}")
    db.add(customer)
    db.flush()
    conversation = Conversation(tenant_id=tenant.id, customer_id=customer.id, primary_channel=channel)
    db.add(conversation)
    db.flush()
    if text is not None:
        db.add(Message(conversation_id=conversation.id, channel=channel, direction=Direction.INBOUND.value, text=text))
    db.commit()
    return conversation


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}
