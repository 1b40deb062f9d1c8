"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import UUID

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import tourhub.models  # noqa: F401
from tourhub.core import database as db_module
from tourhub.core.config import settings
from tourhub.core.database import Base, get_db
from tourhub.core.permissions import AuthenticatedPrincipal
from tourhub.main import app
from tourhub.models.user import GuideStatus, User, UserRole
from tourhub.repositories.user_repository import UserRepository
from tourhub.schemas.booking import BookingCreate
from tourhub.schemas.destination import DestinationCreate
from tourhub.services.workflow_service import WorkflowService

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# name -> (role, guide_status)
SEED_USERS: dict[str, tuple[UserRole, GuideStatus]] = {
    "admin": (UserRole.ADMIN, GuideStatus.UNVERIFIED),
    "admin2": (UserRole.ADMIN, GuideStatus.UNVERIFIED),
    "auditor": (UserRole.AUDITOR, GuideStatus.UNVERIFIED),
    "guide": (UserRole.GUIDE, GuideStatus.VERIFIED),
    "guide2": (UserRole.GUIDE, GuideStatus.VERIFIED),
    "traveler": (UserRole.USER, GuideStatus.UNVERIFIED),
    "traveler2": (UserRole.USER, GuideStatus.UNVERIFIED),
}


def principal_of(user: User) -> AuthenticatedPrincipal:
    """Build the principal the auth dependency would produce for ``user``."""
    return AuthenticatedPrincipal(
        id=user.id,  # type: ignore[arg-type]
        role=str(user.role),
        guide_status=str(user.guide_status),
        is_active=bool(user.is_active),
    )


def make_token(user_id: UUID, expires_in: timedelta | None = None) -> str:
    claims: dict[str, object] = {"sub": str(user_id)}
    if expires_in is not None:
        claims["exp"] = datetime.now(UTC) + expires_in
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(principal: AuthenticatedPrincipal | UUID) -> dict[str, str]:
    user_id = principal.id if isinstance(principal, AuthenticatedPrincipal) else principal
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def future_date(days: int = 30) -> datetime:
    return datetime.now(UTC) + timedelta(days=days)


def create_destination(
    db: Session,
    owner: AuthenticatedPrincipal,
    name: str = "Lake Toba",
    region: str | None = "Sumatra",
) -> UUID:
    """Create a draft destination owned by ``owner`` and return its id."""
    data = DestinationCreate(
        name=name,
        description="Volcanic crater lake in North Sumatra",
        location="Samosir",
        region=region,
    )
    result = WorkflowService(db).create_destination(owner, data)
    return result.entity.id  # type: ignore[no-any-return]


def pending_destination(
    db: Session, owner: AuthenticatedPrincipal, name: str = "Lake Toba"
) -> UUID:
    destination_id = create_destination(db, owner, name=name)
    WorkflowService(db).request_transition(owner, "destination", destination_id, "submit")
    return destination_id


def approved_destination(
    db: Session,
    owner: AuthenticatedPrincipal,
    moderator: AuthenticatedPrincipal,
    name: str = "Lake Toba",
) -> UUID:
    destination_id = pending_destination(db, owner, name=name)
    WorkflowService(db).request_transition(moderator, "destination", destination_id, "approve")
    return destination_id


def create_booking(
    db: Session, traveler: AuthenticatedPrincipal, destination_id: UUID, days: int = 30
) -> UUID:
    data = BookingCreate(destination_id=destination_id, booking_date=future_date(days))
    result = WorkflowService(db).create_booking(traveler, data)
    return result.entity.id  # type: ignore[no-any-return]


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    # Patch module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    # Restore originals
    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture(autouse=True)
def enqueued():
    """Capture notification jobs instead of talking to Redis."""
    with patch(
        "tourhub.tasks.enqueue_task", new_callable=AsyncMock
    ) as mock_enqueue:
        yield mock_enqueue


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def db_session():
    """Create a database session for direct service and repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def users(db_session: Session) -> dict[str, AuthenticatedPrincipal]:
    """Seed one account per role and return their principals by name."""
    repo = UserRepository(db_session)
    seeded: dict[str, AuthenticatedPrincipal] = {}
    for name, (role, guide_status) in SEED_USERS.items():
        user = repo.create(
            email=f"{name}@example.com",
            name=name.capitalize(),
            role=role,
            guide_status=guide_status,
        )
        seeded[name] = principal_of(user)
    return seeded
