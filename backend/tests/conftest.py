"""Pytest configuration and fixtures."""

import pytest
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from momo_pos.core.rbac import SessionContext, UserRole
from momo_pos.core.security import get_password_hash, create_access_token
from momo_pos.db.base import Base
from momo_pos.db.session import get_db
from momo_pos.main import app
# Import all models to ensure they're registered with Base.metadata
from momo_pos.models import *
from momo_pos.models.inventory import CentralMaterial, MaterialCategory
from momo_pos.models.menu import MenuCategory, MenuItem, RecipeLine, Size
from momo_pos.models.user import Station, User

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

BRANCH = "Koramangala"
OTHER_BRANCH = "Indiranagar"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from momo_pos.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


# ============== Accounts ==============

@pytest.fixture
def stations(db_session: Session) -> dict:
    """Two branches."""
    main = Station(name=BRANCH, location="5th Block")
    other = Station(name=OTHER_BRANCH, location="100ft Road")
    db_session.add_all([main, other])
    db_session.commit()
    return {"main": main, "other": other}


@pytest.fixture
def admin_user(db_session: Session) -> User:
    """Hub administrator without a station."""
    user = User(
        username="admin",
        password_hash=get_password_hash("adminpass123"),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def manager_user(db_session: Session, stations: dict) -> User:
    """Store manager pinned to the main branch."""
    user = User(
        username="manager",
        password_hash=get_password_hash("managerpass123"),
        role=UserRole.STORE_MANAGER,
        station_id=stations["main"].id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def _token_for(user: User) -> str:
    return create_access_token(
        data={"sub": str(user.id), "username": user.username, "role": user.role.value}
    )


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    """Authorization headers for the admin."""
    return {"Authorization": f"Bearer {_token_for(admin_user)}"}


@pytest.fixture
def manager_headers(manager_user: User) -> dict:
    """Authorization headers for the store manager."""
    return {"Authorization": f"Bearer {_token_for(manager_user)}"}


@pytest.fixture
def admin_context(admin_user: User) -> SessionContext:
    return SessionContext(admin_user.id, admin_user.username, UserRole.ADMIN)


@pytest.fixture
def manager_context(manager_user: User) -> SessionContext:
    return SessionContext(manager_user.id, manager_user.username, UserRole.STORE_MANAGER, BRANCH)


# ============== Catalog and stock ==============

@pytest.fixture
def momo_setup(db_session: Session) -> dict:
    """Hub materials plus a momo, a combo and a drink on the menu."""
    chicken = CentralMaterial(
        id="momo-chicken", name="Chicken Momo (Bulk)", unit="pcs",
        category=MaterialCategory.MOMO, current_stock=Decimal("500"), is_finished=False,
    )
    fries = CentralMaterial(
        id="pkt-fries", name="French Fries (Bulk)", unit="pkt",
        category=MaterialCategory.PACKET, current_stock=Decimal("20"), is_finished=False,
    )
    mayo = CentralMaterial(
        id="pkt-mayo", name="Mayonnaise", unit="pkt",
        category=MaterialCategory.PACKET, current_stock=Decimal("10"), is_finished=False,
    )
    db_session.add_all([chicken, fries, mayo])

    chicken_momo = MenuItem(
        id="chicken-momo",
        name="Chicken Momo",
        category=MenuCategory.MOMO,
        preparations={
            "steamed": {"small": 60, "medium": 90, "large": 120},
            "fried": {"small": 70, "medium": 100, "large": 130},
        },
        costs={
            "steamed": {"small": 20, "medium": 30, "large": 40},
            "fried": {"small": 25, "medium": 35, "large": 45},
        },
        recipe_lines=[RecipeLine(material_id="momo-chicken", quantity=Decimal("1"))],
    )
    combo = MenuItem(
        id="fries-combo",
        name="Fries Combo",
        category=MenuCategory.COMBO,
        preparations={"normal": {"medium": 150, "large": 200}},
        costs={"normal": {"medium": 50, "large": 70}},
        recipe_lines=[
            RecipeLine(material_id="pkt-fries", quantity=Decimal("0.25")),
            RecipeLine(material_id="pkt-fries", quantity=Decimal("0.5"), size=Size.LARGE),
        ],
    )
    cola = MenuItem(
        id="cola",
        name="Cola",
        category=MenuCategory.DRINK,
        preparations={"normal": {"medium": 40}},
        costs={"normal": {"medium": 15}},
        recipe_lines=[RecipeLine(material_id="drink-cola", quantity=Decimal("1"))],
    )
    db_session.add_all([chicken_momo, combo, cola])
    db_session.commit()

    return {
        "chicken": chicken,
        "fries": fries,
        "mayo": mayo,
        "chicken_momo": chicken_momo,
        "combo": combo,
        "cola": cola,
        "db": db_session,
    }
