"""
Pytest configuration and fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-identity-tokens-0123456789")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from app.main import app
from app.db.base import Base
from app.core.deps import get_db
from app.core.security import create_access_token
from app.models import Company, Employee, RoleModel  # noqa: F401  (registers all models)
from app.services.scope_gate import ScopeContext


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def race_session_factory(tmp_path):
    """
    Session factory over a file-backed SQLite database

    Two sessions from this factory use separate connections, so they can
    interleave like two concurrent requests.
    """
    race_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    Base.metadata.create_all(bind=race_engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=race_engine)
    finally:
        race_engine.dispose()


def create_company(db, name: str, slug: str) -> Company:
    company = Company(name=name, slug=slug)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def create_employee(db, company: Company, user_id: str, full_name: str, is_admin: bool = False,
                    status: str = "active") -> Employee:
    employee = Employee(
        company_id=company.id,
        user_id=user_id,
        full_name=full_name,
        email=f"{user_id}@example.com",
        is_admin=is_admin,
        status=status,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def create_role(db, company: Company, title: str, level: str = None) -> RoleModel:
    role = RoleModel(company_id=company.id, title=title, level=level, active=True)
    db.add(role)
    db.commit()
    db.refresh(role)
    return role


def auth_headers(employee: Employee) -> dict:
    token = create_access_token({"sub": employee.user_id})
    return {"Authorization": f"Bearer {token}"}


def scope_for(employee: Employee) -> ScopeContext:
    return ScopeContext(
        company_id=employee.company_id,
        employee_id=employee.id,
        is_admin=bool(employee.is_admin),
    )


@pytest.fixture
def company(db):
    return create_company(db, "Acme", "acme")


@pytest.fixture
def other_company(db):
    return create_company(db, "Globex", "globex")


@pytest.fixture
def admin(db, company):
    return create_employee(db, company, "admin-acme", "Alice Admin", is_admin=True)


@pytest.fixture
def employee(db, company):
    return create_employee(db, company, "emp-acme", "Bob Builder")


@pytest.fixture
def coworker(db, company):
    return create_employee(db, company, "emp2-acme", "Carol Coworker")


@pytest.fixture
def foreign_admin(db, other_company):
    return create_employee(db, other_company, "admin-globex", "Gary Globex", is_admin=True)


@pytest.fixture
def foreign_employee(db, other_company):
    return create_employee(db, other_company, "emp-globex", "Gina Globex")


@pytest.fixture
def role_engineer(db, company):
    return create_role(db, company, "Engineer", "junior")


@pytest.fixture
def role_senior(db, company):
    return create_role(db, company, "Senior Engineer", "senior")


@pytest.fixture
def foreign_role(db, other_company):
    return create_role(db, other_company, "Analyst")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def employee_headers(employee):
    return auth_headers(employee)


@pytest.fixture
def make_employee(db):
    """Factory: make_employee(company, user_id, full_name, is_admin=False, status="active")"""
    def _make(company, user_id, full_name, is_admin=False, status="active"):
        return create_employee(db, company, user_id, full_name, is_admin=is_admin, status=status)
    return _make


@pytest.fixture
def headers_for():
    """Factory: bearer headers carrying the employee's identity"""
    return auth_headers


@pytest.fixture
def scope_of():
    """Factory: ScopeContext as the gate would resolve it for the employee"""
    return scope_for
