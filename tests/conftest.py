import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PAYROLL_SEED_DEFAULT_COMPONENTS"] = "false"

from app.database import Base, get_db
from app.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    # Use sessionmaker with the active connection
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()

@pytest.fixture(scope="function")
def default_components(db_session):
    """Install the organisation default salary structure."""
    from app.services import payroll_service

    payroll_service.seed_default_components(db_session)
    return payroll_service.get_default_components(db_session)

@pytest.fixture(scope="function")
def make_employee(db_session):
    """Factory fixture creating employees with a given annual CTC."""
    from app.models.employee import Employee

    def _make_employee(employee_id, ctc=1200000.0, name=None):
        employee = Employee(id=employee_id, name=name or f"Employee {employee_id}", ctc=ctc)
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make_employee

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
