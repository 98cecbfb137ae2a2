import pytest
import os
import uuid

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENABLE_API_LOGGING"] = "false"

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

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

# pysqlite only opens a transaction before DML, so a SAVEPOINT could escape the
# per-test transaction. Let SQLAlchemy emit BEGIN itself.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None

@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")

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
def make_employee(db_session):
    """Factory: a user with the given role plus their employee record."""
    from app.models.employee import Employee
    from app.models.user import User, UserRole
    from app.services.employee_service import format_employee_code

    def _make_employee(role=UserRole.EMPLOYEE, name=None, email=None, is_active=True, **fields):
        token = uuid.uuid4().hex[:8]
        user = User(
            sso_subject=f"sso|{token}",
            email=email or f"{token}@company.com",
            name=name or f"User {token}",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        employee = Employee(user_id=user.id, full_name=user.name, **fields)
        db_session.add(employee)
        db_session.flush()
        employee.employee_code = format_employee_code(employee.id)
        db_session.commit()
        return employee
    return _make_employee

@pytest.fixture(scope="function")
def link_managers(db_session):
    """Factory: attach managers to an employee in the given order."""
    from app.models.employee import EmployeeManagement

    def _link_managers(employee, *managers):
        for manager in managers:
            db_session.add(EmployeeManagement(employee_id=employee.id, manager_id=manager.id))
        db_session.commit()
        db_session.refresh(employee)
        return employee
    return _link_managers

@pytest.fixture(scope="function")
def make_leave_type(db_session):
    """Factory: a catalog entry; keyword arguments override the defaults."""
    from app.models.leave_type import LeaveTypeConfig

    def _make_leave_type(code, name=None, default_balance=10, **fields):
        leave_type = LeaveTypeConfig(
            code=code,
            name=name or code.title(),
            default_balance=default_balance,
            **fields,
        )
        db_session.add(leave_type)
        db_session.commit()
        return leave_type
    return _make_leave_type

@pytest.fixture(scope="function")
def portal_settings(db_session):
    """Factory: adjust the global settings row for a test."""
    from app.services.settings_service import get_settings

    def _portal_settings(**values):
        row = get_settings(db_session)
        for field, value in values.items():
            setattr(row, field, value)
        db_session.commit()
        return row
    return _portal_settings

@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create SSO access tokens for a user."""
    from app.services.auth import create_access_token

    def _get_token(user, **overrides):
        claims = {"sub": user.sso_subject, "email": user.email, "name": user.name}
        claims.update(overrides)
        return create_access_token(data=claims)
    return _get_token

@pytest.fixture(scope="function")
def auth_headers(get_token):
    """Authorization header for an employee (or a bare user)."""
    def _auth_headers(subject):
        user = getattr(subject, "user", subject)
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers

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
