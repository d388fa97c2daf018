from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from officetrack.core.config import Settings
from officetrack.core.database import Base, build_engine, build_session_factory
from officetrack.core.security import Identity, hash_password
from officetrack.models import AuditLog, LeaveType, User
from officetrack.services.audit import AuditSink

PASSWORD = "password123"


def at(day: str, hh: int, mm: int = 0, ss: int = 0) -> datetime:
    """UTC datetime on ``day`` (YYYY-MM-DD)."""
    year, month, dom = (int(p) for p in day.split("-"))
    return datetime(year, month, dom, hh, mm, ss, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(PASSWORD)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'officetrack.db'}",
        JWT_SECRET="test-secret",
        DEBUG=False,
        LOG_LEVEL="WARNING",
        DIRECTORY_API_URL=None,
    )


@pytest.fixture
async def engine(settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def audit(session_factory) -> AuditSink:
    return AuditSink(session_factory)


@pytest.fixture
async def users(session_factory, password_hash) -> dict[str, User]:
    """admin, hr, a manager with two reports, and an employee outside that team."""
    async with session_factory() as session:
        admin = User(email="admin@example.com", first_name="Ada", last_name="Admin",
                     hashed_password=password_hash, role="admin")
        hr = User(email="hr@example.com", first_name="Harper", last_name="Hr",
                  hashed_password=password_hash, role="hr")
        manager = User(email="manager@example.com", first_name="Morgan", last_name="Lead",
                       hashed_password=password_hash, role="manager")
        session.add_all([admin, hr, manager])
        await session.flush()

        employee = User(email="employee@example.com", first_name="Emery", last_name="Dev",
                        hashed_password=password_hash, role="employee", manager_id=manager.id)
        teammate = User(email="teammate@example.com", first_name="Taylor", last_name="Dev",
                        hashed_password=password_hash, role="employee", manager_id=manager.id)
        outsider = User(email="outsider@example.com", first_name="Quinn", last_name="Ops",
                        hashed_password=password_hash, role="employee", manager_id=admin.id)
        session.add_all([employee, teammate, outsider])
        await session.commit()
        return {
            "admin": admin,
            "hr": hr,
            "manager": manager,
            "employee": employee,
            "teammate": teammate,
            "outsider": outsider,
        }


@pytest.fixture
def identities(users) -> dict[str, Identity]:
    return {key: Identity(user_id=u.id, role=u.role) for key, u in users.items()}


@pytest.fixture
async def leave_types(session_factory) -> dict[str, LeaveType]:
    async with session_factory() as session:
        cl = LeaveType(code="CL", name="Casual Leave", annual_quota=960)
        sl = LeaveType(code="SL", name="Sick Leave", annual_quota=4800)
        old = LeaveType(code="OLD", name="Retired Leave", annual_quota=0, is_active=False)
        session.add_all([cl, sl, old])
        await session.commit()
        return {"CL": cl, "SL": sl, "OLD": old}


@pytest.fixture
def audit_entries(session_factory):
    async def _entries(action=None, entity_id=None) -> list[AuditLog]:
        async with session_factory() as session:
            query = select(AuditLog).order_by(AuditLog.created_at.asc())
            if action is not None:
                query = query.where(AuditLog.action == action)
            if entity_id is not None:
                query = query.where(AuditLog.entity_id == entity_id)
            result = await session.execute(query)
            return list(result.scalars().all())

    return _entries
