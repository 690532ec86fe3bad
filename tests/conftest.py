"""
Pytest fixtures for indicator workflow tests.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from indicator_workflow.config import Settings
from indicator_workflow.database import create_session_maker, init_db
from indicator_workflow.engines.submission.attachments import LocalAttachmentStorage
from indicator_workflow.kernel.events.dispatcher import EventDispatcher
from indicator_workflow.kernel.models import (
    ComplianceType,
    DeliveryLocation,
    IndicatableType,
    IndicatorCompliance,
    IndicatorComplianceProgramme,
    IndicatorComplianceProgrammeMonth,
    IndicatorSuccess,
    IndicatorSuccessProgramme,
    IndicatorSuccessProgrammeMonth,
    IndicatorTask,
    IndicatorTaskStatus,
    Organisation,
    Programme,
    ResponseFormat,
    Role,
    Tenant,
    TenantCluster,
    User,
)
from indicator_workflow.orchestration.listeners import register_workflow_listeners

VERIFIER_ROLE_NAMES = (
    "Mentor",
    "Programme Manager",
    "Programme Coordinator",
    "Regional Coordinator",
    "Regional Manager",
    "ESO Manager",
)

# In-memory database shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with create_session_maker(db_engine)() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return Settings(indicator_review_task_days=7, database_url=TEST_DATABASE_URL)


@pytest.fixture
def storage(tmp_path) -> LocalAttachmentStorage:
    return LocalAttachmentStorage(str(tmp_path / "attachments"))


class RecordingNotifier:
    """Notifier that records every call for assertions."""

    def __init__(self):
        self.awaiting: List[Tuple[uuid.UUID, uuid.UUID]] = []
        self.rejected: List[uuid.UUID] = []
        self.completed: List[uuid.UUID] = []

    async def awaiting_verification(self, review_task, verifier) -> None:
        self.awaiting.append((review_task.id, verifier.id))

    async def submission_rejected(self, submission, review) -> None:
        self.rejected.append(submission.id)

    async def task_completed(self, task, submission) -> None:
        self.completed.append(task.id)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    """Dispatcher with no listeners (services are driven directly)."""
    return EventDispatcher()


@pytest.fixture
def workflow_dispatcher(notifier: RecordingNotifier, settings: Settings) -> EventDispatcher:
    """Dispatcher with the full verification workflow registered."""
    dispatcher = EventDispatcher()
    register_workflow_listeners(dispatcher, notifier, settings_provider=lambda: settings)
    return dispatcher


@pytest_asyncio.fixture
async def roles(db_session: AsyncSession) -> Dict[str, Role]:
    """All verifier roles keyed by slug."""
    created = [Role(name=name) for name in VERIFIER_ROLE_NAMES]
    db_session.add_all(created)
    await db_session.commit()
    return {role.slug: role for role in created}


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(name: str, permissions: Optional[list] = None, **kwargs) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:6]}@example.com",
            name=name,
            permissions=permissions or [],
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@dataclass
class Seat:
    """An entrepreneur enrolled in a programme through an organisation."""

    entrepreneur: User
    organisation: Organisation
    programme: Programme
    delivery_location: DeliveryLocation
    tenant: Tenant
    cluster: TenantCluster


@pytest_asyncio.fixture
async def seat(db_session: AsyncSession, make_user) -> Seat:
    # No relationship() links these rows, so flush parents before children
    cluster = TenantCluster(id=uuid.uuid4(), name="Cape Cluster")
    location = DeliveryLocation(id=uuid.uuid4(), name="Cape Town")
    db_session.add_all([cluster, location])
    await db_session.flush()

    tenant = Tenant(id=uuid.uuid4(), name="Cape ESO", cluster_id=cluster.id)
    db_session.add(tenant)
    await db_session.flush()

    organisation = Organisation(
        id=uuid.uuid4(),
        name="Acme Bakery",
        delivery_location_id=location.id,
        primary_tenant_id=tenant.id,
    )
    programme = Programme(id=uuid.uuid4(), title="Growth Accelerator", duration=12)
    db_session.add_all([organisation, programme])
    await db_session.commit()

    entrepreneur = await make_user("Thandi Entrepreneur")
    return Seat(
        entrepreneur=entrepreneur,
        organisation=organisation,
        programme=programme,
        delivery_location=location,
        tenant=tenant,
        cluster=cluster,
    )


@dataclass
class TaskBundle:
    """A task together with the indicator rows it points at."""

    task: IndicatorTask
    indicator: object
    association: object
    month: object
    extra: dict = field(default_factory=dict)


@pytest.fixture
def make_task(db_session: AsyncSession, seat: Seat):
    """Create indicator -> programme association -> month -> task in one go."""

    async def _make(
        *,
        verifier_1_role: Optional[Role] = None,
        verifier_2_role: Optional[Role] = None,
        acceptance_value: Optional[str] = None,
        response_format: ResponseFormat = ResponseFormat.NUMERIC,
        compliance_type: Optional[ComplianceType] = None,
        status: IndicatorTaskStatus = IndicatorTaskStatus.PENDING,
        due_date: Optional[date] = None,
        target_value: Optional[float] = None,
        **task_fields,
    ) -> TaskBundle:
        common = dict(
            id=uuid.uuid4(),
            title="Monthly revenue",
            response_format=response_format,
            acceptance_value=acceptance_value,
            verifier_1_role_id=verifier_1_role.id if verifier_1_role else None,
            verifier_2_role_id=verifier_2_role.id if verifier_2_role else None,
        )
        if compliance_type is None:
            kind = IndicatableType.SUCCESS
            indicator = IndicatorSuccess(**common)
            association = IndicatorSuccessProgramme(
                id=uuid.uuid4(),
                indicator_success_id=indicator.id,
                programme_id=seat.programme.id,
            )
            month = IndicatorSuccessProgrammeMonth(
                id=uuid.uuid4(),
                indicator_success_programme_id=association.id,
                programme_month=1,
                target_value=target_value,
            )
        else:
            kind = IndicatableType.COMPLIANCE
            indicator = IndicatorCompliance(type=compliance_type, **common)
            association = IndicatorComplianceProgramme(
                id=uuid.uuid4(),
                indicator_compliance_id=indicator.id,
                programme_id=seat.programme.id,
            )
            month = IndicatorComplianceProgrammeMonth(
                id=uuid.uuid4(),
                indicator_compliance_programme_id=association.id,
                programme_month=1,
                target_value=target_value,
            )

        db_session.add(indicator)
        await db_session.flush()
        db_session.add(association)
        await db_session.flush()
        db_session.add(month)
        await db_session.flush()

        fields = dict(
            id=uuid.uuid4(),
            entrepreneur_id=seat.entrepreneur.id,
            organisation_id=seat.organisation.id,
            programme_id=seat.programme.id,
            indicatable_type=kind,
            indicatable_id=indicator.id,
            indicatable_month_type=kind,
            indicatable_month_id=month.id,
            due_date=due_date or date.today() + timedelta(days=14),
            status=status,
        )
        fields.update(task_fields)
        task = IndicatorTask(**fields)
        db_session.add(task)
        await db_session.commit()
        return TaskBundle(task=task, indicator=indicator, association=association, month=month)

    return _make
