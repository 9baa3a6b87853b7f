"""
Tests for ServiceJobService.
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from purifier_billing.db.models import ServiceJob, ServiceJobLog
from purifier_billing.exceptions import (
    CustomerNotFoundError,
    ServiceJobNotFoundError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.api import ServiceJobStatus
from purifier_billing.services.service_jobs import (
    ACTION_CREATED,
    ACTION_RESOLVED,
    ServiceJobService,
)
from conftest import create_mock_service_job, make_result


class TestCreateJob:
    """Tests for ServiceJobService.create_job."""

    async def test_create_snapshots_customer_contact(
        self, db_session: AsyncMock, active_customer: MagicMock, fixed_datetime: datetime
    ):
        db_session.execute = AsyncMock(return_value=make_result(scalar=active_customer))
        service = ServiceJobService(db_session)

        job = await service.create_job(
            customer_id="JH09d01301",
            problem_description="  Leaking filter housing ",
            now=fixed_datetime,
        )

        assert job.status == ServiceJobStatus.OPEN
        assert job.customer_id == active_customer.id
        assert job.customer_name == "Asha Kumari"
        assert job.customer_address == "12 Main Road"
        assert job.problem_description == "Leaking filter housing"
        assert job.created_at == fixed_datetime

        added = [call.args[0] for call in db_session.add.call_args_list]
        assert isinstance(added[0], ServiceJob)
        assert isinstance(added[1], ServiceJobLog)
        assert added[1].action == ACTION_CREATED
        assert added[1].job_id == job.job_id
        db_session.commit.assert_awaited_once()

    async def test_create_with_address_override(
        self, db_session: AsyncMock, active_customer: MagicMock
    ):
        db_session.execute = AsyncMock(return_value=make_result(scalar=active_customer))

        job = await ServiceJobService(db_session).create_job(
            customer_id="JH09d01301",
            problem_description="No water flow",
            customer_address="Shop 4, Station Road",
        )

        assert job.customer_address == "Shop 4, Station Road"
        assert job.confirmed_map_link == active_customer.confirmed_map_link

    async def test_create_unknown_customer(self, db_session: AsyncMock):
        with pytest.raises(CustomerNotFoundError):
            await ServiceJobService(db_session).create_job("missing", "No water flow")

        db_session.add.assert_not_called()

    async def test_create_blank_description(self, db_session: AsyncMock):
        with pytest.raises(ValidationError):
            await ServiceJobService(db_session).create_job("JH09d01301", "   ")

    async def test_create_storage_failure(
        self, db_session: AsyncMock, active_customer: MagicMock
    ):
        db_session.execute = AsyncMock(return_value=make_result(scalar=active_customer))
        db_session.flush = AsyncMock(side_effect=SQLAlchemyError("disk full"))

        with pytest.raises(StorageError):
            await ServiceJobService(db_session).create_job("JH09d01301", "No water flow")

        db_session.rollback.assert_awaited_once()


class TestListJobs:
    """Tests for ServiceJobService.list_jobs."""

    async def test_list_jobs(self, db_session: AsyncMock, active_customer: MagicMock):
        jobs = [
            create_mock_service_job(active_customer),
            create_mock_service_job(active_customer, status=ServiceJobStatus.RESOLVED),
        ]
        db_session.execute = AsyncMock(return_value=make_result(rows=jobs))

        result = await ServiceJobService(db_session).list_jobs()

        assert [j.status for j in result] == [ServiceJobStatus.OPEN, ServiceJobStatus.RESOLVED]

    async def test_list_jobs_by_status(self, db_session: AsyncMock):
        result = await ServiceJobService(db_session).list_jobs(
            status=ServiceJobStatus.OPEN, limit=5
        )

        assert result == []
        db_session.execute.assert_awaited_once()

    async def test_list_jobs_invalid_limit(self, db_session: AsyncMock):
        with pytest.raises(ValidationError):
            await ServiceJobService(db_session).list_jobs(limit=0)

    async def test_list_jobs_store_failure(self, db_session: AsyncMock):
        db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection refused"))
        )

        with pytest.raises(StorageError):
            await ServiceJobService(db_session).list_jobs()

        db_session.rollback.assert_awaited_once()


class TestResolveJob:
    """Tests for ServiceJobService.resolve_job."""

    async def test_resolve_open_job(
        self, db_session: AsyncMock, active_customer: MagicMock, fixed_datetime: datetime
    ):
        job = create_mock_service_job(active_customer)
        db_session.execute = AsyncMock(return_value=make_result(scalar=job))

        result, already_resolved = await ServiceJobService(db_session).resolve_job(
            job.id, now=fixed_datetime
        )

        assert already_resolved is False
        assert result.status == ServiceJobStatus.RESOLVED
        assert job.updated_at == fixed_datetime
        log = db_session.add.call_args.args[0]
        assert isinstance(log, ServiceJobLog)
        assert log.action == ACTION_RESOLVED
        db_session.commit.assert_awaited_once()

    async def test_resolve_already_resolved(
        self, db_session: AsyncMock, active_customer: MagicMock
    ):
        job = create_mock_service_job(active_customer, status=ServiceJobStatus.RESOLVED)
        db_session.execute = AsyncMock(return_value=make_result(scalar=job))

        result, already_resolved = await ServiceJobService(db_session).resolve_job(job.id)

        assert already_resolved is True
        assert result.status == ServiceJobStatus.RESOLVED
        db_session.add.assert_not_called()
        db_session.commit.assert_not_awaited()

    async def test_resolve_missing_job(self, db_session: AsyncMock):
        job_id = uuid4()

        with pytest.raises(ServiceJobNotFoundError) as exc_info:
            await ServiceJobService(db_session).resolve_job(job_id)

        assert exc_info.value.job_id == job_id

    async def test_resolve_store_failure_on_locking_read(self, db_session: AsyncMock):
        db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection refused"))
        )

        with pytest.raises(StorageError):
            await ServiceJobService(db_session).resolve_job(uuid4())

        db_session.rollback.assert_awaited_once()
        db_session.add.assert_not_called()
