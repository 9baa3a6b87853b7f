"""
Service Jobs - Field service tickets raised against installations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.db.models import Customer, ServiceJob, ServiceJobLog
from purifier_billing.exceptions import (
    CustomerNotFoundError,
    ServiceJobNotFoundError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.api import ServiceJobStatus
from purifier_billing.models.domain import ServiceJobData
from purifier_billing.observability import get_logger, metrics

logger = get_logger(__name__)

ACTION_CREATED = "CREATED"
ACTION_RESOLVED = "RESOLVED"


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def to_service_job_data(job: ServiceJob) -> ServiceJobData:
    """Convert ORM service job to domain model."""
    return ServiceJobData(
        job_id=job.id,
        customer_id=job.customer_id,
        generated_customer_id=job.generated_customer_id,
        customer_name=job.customer_name,
        customer_phone=job.customer_phone,
        customer_address=job.customer_address,
        confirmed_map_link=job.confirmed_map_link,
        problem_description=job.problem_description,
        status=ServiceJobStatus(job.status),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


class ServiceJobService:
    """Open, list and resolve service tickets."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_job(
        self,
        customer_id: str,
        problem_description: str,
        customer_address: str | None = None,
        confirmed_map_link: str | None = None,
        now: datetime | None = None,
    ) -> ServiceJobData:
        """
        Open a ticket for a registered customer.

        Address and map link default to the ones captured at registration.
        """
        if not problem_description or not problem_description.strip():
            raise ValidationError("problem_description", "cannot be empty")

        created_at = now or _utc_now()

        try:
            stmt = select(Customer).where(Customer.generated_customer_id == customer_id)
            result = await self.session.execute(stmt)
            customer = result.scalar_one_or_none()
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            job = ServiceJob(
                id=uuid4(),
                customer_id=customer.id,
                generated_customer_id=customer.generated_customer_id,
                customer_name=customer.customer_name,
                customer_phone=customer.customer_phone,
                customer_address=customer_address or customer.customer_address,
                confirmed_map_link=confirmed_map_link or customer.confirmed_map_link,
                problem_description=problem_description.strip(),
                status=ServiceJobStatus.OPEN,
                created_at=created_at,
                updated_at=created_at,
            )
            self.session.add(job)
            self.session.add(
                ServiceJobLog(
                    job_id=job.id,
                    action=ACTION_CREATED,
                    details={"problem_description": job.problem_description},
                    created_at=created_at,
                )
            )

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("create_service_job", e) from e

        logger.info("service_job_created", job_id=str(job.id), customer_id=customer_id)
        return to_service_job_data(job)

    async def list_jobs(
        self, status: ServiceJobStatus | None = None, limit: int = 100
    ) -> list[ServiceJobData]:
        """List tickets newest first, optionally filtered by status."""
        if limit < 1:
            raise ValidationError("limit", "must be at least 1")

        stmt = select(ServiceJob).order_by(ServiceJob.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(ServiceJob.status == status)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("list_service_jobs", e) from e
        return [to_service_job_data(job) for job in result.scalars().all()]

    async def resolve_job(
        self, job_id: UUID, now: datetime | None = None
    ) -> tuple[ServiceJobData, bool]:
        """
        Mark a ticket resolved.

        Returns:
            (job, already_resolved). Resolving twice is a no-op.
        """
        resolved_at = now or _utc_now()

        try:
            stmt = select(ServiceJob).where(ServiceJob.id == job_id).with_for_update()
            result = await self.session.execute(stmt)
            job = result.scalar_one_or_none()
            if job is None:
                raise ServiceJobNotFoundError(job_id)

            if job.status == ServiceJobStatus.RESOLVED:
                return to_service_job_data(job), True

            job.status = ServiceJobStatus.RESOLVED
            job.updated_at = resolved_at
            self.session.add(
                ServiceJobLog(
                    job_id=job.id,
                    action=ACTION_RESOLVED,
                    details={"status": ServiceJobStatus.RESOLVED.value},
                    created_at=resolved_at,
                )
            )

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("resolve_service_job", e) from e

        logger.info("service_job_resolved", job_id=str(job_id))
        return to_service_job_data(job), False

    async def _storage_failure(self, operation: str, error: SQLAlchemyError) -> StorageError:
        """Roll back the failed unit of work and translate the error."""
        await self.session.rollback()
        metrics.record_error("storage_error", operation)
        logger.error("storage_error", operation=operation, error=str(error))
        return StorageError(str(error))
