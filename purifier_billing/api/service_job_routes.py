"""
Service Job Routes - Field service tickets.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.api.dependencies import require_admin_token
from purifier_billing.config import settings
from purifier_billing.db.session import get_db
from purifier_billing.exceptions import (
    CustomerNotFoundError,
    ServiceJobNotFoundError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.api import (
    CreateServiceJobRequest,
    ServiceJobListResponse,
    ServiceJobResponse,
    ServiceJobStatus,
    ServiceJobUpdateResponse,
    UpdateServiceJobRequest,
)
from purifier_billing.models.domain import ServiceJobData
from purifier_billing.services.service_jobs import ServiceJobService

router = APIRouter(prefix="/v1/service-jobs", tags=["service-jobs"])


def _job_response(job: ServiceJobData) -> ServiceJobResponse:
    return ServiceJobResponse(
        job_id=job.job_id,
        customer_id=job.customer_id,
        generated_customer_id=job.generated_customer_id,
        customer_name=job.customer_name,
        customer_phone=job.customer_phone,
        customer_address=job.customer_address,
        confirmed_map_link=job.confirmed_map_link,
        problem_description=job.problem_description,
        status=job.status,
        created_at=job.created_at.isoformat(),
        updated_at=job.updated_at.isoformat(),
    )


@router.post("", response_model=ServiceJobResponse, status_code=status.HTTP_201_CREATED)
async def create_service_job(
    request: CreateServiceJobRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> ServiceJobResponse:
    """Open a service ticket for a registered customer."""
    service = ServiceJobService(db)

    try:
        job = await service.create_job(
            customer_id=request.generated_customer_id,
            problem_description=request.problem_description,
            customer_address=request.customer_address,
            confirmed_map_link=request.confirmed_map_link,
        )
        return _job_response(job)

    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc


@router.get("", response_model=ServiceJobListResponse)
async def list_service_jobs(
    job_status: ServiceJobStatus | None = Query(None, alias="status"),
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> ServiceJobListResponse:
    """List tickets newest first."""
    service = ServiceJobService(db)

    try:
        jobs = await service.list_jobs(
            status=job_status, limit=limit or settings.service_jobs_default_limit
        )

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return ServiceJobListResponse(jobs=[_job_response(job) for job in jobs])


@router.put("/{job_id}", response_model=ServiceJobUpdateResponse)
async def update_service_job(
    job_id: UUID,
    request: UpdateServiceJobRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> ServiceJobUpdateResponse:
    """Resolve a ticket. Resolving an already resolved ticket changes nothing."""
    service = ServiceJobService(db)

    try:
        job, already_resolved = await service.resolve_job(job_id)

    except ServiceJobNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service job not found",
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    message = "Job is already resolved" if already_resolved else "Job resolved"
    return ServiceJobUpdateResponse(message=message, job=_job_response(job))
