"""
Uninstallation Routes - Device pickups and deposit refunds.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.api.dependencies import require_admin_token
from purifier_billing.config import settings
from purifier_billing.db.session import get_db
from purifier_billing.exceptions import CustomerNotFoundError, StorageError, ValidationError
from purifier_billing.models.api import (
    BankDetails,
    CreateUninstallationRequest,
    UninstallationListResponse,
    UninstallationResponse,
)
from purifier_billing.models.domain import (
    BankAccount,
    UninstallationData,
    UninstallationRequest,
)
from purifier_billing.services.uninstallations import UninstallationService

router = APIRouter(prefix="/v1/uninstallations", tags=["uninstallations"])


def _uninstallation_response(record: UninstallationData) -> UninstallationResponse:
    details = record.details
    bank = details.bank_account
    return UninstallationResponse(
        uninstallation_id=record.uninstallation_id,
        customer_id=record.customer_id,
        generated_customer_id=record.generated_customer_id,
        scheduled_date=details.scheduled_date.isoformat(),
        reason=details.reason,
        equipment_condition=details.equipment_condition,
        equipment_photos=list(details.equipment_photos),
        deduction_details=details.deduction_details,
        deductions=details.deductions,
        refund_amount=details.refund_amount,
        refund_method=details.refund_method,
        bank_details=(
            BankDetails(
                bank_name=bank.bank_name,
                account_number=bank.account_number,
                ifsc_code=bank.ifsc_code,
            )
            if bank is not None
            else None
        ),
        internal_notes=details.internal_notes,
        created_at=record.created_at.isoformat(),
    )


@router.post("", response_model=UninstallationResponse, status_code=status.HTTP_201_CREATED)
async def create_uninstallation(
    request: CreateUninstallationRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> UninstallationResponse:
    """Record a device pickup and the refund owed to the customer."""
    service = UninstallationService(db)

    bank = request.bank_details
    details = UninstallationRequest(
        scheduled_date=request.scheduled_date,
        reason=request.reason,
        equipment_condition=request.equipment_condition,
        refund_method=request.refund_method,
        equipment_photos=tuple(request.equipment_photos),
        deduction_details=request.deduction_details,
        deductions=request.deductions,
        refund_amount=request.refund_amount,
        bank_account=(
            BankAccount(
                bank_name=bank.bank_name,
                account_number=bank.account_number,
                ifsc_code=bank.ifsc_code,
            )
            if bank is not None
            else None
        ),
        internal_notes=request.internal_notes,
    )

    try:
        record = await service.record_uninstallation(request.generated_customer_id, details)
        return _uninstallation_response(record)

    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc


@router.get("", response_model=UninstallationListResponse)
async def list_uninstallations(
    customer_id: str | None = Query(None, min_length=1, max_length=32),
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> UninstallationListResponse:
    """List uninstallations newest first."""
    service = UninstallationService(db)

    try:
        records = await service.list_uninstallations(
            customer_id=customer_id,
            limit=limit or settings.uninstallations_default_limit,
        )

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

    return UninstallationListResponse(
        uninstallations=[_uninstallation_response(record) for record in records]
    )
