"""
Uninstallations - Device pickups and deposit refunds.

Recording an uninstallation does not touch the customer's cycle; the record
and its audit log entry are written together.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.db.models import Customer, Uninstallation, UninstallationLog
from purifier_billing.exceptions import CustomerNotFoundError, StorageError, ValidationError
from purifier_billing.models.api import RefundMethod
from purifier_billing.models.domain import (
    BankAccount,
    UninstallationData,
    UninstallationRequest,
)
from purifier_billing.observability import annotate_span, get_logger, metrics

logger = get_logger(__name__)

ACTION_INITIATED = "INITIATED"


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def to_uninstallation_data(record: Uninstallation) -> UninstallationData:
    """Convert ORM uninstallation to domain model."""
    bank_account = None
    if record.bank_name is not None:
        bank_account = BankAccount(
            bank_name=record.bank_name,
            account_number=record.bank_account_number or "",
            ifsc_code=record.bank_ifsc_code or "",
        )
    return UninstallationData(
        uninstallation_id=record.id,
        customer_id=record.customer_id,
        generated_customer_id=record.generated_customer_id,
        details=UninstallationRequest(
            scheduled_date=record.scheduled_date,
            reason=record.reason,
            equipment_condition=record.equipment_condition,
            refund_method=RefundMethod(record.refund_method),
            equipment_photos=tuple(record.equipment_photos or ()),
            deduction_details=record.deduction_details,
            deductions=float(record.deductions or 0),
            refund_amount=float(record.refund_amount or 0),
            bank_account=bank_account,
            internal_notes=record.internal_notes,
        ),
        created_at=record.created_at,
    )


def _log_details(request: UninstallationRequest) -> dict[str, Any]:
    # Bank account numbers stay on the uninstallation row only
    return {
        "reason": request.reason,
        "scheduled_date": request.scheduled_date.isoformat(),
        "deductions": request.deductions,
        "refund_amount": request.refund_amount,
        "refund_method": request.refund_method.value,
    }


class UninstallationService:
    """Record and list uninstallations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_uninstallation(
        self,
        customer_id: str,
        request: UninstallationRequest,
        now: datetime | None = None,
    ) -> UninstallationData:
        """
        Record an uninstallation for a registered customer.

        Bank details are kept only for bank transfer refunds.

        Raises:
            CustomerNotFoundError: unknown generated customer id
            StorageError: database failure
        """
        created_at = now or _utc_now()
        bank_account = (
            request.bank_account if request.refund_method == RefundMethod.BANK_TRANSFER else None
        )

        try:
            stmt = select(Customer).where(Customer.generated_customer_id == customer_id)
            result = await self.session.execute(stmt)
            customer = result.scalar_one_or_none()
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            record = Uninstallation(
                id=uuid4(),
                customer_id=customer.id,
                generated_customer_id=customer.generated_customer_id,
                scheduled_date=request.scheduled_date,
                reason=request.reason.strip(),
                equipment_condition=request.equipment_condition,
                equipment_photos=list(request.equipment_photos),
                deduction_details=request.deduction_details,
                deductions=request.deductions,
                refund_amount=request.refund_amount,
                refund_method=request.refund_method,
                bank_name=bank_account.bank_name if bank_account else None,
                bank_account_number=bank_account.account_number if bank_account else None,
                bank_ifsc_code=bank_account.ifsc_code if bank_account else None,
                internal_notes=request.internal_notes,
                created_at=created_at,
            )
            self.session.add(record)
            self.session.add(
                UninstallationLog(
                    uninstallation_id=record.id,
                    generated_customer_id=customer.generated_customer_id,
                    action=ACTION_INITIATED,
                    details=_log_details(request),
                    created_at=created_at,
                )
            )

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("record_uninstallation", e) from e

        annotate_span(customer_id=customer_id, refund_method=request.refund_method)
        logger.info(
            "uninstallation_recorded",
            uninstallation_id=str(record.id),
            customer_id=customer_id,
            refund_method=request.refund_method.value,
            refund_amount=request.refund_amount,
        )
        return to_uninstallation_data(record)

    async def list_uninstallations(
        self, customer_id: str | None = None, limit: int = 100
    ) -> list[UninstallationData]:
        """List uninstallations newest first, optionally for one customer."""
        if limit < 1:
            raise ValidationError("limit", "must be at least 1")

        stmt = select(Uninstallation).order_by(Uninstallation.created_at.desc()).limit(limit)
        if customer_id is not None:
            stmt = stmt.where(Uninstallation.generated_customer_id == customer_id)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("list_uninstallations", e) from e
        return [to_uninstallation_data(record) for record in result.scalars().all()]

    async def _storage_failure(self, operation: str, error: SQLAlchemyError) -> StorageError:
        """Roll back the failed unit of work and translate the error."""
        await self.session.rollback()
        metrics.record_error("storage_error", operation)
        logger.error("storage_error", operation=operation, error=str(error))
        return StorageError(str(error))
