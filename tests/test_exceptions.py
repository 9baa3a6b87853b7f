"""
Tests for the exception hierarchy.
"""

from uuid import uuid4

import pytest

from purifier_billing.exceptions import (
    AccountingError,
    CustomerNotFoundError,
    DuplicateCustomerError,
    InactiveError,
    NotFoundError,
    PlanInactiveError,
    PlanNotFoundError,
    PlanUnavailableError,
    ServiceJobNotFoundError,
    StorageError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("plan_id", "cannot be empty"),
            CustomerNotFoundError("JH09d01301"),
            PlanNotFoundError("25L_1M"),
            ServiceJobNotFoundError(uuid4()),
            PlanInactiveError("25L_1M"),
            DuplicateCustomerError("JH09d01301"),
            StorageError("connection refused"),
        ],
    )
    def test_all_are_accounting_errors(self, error: Exception):
        assert isinstance(error, AccountingError)

    def test_not_found_family(self):
        assert issubclass(CustomerNotFoundError, NotFoundError)
        assert issubclass(PlanNotFoundError, NotFoundError)
        assert issubclass(ServiceJobNotFoundError, NotFoundError)

    def test_plan_inactive_is_inactive(self):
        assert issubclass(PlanInactiveError, InactiveError)

    def test_plan_unavailable_catches_both(self):
        for error in (PlanNotFoundError("a"), PlanInactiveError("b")):
            with pytest.raises(PlanUnavailableError):
                raise error


class TestContext:
    def test_validation_error(self):
        error = ValidationError("reading", "must carry cycle liters or cycle hours")

        assert error.field == "reading"
        assert str(error) == "Invalid reading: must carry cycle liters or cycle hours"

    def test_customer_not_found(self):
        error = CustomerNotFoundError("JH09d01399")

        assert error.customer_id == "JH09d01399"
        assert "JH09d01399" in str(error)

    def test_plan_inactive(self):
        error = PlanInactiveError("OLD_1M")

        assert error.plan_id == "OLD_1M"
        assert str(error) == "Plan OLD_1M is inactive"

    def test_service_job_not_found(self):
        job_id = uuid4()

        assert ServiceJobNotFoundError(job_id).job_id == job_id

    def test_storage_error(self):
        error = StorageError("timeout")

        assert error.message == "timeout"
        assert str(error) == "Storage error: timeout"
