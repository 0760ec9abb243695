"""Exception classes for billing operations.

Every failure is scoped to the single operation that raised it.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class BillingValidationError(BillingError):
    """Input rejected before any write was attempted."""

    pass


class InvalidReadingError(BillingValidationError):
    """New meter reading is negative or below the customer's last reading."""

    def __init__(self, new_reading: int, last_reading: int):
        self.new_reading = new_reading
        self.last_reading = last_reading
        super().__init__(
            f"Reading value ({new_reading}) must be greater than or equal to previous reading "
            f"({last_reading})"
        )


class MissingFieldError(BillingValidationError):
    """Required field is empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' is required")


class InvalidAmountError(BillingValidationError):
    """Monetary amount is zero or negative."""

    pass


class NotFoundError(BillingError):
    """Referenced record does not exist."""

    def __init__(self, entity_type: str, entity_id: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ProtectedTransactionError(BillingError):
    """Bill-derived ledger entries can only disappear by reverting the bill."""

    pass


class InconsistentStateError(BillingError):
    """Stored records contradict each other (e.g. bill without customer)."""

    pass


class StoreError(BillingError):
    """Write to the store failed; nothing is assumed applied, caller may retry."""

    pass


class StaleWriteError(StoreError):
    """Guarded update matched no row because the record changed concurrently."""

    pass


__all__ = [
    "BillingError",
    "BillingValidationError",
    "InvalidReadingError",
    "MissingFieldError",
    "InvalidAmountError",
    "NotFoundError",
    "ProtectedTransactionError",
    "InconsistentStateError",
    "StoreError",
    "StaleWriteError",
]
