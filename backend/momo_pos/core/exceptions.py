"""Domain errors raised by the services layer.

Routes do not catch these; ``momo_pos.main`` maps each class to an HTTP
status through a single exception handler.
"""

from decimal import Decimal
from typing import Optional


class MomoPosError(Exception):
    """Base class for all domain errors."""

    status_code = 400


class NotFoundError(MomoPosError):
    """A material, menu item or order does not exist."""

    status_code = 404

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found")


class InsufficientStockError(MomoPosError):
    """Raised when the hub holds less than a requested allocation."""

    status_code = 409

    def __init__(self, material_id: str, material_name: str, available: Decimal, needed: Decimal, unit: str):
        self.material_id = material_id
        self.material_name = material_name
        self.available = available
        self.needed = needed
        self.unit = unit
        super().__init__(
            f"Insufficient central stock for '{material_name}': need {needed} {unit}, have {available} {unit}"
        )


class ValidationError(MomoPosError):
    """Missing or invalid input, rejected before any write."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class OrderAlreadyVoidedError(MomoPosError):
    """Voiding is final; a second void attempt is rejected."""

    status_code = 409

    def __init__(self, bill_number: int):
        self.bill_number = bill_number
        super().__init__(f"Bill #{bill_number} is already voided")


class ConcurrencyConflictError(MomoPosError):
    """An optimistic stock update kept losing to concurrent writers."""

    status_code = 409

    def __init__(self, table: str, key, attempts: int):
        self.table = table
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"Concurrent update on {table} {key} did not settle after {attempts} attempts"
        )


class PermissionDeniedError(MomoPosError):
    """The caller's role does not allow a hub-wide operation."""

    status_code = 403
