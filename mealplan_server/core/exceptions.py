"""
Application exceptions.
Each error carries a stable error_code that the HTTP layer maps to a status code.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class for all application errors"""

    default_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """Database access failed"""
    default_code = "DATABASE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """Conflicting concurrent write"""
    default_code = "CONCURRENCY_CONFLICT"


class ValidationError(BaseApplicationError):
    """Input rejected before any state was changed"""
    default_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Referenced entity does not exist"""
    default_code = "RESOURCE_NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} not found",
            details={"entity": entity, "id": entity_id}
        )


class InvalidTransitionError(BaseApplicationError):
    """Requested edge is not part of the subscription state table"""
    default_code = "INVALID_TRANSITION"

    def __init__(self, current_state: str, target_state: str):
        super().__init__(
            f"Invalid transition from {current_state} to {target_state}",
            details={"from": current_state, "to": target_state}
        )


class BusinessRuleViolationError(BaseApplicationError):
    """Edge exists but its business rule predicate failed"""
    default_code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, current_state: str, target_state: str):
        rule = f"{current_state}->{target_state}"
        super().__init__(
            f"Business rule not satisfied for {rule}",
            details={"rule": rule}
        )


class NoActiveMenuCycleError(BaseApplicationError):
    """Aggregation needs exactly one active menu cycle and there is none"""
    default_code = "NO_ACTIVE_MENU_CYCLE"

    def __init__(self):
        super().__init__("No active menu cycle configured")


class DataIntegrityFault(BaseApplicationError):
    """Stored data references something that does not exist or is inconsistent"""
    default_code = "DATA_INTEGRITY_FAULT"


class AmbiguousMenuCycleError(DataIntegrityFault):
    """More than one menu cycle is flagged active"""

    def __init__(self, cycle_ids):
        super().__init__(
            f"Expected one active menu cycle, found {len(cycle_ids)}",
            error_code="MULTIPLE_ACTIVE_MENU_CYCLES",
            details={"cycle_ids": list(cycle_ids)}
        )
