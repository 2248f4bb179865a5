from __future__ import annotations


class ReviewWorkflowError(Exception):
    pass


class ValidationError(ReviewWorkflowError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ForbiddenError(ReviewWorkflowError):
    pass


class NotFoundError(ReviewWorkflowError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class BusinessRuleViolation(ReviewWorkflowError):
    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule


class StateConflictError(ReviewWorkflowError):
    def __init__(self, message: str, *, current_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status
