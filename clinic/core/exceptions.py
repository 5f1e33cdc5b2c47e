from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict with existing data"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class ReferentialConflictError(ConflictError):
    """Delete blocked because dependent rows still reference the target."""

    def __init__(self, resource: str, dependents: str = "appointments"):
        self.resource = resource
        self.dependents = dependents
        super().__init__(
            detail=f"Cannot delete {resource.lower()} with associated {dependents}"
        )


class ConcurrentUpdateError(ConflictError):
    def __init__(self, resource: str = "Record"):
        super().__init__(
            detail=f"{resource} was modified by another request, please retry"
        )
