from contextlib import contextmanager
from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Iterator, List, Optional
import logging

from ..core.exceptions import ConflictError
from ..models.audit_log import AuditLog

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"

class AuditedOperation:
    """Filled in by the caller inside ``AuditService.track``."""

    def __init__(self, resource_id: Optional[int] = None):
        self.resource_id = resource_id
        self.details: Optional[str] = None

class AuditService:
    """Writes audit trail rows. A failed write is logged and never raised."""

    def __init__(self, db: Session, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.user_agent = user_agent

    def log(
        self,
        action: str,
        resource_type: str,
        status: str,
        user_id: Optional[int] = None,
        resource_id: Optional[int] = None,
        details: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Optional[AuditLog]:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            status=status,
            error_message=error_message,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                f"Failed to log audit event: {action} {resource_type} {resource_id} ({status})"
            )
            return None

        logger.debug(f"Audit: user={user_id} {action} {resource_type} {resource_id} {status}")
        return entry

    def success(self, action: str, resource_type: str, **kwargs) -> Optional[AuditLog]:
        return self.log(action, resource_type, SUCCESS, **kwargs)

    def failure(self, action: str, resource_type: str, error_message: str, **kwargs) -> Optional[AuditLog]:
        return self.log(action, resource_type, FAILURE, error_message=error_message, **kwargs)

    @contextmanager
    def track(
        self,
        action: str,
        resource_type: str,
        user_id: Optional[int] = None,
        resource_id: Optional[int] = None,
    ) -> Iterator[AuditedOperation]:
        """
        Audit the wrapped block: success when it completes, failure with the
        error message when it raises. Pending changes are rolled back before
        a failure is recorded, and database integrity errors surface as 409.
        """
        operation = AuditedOperation(resource_id)
        try:
            yield operation
        except HTTPException as e:
            self.db.rollback()
            self.failure(
                action, resource_type, str(e.detail),
                user_id=user_id, resource_id=operation.resource_id
            )
            raise
        except IntegrityError as e:
            self.db.rollback()
            self.failure(
                action, resource_type, "Integrity constraint violated",
                user_id=user_id, resource_id=operation.resource_id
            )
            raise ConflictError("Operation conflicts with existing data") from e
        except Exception as e:
            self.db.rollback()
            self.failure(
                action, resource_type, str(e) or e.__class__.__name__,
                user_id=user_id, resource_id=operation.resource_id
            )
            raise
        else:
            self.success(
                action, resource_type,
                user_id=user_id,
                resource_id=operation.resource_id,
                details=operation.details,
            )

    def recent(self, user_id: Optional[int] = None, limit: int = 100) -> List[AuditLog]:
        query = self.db.query(AuditLog)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
