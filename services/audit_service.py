"""
Audit Service

Records who did what to which record. Rows are added to the caller's
transaction and committed or rolled back with it.
"""

from typing import Optional, Dict, Any, List
import logging
import json
from flask import has_request_context, request, g
from models import db, AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for centralized audit logging"""

    @staticmethod
    def log_action(action: str,
                   entity_type: Optional[str] = None,
                   entity_id: Optional[Any] = None,
                   details: Optional[Dict[str, Any]] = None,
                   actor_role: str = 'system') -> AuditLog:
        """
        Add an audit row to the current session without committing.

        Args:
            action: Action performed (e.g., 'duty_slip_created', 'salary_slip_approved')
            entity_type: Type of entity affected (e.g., 'duty_slip', 'invoice')
            entity_id: Identifier of the affected entity
            details: Additional details about the action
            actor_role: 'manager', 'driver', 'client', 'employee' or 'system'
        """
        audit = AuditLog()
        audit.actor_role = actor_role
        audit.action = action
        audit.entity_type = entity_type
        audit.entity_id = str(entity_id) if entity_id is not None else None
        audit.new_values = json.dumps(details, default=str) if details else None

        if has_request_context():
            audit.ip_address = request.remote_addr
            audit.user_agent = request.headers.get('User-Agent', '')[:500]
            audit.correlation_id = getattr(g, 'correlation_id', None)

        db.session.add(audit)
        logger.debug(f"Audit logged: {action} on {entity_type}:{entity_id} by {actor_role}")
        return audit

    @staticmethod
    def get_entity_history(entity_type: str, entity_id: Any, limit: int = 50) -> List[AuditLog]:
        return AuditLog.query.filter_by(entity_type=entity_type, entity_id=str(entity_id)) \
                             .order_by(AuditLog.created_at.desc(), AuditLog.id.desc()) \
                             .limit(limit).all()
