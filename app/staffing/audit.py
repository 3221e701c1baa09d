import json
import logging
from typing import Any

from flask import g, has_request_context
from sqlalchemy.orm import Session

from app.staffing.models import AuditEvent, User

logger = logging.getLogger(__name__)


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    message: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.
    `message` is the plain third-person log line; it is also written to the
    operational log.
    """
    rid = request_id or (getattr(g, "request_id", None) if has_request_context() else None)
    actor_name = actor.name if actor else None
    logger.info("%s (actor=%s request_id=%s)", message, actor_name or "-", rid)
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_name=actor_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=message[:512],
        metadata_json=json.dumps(metadata, sort_keys=True) if metadata else None,
    )
    s.add(ev)
    return ev
