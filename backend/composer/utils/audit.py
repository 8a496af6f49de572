import logging
from typing import Optional

from flask import current_app, has_app_context

logger = logging.getLogger("composer.audit")


def log_action(
    *,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    payload: dict | None = None
):
    """Structured audit line for every store-of-record write."""
    target = current_app.logger if has_app_context() else logger
    target.info(
        "%s %s=%s %s",
        action,
        entity_type,
        entity_id,
        payload or {},
    )
