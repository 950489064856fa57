"""
Audit sink for privileged mutations (approve, reject, disburse, verify, ...).

Recording is fire-and-forget: a failing sink is logged and never blocks the
operation that triggered it.
"""
from __future__ import annotations

from typing import Any, Protocol

from utils.logging import get_logger

logger = get_logger(__name__)


class AuditSink(Protocol):
    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        actor_id: int | None = None,
    ) -> None: ...


class LogAuditSink:
    """Default sink: one structured "audit" event per mutation."""

    def __init__(self) -> None:
        self._logger = get_logger("audit")

    def record(self, action, entity_type, entity_id, before, after, actor_id=None) -> None:
        self._logger.info(
            "audit",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            before=before,
            after=after,
        )


_sink: AuditSink = LogAuditSink()


def set_audit_sink(sink: AuditSink) -> None:
    global _sink
    _sink = sink


def get_audit_sink() -> AuditSink:
    return _sink


def record_audit(
    action: str,
    entity_type: str,
    entity_id: int | None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    actor_id: int | None = None,
) -> None:
    try:
        _sink.record(action, entity_type, entity_id, before, after, actor_id=actor_id)
    except Exception:
        logger.exception("audit_sink_failed", action=action, entity_type=entity_type, entity_id=entity_id)
