"""Optional database features detected once at startup."""

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.logging_config import get_logger

logger = get_logger("capabilities")

EVENT_LOG_TABLE = "event_logs"

# Optimistic until probed; a failing query downgrades it at runtime.
_capabilities: dict[str, bool] = {"event_log": True}


def probe_capabilities(engine: Engine) -> dict[str, bool]:
    try:
        available = inspect(engine).has_table(EVENT_LOG_TABLE)
    except SQLAlchemyError as e:
        logger.warning("Capability probe failed", extra={"context": {"error": str(e)}})
        available = False

    _capabilities["event_log"] = available
    if not available:
        logger.warning(
            "Event log table missing, webhook auditing disabled",
            extra={"context": {"table": EVENT_LOG_TABLE}},
        )
    return dict(_capabilities)


def event_log_available() -> bool:
    return _capabilities["event_log"]


def disable_event_log(reason: str) -> None:
    if _capabilities["event_log"]:
        logger.warning("Event log disabled at runtime", extra={"context": {"reason": reason}})
    _capabilities["event_log"] = False


def reset_capabilities() -> None:
    _capabilities["event_log"] = True
