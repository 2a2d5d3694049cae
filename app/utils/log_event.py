import json
from datetime import datetime, timezone
from core.logger import logger

FAILURE_EVENTS = {"job_errored", "status_edit_failed"}


def log_job_event(event: str, job_id: str, **fields) -> None:
    """
    One JSON line per job lifecycle event, keyed by correlation id.
    Failure events go out at WARNING so they stand out in the console.
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "job_id": job_id,
    }
    for key, value in fields.items():
        # Prompts can be long; keep lines readable
        if isinstance(value, str):
            value = value[:500]
        log_data[key] = value

    if event in FAILURE_EVENTS:
        logger.warning(json.dumps(log_data))
    else:
        logger.info(json.dumps(log_data))
