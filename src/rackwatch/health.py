"""File-based health check for container monitoring.

The monitor writes its state to a small JSON file after every cycle so a
container HEALTHCHECK can tell a stuck or failing service from a healthy
one without talking to it.

Docker HEALTHCHECK example:
    HEALTHCHECK --interval=60s --timeout=3s --retries=3 \\
        CMD python -c "import json; h=json.loads(open('/tmp/rackwatch-health').read()); exit(0 if h['status']=='healthy' else 1)"
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_HEALTH_FILE = Path("/tmp/rackwatch-health")

_health_file = DEFAULT_HEALTH_FILE


class HealthStatus(Enum):
    """Health status values written to the health file.

    Values:
        STARTING: Service is initializing
        HEALTHY: Last cycle completed and reconciled the alert table
        UNHEALTHY: Last cycle was aborted or abandoned
    """

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def set_health_file(path: Union[str, Path]) -> None:
    """Point the health functions at a different file."""
    global _health_file
    _health_file = Path(path)


def get_health_file() -> Path:
    return _health_file


def update_health_status(
    status: HealthStatus,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write health status to file.

    Args:
        status: Current health status of the service.
        details: Optional dictionary with additional status information,
            typically the summary fields of the last cycle.
    """
    health_data = {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details or {},
    }
    _health_file.write_text(json.dumps(health_data))


def get_health_status() -> Optional[Dict[str, Any]]:
    """Read current health status from file.

    Returns:
        Dictionary with health status data, or None if file doesn't exist.
    """
    if not _health_file.exists():
        return None
    try:
        return json.loads(_health_file.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def clear_health_status() -> None:
    """Remove health file on shutdown."""
    _health_file.unlink(missing_ok=True)
