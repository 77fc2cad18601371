"""Reading source: PDU samples exported by the telemetry collector."""

import json
from pathlib import Path
from typing import Any, List

import structlog
from pydantic import ValidationError

from rackwatch.exceptions import StoreUnavailableError
from rackwatch.models.reading import MetricReading

log = structlog.get_logger()


def parse_readings(payload: Any) -> List[MetricReading]:
    """Build readings from a decoded telemetry payload.

    Accepts a bare list of samples or an object with the samples under
    "data". Samples that fail validation are skipped with a warning.

    Args:
        payload: Decoded JSON payload

    Returns:
        Valid readings, in payload order
    """
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if not isinstance(payload, list):
        log.warning("readings_payload_invalid", type=type(payload).__name__)
        return []

    readings: List[MetricReading] = []
    for index, item in enumerate(payload):
        try:
            readings.append(MetricReading.model_validate(item))
        except ValidationError as e:
            log.warning(
                "reading_invalid",
                index=index,
                errors=e.error_count(),
                error=str(e).splitlines()[0],
            )
    return readings


def load_readings(path: str) -> List[MetricReading]:
    """Read the latest readings file.

    Raises:
        StoreUnavailableError: If the file is missing, unreadable or not valid JSON
    """
    source = Path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise StoreUnavailableError(
            f"Readings file not found: {source}",
            hint="Check that the telemetry collector is writing to RACKWATCH_READINGS_PATH.",
        )
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StoreUnavailableError(f"Readings file {source} is not valid JSON: {e}")
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read readings file {source}: {e}")

    readings = parse_readings(payload)
    log.debug("readings_loaded", path=str(source), count=len(readings))
    return readings
