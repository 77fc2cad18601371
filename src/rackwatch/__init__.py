"""
rackwatch - Threshold evaluation and active-alert tracking for data-center racks.

This package classifies periodic PDU readings (current, voltage, temperature,
humidity) against global and per-rack thresholds, and keeps a persisted table
of the critical conditions that are active right now.

Features:
- Configuration via YAML with environment variable overrides
- Per-rack threshold overrides resolved from one batched lookup per cycle
- Maintenance exclusion by rack or by whole chain
- Idempotent alert reconciliation with history of resolved alerts
- Structured logging (JSON for production, text for development)
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
