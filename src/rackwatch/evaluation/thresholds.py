"""Threshold resolution: global settings merged with per-rack overrides.

A ThresholdSnapshot is read once per cycle. Overrides for every rack in
the cycle come from one batched store call, never one call per rack.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Sequence, Tuple

import structlog

from rackwatch.exceptions import StoreError
from rackwatch.models.thresholds import EffectiveThresholds, ThresholdSetting
from rackwatch.stores.base import ThresholdStore

log = structlog.get_logger()


@dataclass(frozen=True)
class ThresholdSnapshot:
    """Global thresholds and per-rack overrides as of one cycle."""

    global_settings: Tuple[ThresholdSetting, ...] = ()
    overrides_by_rack: Mapping[str, Tuple[ThresholdSetting, ...]] = field(
        default_factory=dict
    )

    @classmethod
    def load(cls, store: ThresholdStore, rack_ids: Iterable[str]) -> "ThresholdSnapshot":
        """Read globals and the overrides for all given racks.

        A failure reading the globals propagates. A failure reading the
        overrides is logged and the cycle continues on globals only.

        Args:
            store: Threshold store to read from
            rack_ids: Every rack id present in the cycle

        Returns:
            ThresholdSnapshot for the cycle

        Raises:
            StoreError: If the global thresholds cannot be read
        """
        global_settings = tuple(store.list_global())
        unique_ids = sorted({rack_id for rack_id in rack_ids if rack_id})

        overrides: Dict[str, Tuple[ThresholdSetting, ...]] = {}
        if unique_ids:
            try:
                loaded = store.list_overrides(unique_ids)
            except StoreError as e:
                log.warning(
                    "threshold_overrides_unavailable",
                    racks=len(unique_ids),
                    error=str(e),
                    message="Evaluating with global thresholds only",
                )
            else:
                overrides = {rack_id: tuple(items) for rack_id, items in loaded.items()}

        log.debug(
            "threshold_snapshot_loaded",
            global_count=len(global_settings),
            racks_with_overrides=len(overrides),
        )
        return cls(global_settings=global_settings, overrides_by_rack=overrides)


class ThresholdResolver:
    """Merges global thresholds with rack-specific overrides."""

    def resolve(
        self,
        global_settings: Sequence[ThresholdSetting],
        overrides_by_rack: Mapping[str, Sequence[ThresholdSetting]],
        rack_id: str,
    ) -> EffectiveThresholds:
        """Build the effective threshold set for one rack.

        Every global key takes the rack's override value when one exists.
        Keys that only exist as overrides are passed through.

        Args:
            global_settings: Process-wide threshold settings
            overrides_by_rack: Override settings keyed by rack id
            rack_id: Rack to resolve for

        Returns:
            EffectiveThresholds with at most one value per key
        """
        overrides = {s.key: s.value for s in overrides_by_rack.get(rack_id, ())}

        values: Dict[str, float] = {}
        for setting in global_settings:
            values[setting.key] = overrides.get(setting.key, setting.value)

        for key, value in overrides.items():
            values.setdefault(key, value)

        return EffectiveThresholds(values=values, rack_id=rack_id)

    def resolve_snapshot(self, snapshot: ThresholdSnapshot, rack_id: str) -> EffectiveThresholds:
        """Resolve a rack against a cycle snapshot."""
        return self.resolve(snapshot.global_settings, snapshot.overrides_by_rack, rack_id)

    def global_only(self, snapshot: ThresholdSnapshot, rack_id: str) -> EffectiveThresholds:
        """Global thresholds with no overrides applied."""
        return EffectiveThresholds.from_settings(snapshot.global_settings, rack_id=rack_id)

