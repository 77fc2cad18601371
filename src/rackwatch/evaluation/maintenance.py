"""Maintenance exclusion by rack or by whole chain."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Set, Tuple, runtime_checkable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from rackwatch.stores.base import MaintenanceStore

log = structlog.get_logger()


class MaintenanceRack(BaseModel):
    """One rack registered under a maintenance entry."""

    model_config = ConfigDict(
        frozen=True, extra="ignore", coerce_numbers_to_str=True, populate_by_name=True
    )

    rack_id: str
    chain_id: Optional[str] = Field(default=None, alias="chain")


class MaintenanceEntry(BaseModel):
    """A single maintenance action covering one or more racks."""

    model_config = ConfigDict(
        frozen=True, extra="ignore", coerce_numbers_to_str=True, populate_by_name=True
    )

    entry_id: str = Field(..., alias="id")
    reason: str = ""
    racks: Tuple[MaintenanceRack, ...] = ()


def chains_in_maintenance(entries: Iterable[MaintenanceEntry]) -> Set[str]:
    """Chains taken down as a whole.

    A chain counts only when more than one distinct rack under it is
    registered within the same maintenance entry. One rack of a chain
    being down does not exclude its neighbours.

    Args:
        entries: Active maintenance entries

    Returns:
        Set of chain ids in maintenance as a chain
    """
    chains: Set[str] = set()
    for entry in entries:
        racks_by_chain: Dict[str, Set[str]] = {}
        for rack in entry.racks:
            if rack.chain_id:
                racks_by_chain.setdefault(rack.chain_id, set()).add(rack.rack_id)
        chains.update(chain for chain, racks in racks_by_chain.items() if len(racks) > 1)
    return chains


@runtime_checkable
class MaintenanceEntrySource(Protocol):
    """A maintenance store that can hand out its raw entries."""

    def list_entries(self) -> List[MaintenanceEntry]:
        ...


@dataclass(frozen=True)
class MaintenanceSnapshot:
    """Racks and chains excluded from evaluation in one cycle."""

    rack_ids: FrozenSet[str] = frozenset()
    chain_ids: FrozenSet[str] = frozenset()

    @classmethod
    def from_entries(cls, entries: Iterable[MaintenanceEntry]) -> "MaintenanceSnapshot":
        entries = list(entries)
        return cls(
            rack_ids=frozenset(rack.rack_id for entry in entries for rack in entry.racks),
            chain_ids=frozenset(chains_in_maintenance(entries)),
        )

    @classmethod
    def load(cls, store: MaintenanceStore) -> "MaintenanceSnapshot":
        """Read both sets from the store.

        Stores that expose their entries are read once, so both sets come
        from the same version of the data.

        Raises:
            StoreError: If either set cannot be read
        """
        if isinstance(store, MaintenanceEntrySource):
            snapshot = cls.from_entries(store.list_entries())
        else:
            snapshot = cls(
                rack_ids=frozenset(store.list_rack_ids()),
                chain_ids=frozenset(store.list_chain_ids()),
            )
        log.debug(
            "maintenance_snapshot_loaded",
            racks=len(snapshot.rack_ids),
            chains=len(snapshot.chain_ids),
        )
        return snapshot


class MaintenanceGate:
    """Decides whether a rack is excluded from evaluation."""

    def is_excluded(
        self,
        rack_id: str,
        chain_id: Optional[str],
        maintenance_rack_set: FrozenSet[str],
        maintenance_chain_set: FrozenSet[str],
    ) -> bool:
        """True if the rack, or its chain as a whole, is in maintenance."""
        if rack_id in maintenance_rack_set:
            return True
        return bool(chain_id) and chain_id in maintenance_chain_set

    def excludes(self, snapshot: MaintenanceSnapshot, rack_id: str, chain_id: Optional[str]) -> bool:
        """Check a rack against a cycle snapshot."""
        return self.is_excluded(rack_id, chain_id, snapshot.rack_ids, snapshot.chain_ids)
