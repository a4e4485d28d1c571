from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict

@dataclass(slots=True, frozen=True)
class WireID:
    """
    Readout wire identifier.

    tpc:   detector sub-volume
    plane: readout plane within the TPC
    wire:  wire number within the plane
    """
    tpc: int
    plane: int
    wire: int

@dataclass(slots=True, frozen=True, eq=False)
class Hit:
    """
    Canonical wire hit.

    wire_id: readout wire the charge was collected on
    peak_time: peak time [ticks]
    charge: integrated charge / amplitude (ADC-like units)
    extras: arbitrary per-hit fields preserved from input (event, row index, ...)

    Hits compare by identity: two hits with equal fields are still two hits.
    """
    wire_id: WireID
    peak_time: float
    charge: float = 0.0

    # Preserve source-specific fields without polluting the core schema
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def tick(self) -> int:
        return int(self.peak_time)

    @property
    def plane(self) -> int:
        return self.wire_id.plane
