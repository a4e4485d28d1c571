from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..physics.hits import WireID

GlobalWireFn = Callable[[WireID], int]

@dataclass
class WireGeometry:
    """
    Flattens (tpc, plane, wire) onto a single wire axis for one readout plane.

    TPCs listed in the same group of ``tpc_groups`` share a wire range
    (e.g. the two drift volumes either side of a common anode); successive
    groups are stacked side by side, ``n_wires`` apart:

        global_wire = group_index(tpc) * n_wires + wire

    With ``tpc_groups=None`` every TPC is treated as its own group, in
    ascending TPC order, which makes the mapping injective.
    """
    n_wires: int
    tpc_groups: Optional[List[List[int]]] = None

    def __post_init__(self) -> None:
        if self.n_wires <= 0:
            raise ValueError(f"n_wires must be positive, got {self.n_wires}")
        self._group_of: Dict[int, int] = {}
        for gi, group in enumerate(self.tpc_groups or []):
            for tpc in group:
                if tpc in self._group_of:
                    raise ValueError(f"TPC {tpc} appears in more than one tpc group")
                self._group_of[tpc] = gi

    @classmethod
    def from_cfg(cls, n_wires: int, tpc_groups: Optional[Sequence[Sequence[int]]] = None) -> "WireGeometry":
        groups = [list(g) for g in tpc_groups] if tpc_groups else None
        return cls(n_wires=n_wires, tpc_groups=groups)

    def group_index(self, tpc: int) -> int:
        if self.tpc_groups is None:
            if tpc < 0:
                raise KeyError(f"Negative TPC index {tpc}")
            return tpc
        try:
            return self._group_of[tpc]
        except KeyError:
            raise KeyError(f"TPC {tpc} is not listed in any tpc group") from None

    def global_wire(self, wire_id: WireID) -> int:
        if not 0 <= wire_id.wire < self.n_wires:
            raise KeyError(f"Wire {wire_id.wire} outside [0, {self.n_wires}) for {wire_id}")
        return self.group_index(wire_id.tpc) * self.n_wires + wire_id.wire

    __call__ = global_wire
