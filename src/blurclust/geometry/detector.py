from __future__ import annotations
from dataclasses import dataclass

@dataclass
class DetectorParams:
    wire_pitch_cm: float
    drift_velocity_cm_per_us: float
    sampling_rate_ns: float

    def __post_init__(self) -> None:
        for name in ("wire_pitch_cm", "drift_velocity_cm_per_us", "sampling_rate_ns"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def tick_length_cm(self) -> float:
        # drift distance covered during one sample
        return tick_length_cm(self.drift_velocity_cm_per_us, self.sampling_rate_ns)

    @property
    def wire_to_tick(self) -> float:
        """Number of ticks spanning one wire pitch."""
        return self.wire_pitch_cm / self.tick_length_cm

def tick_length_cm(drift_velocity_cm_per_us: float, sampling_rate_ns: float) -> float:
    return drift_velocity_cm_per_us * sampling_rate_ns * 1e-3

def wire_to_tick_ratio(wire_pitch_cm: float, drift_velocity_cm_per_us: float, sampling_rate_ns: float) -> float:
    return DetectorParams(wire_pitch_cm, drift_velocity_cm_per_us, sampling_rate_ns).wire_to_tick
