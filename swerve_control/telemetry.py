"""Telemetry table and live tuning snapshots.

The telemetry table is a string-keyed numeric store shared with the driver
dashboard. The dashboard writes tunable values into it and reads published
state out of it; the control loop polls it exactly once per tick through a
frozen snapshot so that a tick never sees a half-updated gain set.
"""

import math
import numbers
from dataclasses import dataclass
from typing import ClassVar, Dict, Iterable, Mapping, Optional, Tuple

from .config import (
    ROTATION_KD,
    ROTATION_KI,
    ROTATION_KP,
    ROTATION_MAX_OUTPUT,
    ROTATION_MIN_OUTPUT,
    ROTATION_TOLERANCE_DEGREES,
    TELEMETRY_ROTATION_D,
    TELEMETRY_ROTATION_I,
    TELEMETRY_ROTATION_MAX_OUTPUT,
    TELEMETRY_ROTATION_MIN_OUTPUT,
    TELEMETRY_ROTATION_P,
    TELEMETRY_ROTATION_TOLERANCE,
)


class TelemetryTable:
    """String-keyed store of numeric values.

    Booleans are stored as 1.0 / 0.0. Anything that is not a real number is
    rejected with TypeError, and NaN or infinity with ValueError.
    """

    def __init__(self) -> None:
        self._values: Dict[str, float] = {}

    @staticmethod
    def _coerce(key: str, value) -> float:
        if not isinstance(value, numbers.Real):
            raise TypeError(f"Telemetry value for '{key}' must be numeric, got {type(value).__name__}")
        if not math.isfinite(value):
            raise ValueError(f"Telemetry value for '{key}' must be finite, got {value}")
        return float(value)

    def get(self, key: str, default: float = 0.0) -> float:
        return self._values.get(key, default)

    def put(self, key: str, value: float) -> None:
        self._values[key] = self._coerce(key, value)

    def set_default(self, key: str, value: float) -> None:
        """Store value only if the key has no value yet."""
        if key not in self._values:
            self.put(key, value)

    def update(self, values: Mapping[str, float]) -> None:
        """Store several values at once. Nothing is stored if any value is rejected."""
        coerced = {key: self._coerce(key, value) for key, value in values.items()}
        self._values.update(coerced)

    def keys(self) -> Iterable[str]:
        return self._values.keys()

    def snapshot(self) -> Dict[str, float]:
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True)
class RotationTuning:
    """One consistent set of live-tunable rotation controller values."""

    kp: float = ROTATION_KP
    ki: float = ROTATION_KI
    kd: float = ROTATION_KD
    tolerance: float = ROTATION_TOLERANCE_DEGREES
    min_output: float = ROTATION_MIN_OUTPUT
    max_output: float = ROTATION_MAX_OUTPUT

    _KEYS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("kp", TELEMETRY_ROTATION_P),
        ("ki", TELEMETRY_ROTATION_I),
        ("kd", TELEMETRY_ROTATION_D),
        ("tolerance", TELEMETRY_ROTATION_TOLERANCE),
        ("min_output", TELEMETRY_ROTATION_MIN_OUTPUT),
        ("max_output", TELEMETRY_ROTATION_MAX_OUTPUT),
    )

    @classmethod
    def from_table(cls, table: TelemetryTable, defaults: Optional["RotationTuning"] = None) -> "RotationTuning":
        """Read every rotation key from the table, falling back to defaults."""
        base = defaults if defaults is not None else cls()
        return cls(**{field: table.get(key, getattr(base, field)) for field, key in cls._KEYS})

    def publish_defaults(self, table: TelemetryTable) -> None:
        """Seed the table so the dashboard shows the current values."""
        for field, key in self._KEYS:
            table.set_default(key, getattr(self, field))
