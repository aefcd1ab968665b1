"""Overload detection for a single device.

A device is either ``normal`` or ``overload``; the only edges are the two
transitions between them. Everything here is pure so it can be tested in
isolation from the ledger and the broker.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any

from loadguard.core.errors import ValidationError
from loadguard.models.enums import EventType, OverloadState


@dataclass(frozen=True)
class Decision:
    """Outcome of comparing one observation against the threshold."""

    current_weight: float
    max_weight: float
    is_overload: bool
    transitioned: bool
    transition: EventType | None

    @property
    def state(self) -> OverloadState:
        return OverloadState.OVERLOAD if self.is_overload else OverloadState.NORMAL

    @property
    def motor_enabled(self) -> bool:
        return not self.is_overload

    @property
    def alarm_enabled(self) -> bool:
        return self.is_overload


def evaluate(current_weight: float, max_weight: float, previous_is_overload: bool) -> Decision:
    # Equal to the threshold is still normal
    is_overload = current_weight > max_weight
    transitioned = previous_is_overload != is_overload
    transition = None
    if transitioned:
        transition = EventType.OVERLOAD if is_overload else EventType.RECOVERY
    return Decision(
        current_weight=current_weight,
        max_weight=max_weight,
        is_overload=is_overload,
        transitioned=transitioned,
        transition=transition,
    )


def parse_weight(raw: Any) -> float:
    """Coerce a device-reported weight to a finite float."""
    if isinstance(raw, bool):
        raise ValidationError(f"weight must be numeric, got {raw!r}")
    if isinstance(raw, Real):
        value = float(raw)
    elif isinstance(raw, (str, bytes)):
        try:
            value = float(raw)
        except ValueError:
            raise ValidationError(f"weight must be numeric, got {raw!r}") from None
    else:
        raise ValidationError(f"weight must be numeric, got {raw!r}")
    if not math.isfinite(value):
        raise ValidationError(f"weight must be finite, got {raw!r}")
    return value
