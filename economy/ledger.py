"""Resource quantities and the qi capacity container."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

PRIMARY = "qi"
SECONDARY = ("herbs", "spirit_stones", "beasts", "jade")
RESOURCES = (PRIMARY, *SECONDARY)

DEFAULT_CAPACITY = 1e6


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(out):
        return default
    return out


@dataclass
class ResourceLedger:
    """Current quantities of the five resources.

    Qi is the only capped resource; every mutation goes through ``add`` or
    ``spend`` so ``0 <= qi <= capacity`` holds whenever the ledger is observed.
    """

    qi: float = 0.0
    herbs: float = 0.0
    spirit_stones: float = 0.0
    beasts: float = 0.0
    jade: float = 0.0
    capacity: float = DEFAULT_CAPACITY

    def get(self, resource: str) -> float:
        if resource not in RESOURCES:
            raise KeyError(resource)
        return getattr(self, resource)

    def add(self, resource: str, amount: float) -> float:
        """Add (or remove, if negative) an amount and return the new value."""
        value = max(0.0, self.get(resource) + amount)
        if resource == PRIMARY:
            value = min(value, self.capacity)
        setattr(self, resource, value)
        return value

    def can_afford(self, costs: Mapping[str, float]) -> bool:
        return all(self.get(res) >= amount for res, amount in costs.items())

    def spend(self, costs: Mapping[str, float]) -> bool:
        """Deduct every cost, or nothing at all."""
        if not self.can_afford(costs):
            return False
        for res, amount in costs.items():
            setattr(self, res, max(0.0, self.get(res) - amount))
        return True

    def set_capacity(self, capacity: float) -> None:
        self.capacity = max(0.0, capacity)
        self.clamp()

    def clamp(self) -> None:
        for res in SECONDARY:
            if getattr(self, res) < 0:
                setattr(self, res, 0.0)
        self.qi = min(max(0.0, self.qi), self.capacity)

    def as_dict(self) -> dict[str, float]:
        return {
            "qi": self.qi,
            "herbs": self.herbs,
            "spirit_stones": self.spirit_stones,
            "beasts": self.beasts,
            "jade": self.jade,
            "capacity": self.capacity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResourceLedger:
        """Rebuild from a snapshot, mapping unreadable amounts to zero.

        Older saves carry no ``capacity``; qi is then kept whole and the
        caller re-clamps it once the real capacity has been recomputed.
        """
        ledger = cls()
        for res in RESOURCES:
            setattr(ledger, res, max(0.0, _as_float(data.get(res))))
        if data.get("capacity") is None:
            ledger.capacity = max(DEFAULT_CAPACITY, ledger.qi)
        else:
            ledger.capacity = _as_float(data.get("capacity"), DEFAULT_CAPACITY)
        ledger.clamp()
        return ledger
