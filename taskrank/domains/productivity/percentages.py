"""Percentage configuration lookup.

The percent credited for each delivery class is owned outside the engine and
can change at any time. A computation takes one snapshot of the whole table up
front so every task in it is scored against the same configuration. If any
lookup fails, the snapshot falls back to the default table as a whole.
"""

import math
from collections.abc import Mapping
from numbers import Real
from typing import Protocol

import structlog

from .config import PercentageDefaults
from .levels import round_half_up
from .models import SCORED_CLASSIFICATIONS, DeliveryClassification

logger = structlog.get_logger()


def clamp_percent(value: float) -> int:
    """Round half-up and clamp into [0, 100]."""
    return max(0, min(100, round_half_up(value)))


class PercentageTable:
    """Immutable classification -> percent snapshot, already clamped."""

    __slots__ = ("_values", "source")

    def __init__(self, values: Mapping[DeliveryClassification, float], source: str) -> None:
        self._values = {
            cls: clamp_percent(values.get(cls, 0)) for cls in SCORED_CLASSIFICATIONS
        }
        self.source = source

    @classmethod
    def defaults(cls, defaults: PercentageDefaults | None = None) -> "PercentageTable":
        raw = (defaults or PercentageDefaults()).as_dict()
        return cls({DeliveryClassification(k): v for k, v in raw.items()}, source="default")

    def percent_for(self, classification: DeliveryClassification) -> int:
        if classification == DeliveryClassification.IGNORE:
            return 0
        return self._values[classification]

    def as_dict(self) -> dict[str, int]:
        return {cls.value: pct for cls, pct in self._values.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PercentageTable):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"PercentageTable({self.as_dict()!r}, source={self.source!r})"


class PercentageProvider(Protocol):
    async def get_percentage(self, classification: DeliveryClassification) -> int: ...


class StaticPercentageProvider:
    """In-memory percentage table, hot-reloadable through ``update()``.

    Values are validated the same way the settings screen did: rounded and
    clamped into 0-100 before being stored.
    """

    def __init__(self, defaults: PercentageDefaults | None = None) -> None:
        raw = (defaults or PercentageDefaults()).as_dict()
        self._values: dict[DeliveryClassification, int] = {
            DeliveryClassification(k): clamp_percent(v) for k, v in raw.items()
        }

    def update(self, values: Mapping[str, float]) -> None:
        for key, value in values.items():
            classification = DeliveryClassification(key)
            if classification == DeliveryClassification.IGNORE:
                raise ValueError("The ignore classification has no configurable percentage")
            self._values[classification] = clamp_percent(value)
        logger.info(
            "percentage_config_updated",
            values={k.value: v for k, v in self._values.items()},
        )

    async def get_percentage(self, classification: DeliveryClassification) -> int:
        if classification == DeliveryClassification.IGNORE:
            return 0
        return self._values[classification]


class PercentageLookup:
    """Snapshots a provider into a ``PercentageTable``, failing closed to defaults."""

    def __init__(
        self,
        provider: PercentageProvider | None,
        defaults: PercentageDefaults | None = None,
    ) -> None:
        self._provider = provider
        self._defaults = defaults or PercentageDefaults()

    async def snapshot(self) -> PercentageTable:
        if self._provider is None:
            return PercentageTable.defaults(self._defaults)

        values: dict[DeliveryClassification, float] = {}
        try:
            for classification in SCORED_CLASSIFICATIONS:
                value = await self._provider.get_percentage(classification)
                if (
                    isinstance(value, bool)
                    or not isinstance(value, Real)
                    or not math.isfinite(value)
                ):
                    raise TypeError(
                        f"Percentage for {classification.value} is not a finite number: {value!r}"
                    )
                values[classification] = float(value)
        except Exception:
            logger.warning("percentage_config_unavailable", fallback="default", exc_info=True)
            return PercentageTable.defaults(self._defaults)

        return PercentageTable(values, source="provider")
