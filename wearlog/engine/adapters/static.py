"""In-memory activity provider.

Used when no external provider is configured and throughout the test suite.
Samples are keyed by (day, hour); re-adding an hour replaces it.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from wearlog.engine.base import ActivityProvider, RawSample

logger = logging.getLogger("wearlog.engine.adapters.static")


class StaticActivityProvider(ActivityProvider):
    """Serves hourly samples from memory."""

    SOURCE_ID = "static"

    def __init__(self, samples: Iterable[RawSample] = ()) -> None:
        self._samples: dict[date, dict[int, RawSample]] = {}
        self.fetch_count = 0
        for sample in samples:
            self.add_sample(sample)

    def add_sample(self, sample: RawSample) -> None:
        self._samples.setdefault(sample.day, {})[sample.hour] = sample

    def set_day(self, day: date, samples: Iterable[RawSample]) -> None:
        """Replace every sample recorded on ``day``."""
        self._samples[day] = {s.hour: s for s in samples if s.day == day}

    def clear(self) -> None:
        self._samples.clear()

    async def fetch_hourly_samples(self, day: date) -> list[RawSample]:
        self.fetch_count += 1
        by_hour = self._samples.get(day, {})
        logger.debug("Static provider: %d samples for %s", len(by_hour), day)
        return [by_hour[h] for h in sorted(by_hour)]
