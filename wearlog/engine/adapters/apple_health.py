"""Apple Health export provider.

Apple Health data reaches the server as the ``export.xml`` file produced by
Health.app → Profile → Export All Health Data.  This provider parses the step
and walking/running distance records once and buckets them into local hours.

A record is attributed to the hour in which it starts; Apple already splits
step counts into short (usually < 1 hour) records, so no pro-rating is done.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, tzinfo
from pathlib import Path
from xml.etree import ElementTree as ET

from wearlog.engine.base import ActivityProvider, RawSample

logger = logging.getLogger("wearlog.engine.adapters.apple_health")

_HK_STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
_HK_DISTANCE = "HKQuantityTypeIdentifierDistanceWalkingRunning"

_HK_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# unit → kilometres
_DISTANCE_UNITS = {
    "km": 1.0,
    "m": 0.001,
    "mi": 1.609344,
}


class AppleHealthExportProvider(ActivityProvider):
    """Serves hourly samples bucketed from an Apple Health XML export."""

    SOURCE_ID = "apple_health"

    def __init__(self, xml_bytes: bytes, tz: tzinfo) -> None:
        self._tz = tz
        self._buckets: dict[date, dict[int, list[float]]] = {}
        self._parse(xml_bytes)

    @classmethod
    def from_file(cls, path: str | Path, tz: tzinfo) -> "AppleHealthExportProvider":
        return cls(Path(path).read_bytes(), tz)

    def _parse(self, xml_bytes: bytes) -> None:
        try:
            root = ET.fromstring(xml_bytes)
        except ET.ParseError as exc:
            logger.error("Apple Health XML parse error: %s", exc)
            raise ValueError(f"Invalid Apple Health XML: {exc}") from exc

        # (day, hour) → [steps, distance_km]
        buckets: dict[tuple[date, int], list[float]] = defaultdict(lambda: [0.0, 0.0])
        parsed = 0

        for record in root.findall("Record"):
            rec_type = record.get("type", "")
            if rec_type not in (_HK_STEP_COUNT, _HK_DISTANCE):
                continue

            start_str = record.get("startDate", "")
            try:
                started = datetime.strptime(start_str, _HK_DATE_FORMAT).astimezone(self._tz)
                value = float(record.get("value", ""))
            except ValueError:
                continue
            if value < 0:
                continue

            key = (started.date(), started.hour)
            if rec_type == _HK_STEP_COUNT:
                buckets[key][0] += value
            else:
                factor = _DISTANCE_UNITS.get(record.get("unit", "km"))
                if factor is None:
                    logger.warning("Apple Health: unknown distance unit %r", record.get("unit"))
                    continue
                buckets[key][1] += value * factor
            parsed += 1

        for (day, hour), totals in buckets.items():
            self._buckets.setdefault(day, {})[hour] = totals

        logger.info(
            "Apple Health XML: bucketed %d records into %d hours across %d days",
            parsed, len(buckets), len(self._buckets),
        )

    async def fetch_hourly_samples(self, day: date) -> list[RawSample]:
        by_hour = self._buckets.get(day, {})
        return [
            RawSample(
                day=day,
                hour=hour,
                steps=int(round(by_hour[hour][0])),
                distance_km=round(by_hour[hour][1], 4),
            )
            for hour in sorted(by_hour)
        ]
