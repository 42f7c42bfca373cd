"""GeoPoint value type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair stored as a ``geoPointValue``."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name in ("latitude", "longitude"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValidationError(
                    f"The {name} argument should be of type number",
                    argument=name,
                )
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(
                "GeoPoint's latitude should be within the range of -90.0 and 90.0",
                argument="latitude",
            )
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(
                "GeoPoint's longitude should be within the range of -180.0 and 180.0",
                argument="longitude",
            )

    def to_json(self) -> dict[str, Any]:
        return {
            "geoPointValue": {
                "latitude": self.latitude,
                "longitude": self.longitude,
            }
        }
