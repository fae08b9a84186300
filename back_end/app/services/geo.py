from __future__ import annotations

import math
from dataclasses import dataclass

from app.core.errors import InvalidInputError

EARTH_RADIUS_M = 6_371_000
METERS_PER_DEGREE_LAT = 111_000


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def lng_ranges(self) -> list[tuple[float, float]]:
        """Longitude intervals in [-180, 180]; two when the box crosses the antimeridian."""
        if self.max_lng - self.min_lng >= 360:
            return [(-180.0, 180.0)]
        if self.min_lng < -180:
            return [(self.min_lng + 360, 180.0), (-180.0, self.max_lng)]
        if self.max_lng > 180:
            return [(self.min_lng, 180.0), (-180.0, self.max_lng - 360)]
        return [(self.min_lng, self.max_lng)]

    def contains(self, lat: float, lng: float) -> bool:
        if not self.min_lat <= lat <= self.max_lat:
            return False
        return any(lo <= lng <= hi for lo, hi in self.lng_ranges())


def validate_coordinates(lat, lng) -> tuple[float, float]:
    if lat is None or lng is None:
        raise InvalidInputError("Latitude and longitude required")
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise InvalidInputError("Latitude and longitude must be numbers")
    if math.isnan(lat) or math.isnan(lng):
        raise InvalidInputError("Latitude and longitude must be numbers")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInputError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidInputError(f"Longitude out of range: {lng}")
    return lat, lng


def validate_radius(radius_m) -> float:
    try:
        radius_m = float(radius_m)
    except (TypeError, ValueError):
        raise InvalidInputError("Radius must be a number")
    if math.isnan(radius_m) or radius_m < 0:
        raise InvalidInputError(f"Radius must be non-negative: {radius_m}")
    return radius_m


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # float error can push a slightly above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lng: float, radius_m: float) -> BoundingBox:
    """
    Degree box around (lat, lng) that contains every point within `radius_m`.

    Offsets follow radius/111000 for latitude and radius/(111000*cos(lat)) for
    longitude. The longitude offset never drops below the exact half-width of
    the spherical cap, and a cap touching a pole spans all longitudes.
    """
    lat_offset = radius_m / METERS_PER_DEGREE_LAT
    if abs(lat) + lat_offset >= 90:
        return BoundingBox(
            min_lat=max(-90.0, lat - lat_offset),
            max_lat=min(90.0, lat + lat_offset),
            min_lng=-180.0,
            max_lng=180.0,
        )

    cos_lat = math.cos(math.radians(lat))
    approx = radius_m / (METERS_PER_DEGREE_LAT * cos_lat)
    ratio = math.sin(min(radius_m / EARTH_RADIUS_M, math.pi / 2)) / cos_lat
    exact = 180.0 if ratio >= 1 else math.degrees(math.asin(ratio))
    lng_offset = min(180.0, max(approx, exact))

    return BoundingBox(
        min_lat=lat - lat_offset,
        max_lat=lat + lat_offset,
        min_lng=lng - lng_offset,
        max_lng=lng + lng_offset,
    )
