"""Spherical distance helpers shared by repository adapters."""

from __future__ import annotations

import math

# Sphere radius used by MongoDB 2dsphere calculations; every adapter uses the
# same value so distances agree across backends.
EARTH_RADIUS_METERS = 6_378_100.0


def haversine_meters(
    longitude_a: float,
    latitude_a: float,
    longitude_b: float,
    latitude_b: float,
) -> float:
    """Great-circle distance between two lon/lat points in meters."""

    phi_a = math.radians(latitude_a)
    phi_b = math.radians(latitude_b)
    delta_phi = math.radians(latitude_b - latitude_a)
    delta_lambda = math.radians(longitude_b - longitude_a)
    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi_a) * math.cos(phi_b) * math.sin(delta_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def meters_to_radians(meters: float) -> float:
    """Convert an arc length to the angle used by `$centerSphere`."""

    return meters / EARTH_RADIUS_METERS


__all__ = ["EARTH_RADIUS_METERS", "haversine_meters", "meters_to_radians"]
