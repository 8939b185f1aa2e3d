"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate great-circle distance between two lat/lng points in kilometers.

    Args:
        lat1: Latitude of the first point, in degrees.
        lng1: Longitude of the first point, in degrees.
        lat2: Latitude of the second point, in degrees.
        lng2: Longitude of the second point, in degrees.

    Returns:
        Distance in kilometers.

    Notes:
        Inputs must be finite. The spherical model is accurate to roughly
        +/- 0.5%, which is plenty for "near you" matching.
    """

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)

    delta_lat = lat2_rad - lat1_rad
    delta_lng = radians(lng2) - radians(lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lng / 2
    ) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def extract_coordinates(location: object) -> tuple[float, float] | None:
    """Return (lat, lng) from a Firestore GeoPoint or a plain mapping.

    Profiles written by the web client store ``lastLocation`` as a GeoPoint,
    while seeded or test data often uses ``{"latitude": .., "longitude": ..}``.
    """

    if location is None:
        return None

    if isinstance(location, dict):
        lat = location.get("latitude")
        lng = location.get("longitude")
    else:
        lat = getattr(location, "latitude", None)
        lng = getattr(location, "longitude", None)

    if lat is None or lng is None:
        return None
    return float(lat), float(lng)
