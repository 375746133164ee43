from __future__ import annotations

from decimal import Decimal
from math import atan2, cos, radians, sin, sqrt
from typing import Union

Number = Union[float, int, Decimal]

# Mean Earth radius in KM
EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: Number, lon1: Number, lat2: Number, lon2: Number) -> float:
    """Great-circle distance between two points (Haversine)."""

    phi1, phi2 = radians(float(lat1)), radians(float(lat2))
    dphi = radians(float(lat2) - float(lat1))
    dlambda = radians(float(lon2) - float(lon1))
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return float(EARTH_RADIUS_KM * c)


__all__ = ["EARTH_RADIUS_KM", "distance_km"]
