# produce_tracker/utils/haversine.py
# Great-circle distance, the fallback every distance lookup can rely on.

from math import radians, sin, cos, sqrt, asin

from produce_tracker.models.dto import Coordinates

# Earth's radius in kilometers
R = 6371.0

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points
    on the Earth (specified in decimal degrees) using the Haversine formula.

    Returns:
        Distance between the two points in kilometers.
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1

    a = sin(dlat / 2)**2 + cos(lat1) * cos(lat2) * sin(dlon / 2)**2
    # Clamp guards against a > 1 from floating point error near antipodes
    c = 2 * asin(sqrt(min(1.0, a)))

    return R * c


def haversine_km(origin: Coordinates, destination: Coordinates) -> int:
    """Whole kilometres between two coordinates, never negative."""
    return max(0, round(haversine(origin.lat, origin.lng, destination.lat, destination.lng)))
