# produce_tracker/services/emission_model.py
# Transport + production CO2 estimate per kg of produce.

from enum import Enum


class TransportMode(str, Enum):
    AIR_FREIGHT = "air_freight"
    SEA_FREIGHT = "sea_freight"
    ROAD_LONG = "road_long"
    ROAD_SHORT = "road_short"

    @property
    def factor(self) -> float:
        """kg CO2 per kg of produce per km."""
        return EMISSION_FACTORS[self]


EMISSION_FACTORS = {
    TransportMode.AIR_FREIGHT: 0.00025,
    TransportMode.SEA_FREIGHT: 0.00003,
    TransportMode.ROAD_LONG: 0.00015,
    TransportMode.ROAD_SHORT: 0.00010,
}

LONG_HAUL_KM = 5000
ROAD_LONG_KM = 1000

# Perishables that are flown rather than shipped on long hauls
PERISHABLE_KEYWORDS = ("berry", "strawberry", "raspberry", "avocado", "mango", "papaya", "asparagus")
# Refrigeration-intensive production
REFRIGERATED_KEYWORDS = ("avocado", "asparagus", "berries")

PRODUCTION_REFRIGERATED = 0.2
PRODUCTION_DEFAULT = 0.1


def _matches(produce_name: str, keywords) -> bool:
    name = (produce_name or "").lower()
    return any(k in name for k in keywords)


def transport_mode(distance_km: float, produce_name: str) -> TransportMode:
    if distance_km > LONG_HAUL_KM:
        if _matches(produce_name, PERISHABLE_KEYWORDS):
            return TransportMode.AIR_FREIGHT
        return TransportMode.SEA_FREIGHT
    if distance_km > ROAD_LONG_KM:
        return TransportMode.ROAD_LONG
    return TransportMode.ROAD_SHORT


def production_emissions(produce_name: str) -> float:
    return PRODUCTION_REFRIGERATED if _matches(produce_name, REFRIGERATED_KEYWORDS) else PRODUCTION_DEFAULT


class EmissionModel:
    """Deterministic: the same (distance, produce) always gives the same figure."""

    def estimate(self, distance_km: float, produce_name: str) -> float:
        distance_km = max(0.0, float(distance_km))
        mode = transport_mode(distance_km, produce_name)
        total = distance_km * mode.factor + production_emissions(produce_name)
        return round(max(0.0, total), 2)
