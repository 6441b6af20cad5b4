# produce_tracker/services/ripening.py
# Whether imported produce was likely ripened artificially after harvest.

from typing import Dict, Optional

import structlog

from produce_tracker.core.errors import ClassifierError
from produce_tracker.services.classifier import ClassifierHandle

logger = structlog.get_logger(__name__)

ETHYLENE_TREATMENT = "Ethylene gas treatment is commonly used to ripen this produce after harvest."
GREEN_HARVEST = "Often harvested green and ripened with ethylene or temperature control."

# produce -> {country -> description, "default" -> description}
RIPENING_TABLE: Dict[str, Dict[str, str]] = {
    "banana": {
        "default": "Shipped green and ripened with ethylene gas in ripening rooms near the destination market.",
        "ecuador": "Harvested green in Ecuador, shipped refrigerated and ripened with ethylene in destination ripening rooms.",
        "costa rica": "Harvested green in Costa Rica and ripened with ethylene after a two-week sea voyage.",
        "colombia": "Harvested green in Colombia and ripened with ethylene after sea transport.",
    },
    "avocado": {
        "default": "Picked mature but unripe; often pre-conditioned with ethylene before retail.",
        "peru": "Picked unripe in Peru, shipped under controlled atmosphere and pre-ripened with ethylene.",
        "mexico": "Picked unripe in Mexico and commonly ethylene-conditioned at distribution centres.",
        "spain": "Often tree-ripened longer in Spain and trucked with little or no ethylene conditioning.",
    },
    "tomato": {
        "default": GREEN_HARVEST,
        "netherlands": "Usually vine-ripened in Dutch greenhouses and sold without ethylene treatment.",
        "morocco": "Often picked at the breaker stage in Morocco and ripened during refrigerated transport.",
    },
    "mango": {
        "default": "Harvested mature-green and frequently ripened with ethylene at the destination.",
        "india": "Traditionally ripened in India; export fruit is ethylene-ripened after hot water treatment.",
        "brazil": "Harvested mature-green in Brazil and ripened with ethylene after sea freight.",
    },
    "kiwi": {
        "default": "Harvested firm and conditioned with ethylene to trigger ripening before sale.",
        "new zealand": "Cool-stored for months after the New Zealand harvest and ethylene-conditioned before sale.",
        "italy": "Harvested firm in Italy and ripened in storage, sometimes with ethylene.",
    },
}

ETHYLENE_GROUP = ("banana", "avocado", "mango", "papaya", "kiwi")
GREEN_HARVEST_GROUP = ("tomato", "pepper", "eggplant")

LONG_HAUL_KM = 5000.0


def _table_entry(produce: str, source: str) -> Optional[str]:
    for key, descriptions in RIPENING_TABLE.items():
        if key in produce:
            for country, text in descriptions.items():
                if country != "default" and country in source:
                    return text
            return descriptions["default"]
    return None


def distance_adjusted(raw_score: float, distance_km: float) -> float:
    """Longer journeys make artificial ripening more likely."""
    factor = min(1.0, max(0.0, distance_km) / LONG_HAUL_KM)
    return raw_score * (1 + factor * 0.5)


class RipeningClassifier:
    def __init__(self, classifier: Optional[ClassifierHandle] = None, use_generation: bool = False):
        self.classifier = classifier
        self.use_generation = use_generation

    async def classify(
        self,
        produce_name: str,
        source_location: str,
        distance_km: float = 0.0,
        destination: Optional[str] = None,
    ) -> Optional[str]:
        """Ripening description, or None for natural/unknown ripening."""
        produce = (produce_name or "").lower().strip()
        source = (source_location or "").lower().strip()

        described = _table_entry(produce, source)
        if described:
            return described
        if any(item in produce for item in ETHYLENE_GROUP):
            return ETHYLENE_TREATMENT
        if any(item in produce for item in GREEN_HARVEST_GROUP):
            return GREEN_HARVEST

        return await self._infer(produce_name, source_location, distance_km, destination)

    async def _infer(self, produce_name, source_location, distance_km, destination) -> Optional[str]:
        if self.classifier is None:
            return None
        try:
            artificial = await self.classifier.infer(
                f"{produce_name} imported from {source_location} is ripened artificially with ethylene after harvest"
            )
            natural = await self.classifier.infer(
                f"{produce_name} from {source_location} ripens naturally on the plant before harvest"
            )
        except ClassifierError as e:
            logger.warning("ripening_classifier_unavailable", produce=produce_name, error=str(e))
            return None

        artificial_score = distance_adjusted(artificial.positive_likelihood, distance_km)
        natural_score = natural.positive_likelihood
        logger.debug("ripening_scores", produce=produce_name, artificial=artificial_score, natural=natural_score)
        if artificial_score <= natural_score:
            return None

        route = f" from {source_location}" + (f" to {destination}" if destination else "")
        template = f"Likely uses post-harvest ripening techniques when imported{route}."
        if self.use_generation:
            return await self._generated_description(produce_name, source_location) or template
        return template

    async def _generated_description(self, produce_name: str, source_location: str) -> Optional[str]:
        prompt = (
            "<|im_start|>user\n"
            f"What ripening method is commonly used for {produce_name} that is imported from {source_location}? "
            "Please provide a brief, factual description in 2-3 sentences.\n"
            "<|im_end|>\n<|im_start|>assistant\n"
        )
        try:
            text = await self.classifier.generate(prompt, max_length=150)
        except ClassifierError as e:
            logger.info("ripening_generation_failed", error=str(e))
            return None
        # Keep only the assistant turn if the model echoed chat markers
        text = text.split("<|im_start|>assistant")[-1].split("<|im_end|>")[0].strip()
        return text or None
