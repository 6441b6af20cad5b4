# produce_tracker/services/nutrition.py
"""Food groups and per-100g nutrient profiles used for similarity scoring."""

import re
from functools import lru_cache
from typing import Dict, List, Pattern, Tuple

from produce_tracker.models.dto import NutritionFeatures

FOOD_GROUPS: Dict[str, Tuple[str, ...]] = {
    "fruits": (
        "apple", "banana", "orange", "grape", "strawberry", "blueberry", "raspberry", "blackberry",
        "pear", "peach", "plum", "kiwi", "mango", "pineapple", "watermelon", "melon", "apricot", "cherry",
        "avocado", "fig", "papaya", "guava", "pomegranate", "lychee",
    ),
    "vegetables": (
        "broccoli", "cauliflower", "carrot", "potato", "tomato", "onion", "garlic", "pepper",
        "spinach", "kale", "lettuce", "cabbage", "celery", "cucumber", "zucchini", "eggplant",
        "asparagus", "beet", "radish", "turnip", "squash", "pumpkin", "sweet potato", "brussels sprout",
    ),
    "grains": ("rice", "wheat", "oats", "barley", "quinoa", "corn", "rye", "millet", "buckwheat"),
    "protein": ("beans", "lentils", "chickpeas", "peas", "tofu", "tempeh", "soy"),
    "nuts_seeds": (
        "almond", "walnut", "pecan", "cashew", "pistachio", "hazelnut", "peanut",
        "sunflower seed", "pumpkin seed", "chia seed", "flax seed", "sesame seed",
    ),
    "leafy_greens": ("spinach", "kale", "lettuce", "chard", "arugula", "watercress", "bok choy"),
    "cruciferous": ("broccoli", "cauliflower", "cabbage", "brussels sprout", "kale", "kohlrabi", "radish"),
    "root_vegetables": ("carrot", "potato", "beet", "turnip", "parsnip", "radish", "sweet potato", "celeriac"),
    "nightshades": ("tomato", "pepper", "eggplant", "potato"),
    "berries": ("strawberry", "blueberry", "raspberry", "blackberry", "currant", "gooseberry", "cranberry"),
    "citrus": ("orange", "lemon", "lime", "grapefruit", "mandarin", "clementine"),
    "tropical_fruits": ("banana", "mango", "pineapple", "papaya", "guava", "lychee", "passion fruit", "coconut"),
    "stone_fruits": ("peach", "plum", "cherry", "apricot", "nectarine"),
    "pome_fruits": ("apple", "pear", "quince"),
    "high_fat_fruits": ("avocado", "olive", "coconut"),
}

GENERIC_CANDIDATES: Tuple[str, ...] = (
    "apple", "pear", "banana", "carrot", "tomato", "spinach",
    "lettuce", "broccoli", "potato", "strawberry", "bell pepper", "kiwi",
)

def _n(calories, protein, carbs, fat, *vitamins) -> NutritionFeatures:
    return NutritionFeatures(calories=calories, protein=protein, carbs=carbs, fat=fat, vitamins=frozenset(vitamins))

# Per 100 g, raw
NUTRITION_TABLE: Dict[str, NutritionFeatures] = {
    "apple": _n(52, 0.3, 14, 0.2, "C"),
    "pear": _n(57, 0.4, 15, 0.1, "C", "K"),
    "banana": _n(89, 1.1, 23, 0.3, "B6", "C"),
    "orange": _n(47, 0.9, 12, 0.1, "C", "folate"),
    "lemon": _n(29, 1.1, 9, 0.3, "C"),
    "grape": _n(69, 0.7, 18, 0.2, "C", "K"),
    "strawberry": _n(32, 0.7, 8, 0.3, "C", "folate"),
    "blueberry": _n(57, 0.7, 14, 0.3, "C", "K"),
    "raspberry": _n(52, 1.2, 12, 0.7, "C", "K"),
    "blackberry": _n(43, 1.4, 10, 0.5, "C", "K"),
    "peach": _n(39, 0.9, 10, 0.3, "C", "A"),
    "plum": _n(46, 0.7, 11, 0.3, "C", "K"),
    "cherry": _n(63, 1.1, 16, 0.2, "C"),
    "apricot": _n(48, 1.4, 11, 0.4, "A", "C"),
    "kiwi": _n(61, 1.1, 15, 0.5, "C", "K", "E"),
    "mango": _n(60, 0.8, 15, 0.4, "A", "C"),
    "pineapple": _n(50, 0.5, 13, 0.1, "C"),
    "papaya": _n(43, 0.5, 11, 0.3, "A", "C"),
    "melon": _n(34, 0.8, 8, 0.2, "A", "C"),
    "watermelon": _n(30, 0.6, 8, 0.2, "A", "C"),
    "avocado": _n(160, 2.0, 9, 15, "K", "E", "folate"),
    "olive": _n(115, 0.8, 6, 11, "E"),
    "carrot": _n(41, 0.9, 10, 0.2, "A", "K"),
    "potato": _n(77, 2.0, 17, 0.1, "C", "B6"),
    "sweet potato": _n(86, 1.6, 20, 0.1, "A", "C"),
    "beet": _n(43, 1.6, 10, 0.2, "folate"),
    "parsnip": _n(75, 1.2, 18, 0.3, "C", "K"),
    "turnip": _n(28, 0.9, 6, 0.1, "C"),
    "radish": _n(16, 0.7, 3.4, 0.1, "C"),
    "tomato": _n(18, 0.9, 3.9, 0.2, "C", "K"),
    "pepper": _n(31, 1.0, 6, 0.3, "C", "A"),
    "bell pepper": _n(31, 1.0, 6, 0.3, "C", "A"),
    "eggplant": _n(25, 1.0, 6, 0.2, "K"),
    "zucchini": _n(17, 1.2, 3.1, 0.3, "C"),
    "cucumber": _n(15, 0.7, 3.6, 0.1, "K"),
    "spinach": _n(23, 2.9, 3.6, 0.4, "A", "C", "K", "folate"),
    "kale": _n(49, 4.3, 9, 0.9, "A", "C", "K"),
    "lettuce": _n(15, 1.4, 2.9, 0.2, "A", "K"),
    "chard": _n(19, 1.8, 3.7, 0.2, "A", "C", "K"),
    "broccoli": _n(34, 2.8, 7, 0.4, "C", "K", "folate"),
    "cauliflower": _n(25, 1.9, 5, 0.3, "C", "K"),
    "cabbage": _n(25, 1.3, 6, 0.1, "C", "K"),
    "brussels sprout": _n(43, 3.4, 9, 0.3, "C", "K"),
    "asparagus": _n(20, 2.2, 3.9, 0.1, "K", "folate"),
    "celery": _n(16, 0.7, 3, 0.2, "K"),
    "onion": _n(40, 1.1, 9, 0.1, "C"),
    "garlic": _n(149, 6.4, 33, 0.5, "C", "B6"),
    "leek": _n(61, 1.5, 14, 0.3, "A", "K"),
    "squash": _n(45, 1.0, 12, 0.1, "A", "C"),
    "pumpkin": _n(26, 1.0, 6.5, 0.1, "A", "C"),
    "peas": _n(81, 5.4, 14, 0.4, "C", "K"),
    "beans": _n(127, 8.7, 23, 0.5, "folate"),
    "lentils": _n(116, 9.0, 20, 0.4, "folate"),
    "chickpeas": _n(164, 8.9, 27, 2.6, "folate"),
    "corn": _n(86, 3.3, 19, 1.4, "B6"),
    "walnut": _n(654, 15, 14, 65, "E"),
    "hazelnut": _n(628, 15, 17, 61, "E"),
    "almond": _n(579, 21, 22, 50, "E"),
    "sunflower seed": _n(584, 21, 20, 51, "E"),
}

# Typical profile for items only known by their group
GROUP_PROFILES: Dict[str, NutritionFeatures] = {
    "fruits": _n(55, 0.8, 14, 0.3, "C"),
    "vegetables": _n(30, 1.5, 6, 0.2, "C", "K"),
    "grains": _n(350, 11, 70, 3),
    "protein": _n(130, 9, 20, 1.5, "folate"),
    "nuts_seeds": _n(600, 18, 20, 52, "E"),
    "leafy_greens": _n(22, 2.2, 3.8, 0.3, "A", "K"),
    "cruciferous": _n(32, 2.4, 6.5, 0.3, "C", "K"),
    "root_vegetables": _n(55, 1.2, 12, 0.2, "A"),
    "nightshades": _n(30, 1.0, 6, 0.2, "C"),
    "berries": _n(45, 0.9, 11, 0.4, "C"),
    "citrus": _n(40, 0.9, 10, 0.2, "C"),
    "tropical_fruits": _n(60, 0.7, 15, 0.3, "A", "C"),
    "stone_fruits": _n(48, 1.0, 12, 0.3, "A", "C"),
    "pome_fruits": _n(54, 0.4, 14, 0.2, "C"),
    "high_fat_fruits": _n(140, 1.5, 8, 13, "E"),
}

GENERIC_PROFILE = _n(45, 1.2, 10, 0.3, "C")


def normalize(name: str) -> str:
    return " ".join((name or "").lower().split())


@lru_cache(maxsize=512)
def _word_pattern(item: str) -> Pattern[str]:
    # Whole words only, plurals included ("tomatoes", "cherries")
    if item.endswith("y"):
        stem = re.escape(item[:-1]) + r"(?:y|ies)"
    else:
        stem = re.escape(item) + r"(?:e?s)?"
    return re.compile(rf"\b{stem}\b")


def _names(name: str, item: str) -> bool:
    return name == item or bool(_word_pattern(item).search(name))


def _contains(name: str, item: str) -> bool:
    return item in name or (len(name) >= 3 and name in item)


def find_food_groups(produce_name: str) -> List[str]:
    """
    Matching groups, most specific (fewest members) first.

    Members are matched as whole words, so "apple" stays out of the group
    holding "pineapple". Plain substring matching is only tried when no
    member matches that way.
    """
    name = normalize(produce_name)
    if not name:
        return []
    groups = [g for g, items in FOOD_GROUPS.items() if any(_names(name, item) for item in items)]
    if not groups:
        groups = [g for g, items in FOOD_GROUPS.items() if any(_contains(name, item) for item in items)]
    return sorted(groups, key=lambda g: len(FOOD_GROUPS[g]))


def same_produce(a: str, b: str) -> bool:
    a, b = normalize(a), normalize(b)
    return bool(a) and bool(b) and (_names(a, b) or _names(b, a))


def nutrition_features(produce_name: str) -> NutritionFeatures:
    """Table lookup, then the item's food-group profile, then a generic produce profile."""
    name = normalize(produce_name)
    if name in NUTRITION_TABLE:
        return NUTRITION_TABLE[name]
    # Longest key first so "sweet potato" wins over "potato"
    for key in sorted(NUTRITION_TABLE, key=len, reverse=True):
        if key in name:
            return NUTRITION_TABLE[key]
    groups = find_food_groups(name)
    if groups:
        return GROUP_PROFILES[groups[0]]
    return GENERIC_PROFILE
