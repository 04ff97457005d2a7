"""Category/tag to glyph mapping shared by the directory and POI adapters."""

from typing import Optional

DEFAULT_ICON = "📍"
ADDRESS_ICON = "🏠"

CATEGORY_ICONS = {
    # Directory categories
    "food": "🍔",
    "coffee": "☕",
    "retail": "🛍️",
    "services": "🔧",
    "health": "💪",
    "entertainment": "🎬",
    # OSM amenity/shop values
    "restaurant": "🍴",
    "cafe": "☕",
    "fast_food": "🍟",
    "bar": "🍺",
    "pub": "🍻",
    "bakery": "🥐",
    "supermarket": "🛒",
    "pharmacy": "💊",
    "hospital": "🏥",
    "hotel": "🏨",
    "bank": "🏦",
    "school": "🎓",
    "fuel": "⛽",
    "parking": "🅿️",
    "cinema": "🎬",
    "gym": "💪",
    "fitness_centre": "💪",
    "clothes": "👚",
    "electronics": "📱",
    "books": "📚",
    "hairdresser": "💇",
    "beauty": "💅",
}


def icon_for(type_: Optional[str] = None, category: Optional[str] = None) -> str:
    if category and category in CATEGORY_ICONS:
        return CATEGORY_ICONS[category]
    if type_ and type_ in CATEGORY_ICONS:
        return CATEGORY_ICONS[type_]
    return DEFAULT_ICON
