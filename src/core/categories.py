"""
News categories and the lexical categorizer.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class Category:
    """
    Declarative category definition.
    """
    name: str
    description: str
    keywords: Tuple[str, ...]
    confidence_threshold: float = 0.6


POLITICS = Category(
    name="Politics",
    description="Elections, government, parliament, ministers",
    keywords=("election", "government", "president", "parliament", "minister"),
)

SECURITY = Category(
    name="Security",
    description="Military, terrorism, defense, attacks",
    keywords=("security", "attack", "military", "terrorism", "defense"),
    confidence_threshold=0.7,
)

HEALTH = Category(
    name="Health",
    description="Disease, hospitals, vaccines, healthcare",
    keywords=("health", "disease", "hospital", "vaccine", "covid", "doctor"),
)

ECONOMY = Category(
    name="Economy",
    description="Business, markets, trade, currency, GDP",
    keywords=("economy", "business", "market", "trade", "naira", "gdp"),
)

EDUCATION = Category(
    name="Education",
    description="Schools, universities, students, learning",
    keywords=("school", "education", "university", "student", "learning"),
)

ENERGY = Category(
    name="Energy",
    description="Power, oil, electricity, gas, fuel",
    keywords=("energy", "power", "oil", "electricity", "gas", "fuel"),
)

TECHNOLOGY = Category(
    name="Technology",
    description="Startups, AI, software, digital, apps",
    keywords=("tech", "startup", "ai", "software", "digital", "app"),
    confidence_threshold=0.5,
)

SOCIAL = Category(
    name="Social",
    description="Community, society, culture, life, family",
    keywords=("community", "society", "social", "culture", "life", "family"),
    confidence_threshold=0.5,
)

# Tie-break order: when two categories match the same number of keywords,
# the one listed first wins.
CATEGORY_PRIORITY: Tuple[Category, ...] = (
    POLITICS,
    SECURITY,
    HEALTH,
    ECONOMY,
    EDUCATION,
    ENERGY,
    TECHNOLOGY,
    SOCIAL,
)

ALL_CATEGORIES: Dict[str, Category] = {c.name: c for c in CATEGORY_PRIORITY}

DEFAULT_CATEGORY = SOCIAL.name
UNKNOWN_CATEGORY = "Unknown"

MAX_SECONDARY_CATEGORIES = 2


def priority_of(category_name: str) -> int:
    """Position of a category in the tie-break order; unknown names sort last."""
    for idx, category in enumerate(CATEGORY_PRIORITY):
        if category.name == category_name:
            return idx
    return len(CATEGORY_PRIORITY)


def keyword_hits(text: str, category: Category) -> int:
    """Number of the category's keywords found in text (substring match)."""
    text = text.lower()
    return sum(1 for keyword in category.keywords if keyword in text)


def categorize(content: str) -> Tuple[str, List[str]]:
    """
    Returns (primary, secondaries) for a piece of text.

    Categories are ranked by keyword hits, descending, with CATEGORY_PRIORITY
    breaking ties. Secondaries are the next two categories with at least one
    hit. Text that matches nothing falls back to DEFAULT_CATEGORY.
    """
    counts = [(category.name, keyword_hits(content, category)) for category in CATEGORY_PRIORITY]

    # sorted() is stable, so equal counts keep priority order
    ranked = sorted(counts, key=lambda pair: pair[1], reverse=True)

    if ranked[0][1] == 0:
        return DEFAULT_CATEGORY, []

    primary = ranked[0][0]
    secondaries = [
        name for name, hits in ranked[1:1 + MAX_SECONDARY_CATEGORIES] if hits > 0
    ]
    return primary, secondaries
