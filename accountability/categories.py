"""
Category registry: the twelve fixed life areas a goal can belong to.
"""
from typing import Dict, List, Optional

from accountability.models import Category

CATEGORIES: List[Category] = [
    Category(1, "Health & Fitness", "◎", "#E8A87C"),
    Category(2, "Intellectual Life", "◈", "#7CB9E8"),
    Category(3, "Emotional Life", "◉", "#C9A7E8"),
    Category(4, "Character", "◆", "#E8D07C"),
    Category(5, "Spiritual Life", "✦", "#7CE8C3"),
    Category(6, "Love Relationship", "◯", "#E87CA0"),
    Category(7, "Parenting", "◑", "#A0E87C"),
    Category(8, "Social Life", "◐", "#E8B87C"),
    Category(9, "Financial Life", "◇", "#7CE8A0"),
    Category(10, "Career", "▲", "#E87C7C"),
    Category(11, "Quality of Life", "◬", "#7CC3E8"),
    Category(12, "Life Vision", "★", "#FFD700"),
]

_BY_ID: Dict[int, Category] = {c.id: c for c in CATEGORIES}

# Substituted for ids outside the registry so rendering never halts.
UNKNOWN_CATEGORY = Category(0, "Unknown", "·", "#FFD700")


def lookup(category_id: int) -> Optional[Category]:
    return _BY_ID.get(category_id)


def category_or_default(category_id: int) -> Category:
    return _BY_ID.get(category_id, UNKNOWN_CATEGORY)


def is_known(category_id: int) -> bool:
    return category_id in _BY_ID


def all_categories() -> List[Category]:
    return list(CATEGORIES)
