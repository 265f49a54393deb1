"""
Card filter engine.

Pure functions: given the full card list and the active criteria, compute the
visible subset. Stages (all conjunctive, order-independent):

  term       - case-insensitive substring over command, description,
               qa_context, and every example's cmd/desc (any hit passes)
  tags       - card must carry EVERY selected tag (exact match)
  categories - card category must be ANY of the selected categories

An empty stage is skipped. Input order is preserved.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, FrozenSet, Sequence, Any

from .schema import Card, CardCategory


def _coerce_category(value: Any) -> Any:
    if isinstance(value, CardCategory):
        return value
    try:
        return CardCategory(value)
    except (ValueError, TypeError):
        # Kept as-is so the stage stays active; it can never match a card
        return value


@dataclass(frozen=True)
class FilterCriteria:
    """Active search term, selected tags and selected categories."""
    term: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)
    categories: FrozenSet[CardCategory] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "term", self.term or "")
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        object.__setattr__(self, "categories", frozenset(_coerce_category(c) for c in (self.categories or ())))

    @property
    def has_term(self) -> bool:
        return bool(self.term.strip())

    @property
    def is_empty(self) -> bool:
        return not self.has_term and not self.tags and not self.categories


def matches_term(card: Card, term: str) -> bool:
    """True if the term occurs in any searchable field of the card."""
    needle = term.lower()
    fields = [card.command, card.description, card.qa_context]
    for example in card.examples:
        fields.append(example.cmd)
        fields.append(example.desc)
    return any(needle in (value or "").lower() for value in fields)


def card_matches(card: Card, criteria: FilterCriteria) -> bool:
    if criteria.has_term and not matches_term(card, criteria.term):
        return False
    if criteria.tags and not criteria.tags.issubset(card.tags):
        return False
    if criteria.categories:
        if not isinstance(card.category, CardCategory):
            return False
        if card.category not in criteria.categories:
            return False
    return True


def filter_cards(cards: Sequence[Card], criteria: FilterCriteria = None) -> List[Card]:
    """Return the cards matching the criteria, in input order."""
    if criteria is None or criteria.is_empty:
        return list(cards)
    return [card for card in cards if card_matches(card, criteria)]


def collect_tags(cards: Iterable[Card]) -> List[str]:
    """All distinct tags across the cards, sorted ascending."""
    return sorted({tag for card in cards for tag in card.tags})


def narrow_tags(tags: Iterable[str], search: str) -> List[str]:
    """Tag candidates containing the search text (case-insensitive)."""
    needle = (search or "").lower()
    return [tag for tag in tags if needle in tag.lower()]
