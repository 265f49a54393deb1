"""
Filter selection state: search term plus toggled tags and categories.

Every mutation re-runs the filter engine immediately and returns the new
visible list. The card list itself is read through a callable so the
selection always filters the current authoritative list.
"""
from typing import Callable, List, Sequence, Set, Union

from .filters import FilterCriteria, filter_cards, card_matches, collect_tags, narrow_tags
from .schema import Card, CardCategory


class CardSelection:
    """Multi-select tag/category toggles and a search term over a card list."""

    def __init__(self, cards_source: Callable[[], Sequence[Card]]):
        self._cards_source = cards_source
        self.term: str = ""
        self.tags: Set[str] = set()
        self.categories: Set[CardCategory] = set()
        self.tag_search: str = ""
        self.visible: List[Card] = list(cards_source())

    @property
    def criteria(self) -> FilterCriteria:
        return FilterCriteria(term=self.term, tags=self.tags, categories=self.categories)

    @property
    def has_selection(self) -> bool:
        return bool(self.tags or self.categories)

    def matches(self, card: Card) -> bool:
        return card_matches(card, self.criteria)

    def refresh(self) -> List[Card]:
        self.visible = filter_cards(self._cards_source(), self.criteria)
        return self.visible

    def set_term(self, term: str) -> List[Card]:
        self.term = term or ""
        return self.refresh()

    def toggle_tag(self, tag: str) -> List[Card]:
        self.tags ^= {tag}
        return self.refresh()

    def toggle_category(self, category: Union[CardCategory, str]) -> List[Card]:
        """Flip a category. Raises ValueError for a key outside the taxonomy."""
        if not isinstance(category, CardCategory):
            category = CardCategory(category)
        self.categories ^= {category}
        return self.refresh()

    def clear_filters(self) -> List[Card]:
        """Drop all selected tags and categories. The search term is kept."""
        self.tags = set()
        self.categories = set()
        return self.refresh()

    def set_tag_search(self, text: str) -> List[str]:
        self.tag_search = text or ""
        return self.available_tags()

    def available_tags(self) -> List[str]:
        """Tag choices to offer: every tag of the full list, narrowed by tag_search."""
        return narrow_tags(collect_tags(self._cards_source()), self.tag_search)
