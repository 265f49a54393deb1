"""
Local cache synchronizer: keeps the in-memory card list and its filtered view
consistent with mutations performed against a row store.

Nothing is applied locally before the store confirms it. A failed call leaves
both lists exactly as they were and raises a LoadError, SaveError or
DeleteError for the caller to report.

Mutations are not serialized: overlapping calls are last-write-wins on the
in-memory lists.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from .schema import Card, CardDraft, utc_now
from .selection import CardSelection
from .store import RowStore, RowStoreError

logger = logging.getLogger(__name__)


class CardSyncError(Exception):
    """Base class for failed synchronizer operations."""
    pass


class LoadError(CardSyncError):
    """The initial fetch failed. The card list is empty."""
    pass


class SaveError(CardSyncError):
    """Create or update failed. Local state is unchanged."""
    pass


class DeleteError(CardSyncError):
    """Delete failed. The card is still present."""
    pass


class CardSynchronizer:
    """Owns the authoritative card list and the filtered view for one session."""

    def __init__(self, store: RowStore, table: str = "cards",
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.table = table
        self._clock = clock
        self.cards: List[Card] = []
        self.selection = CardSelection(lambda: self.cards)

    @property
    def filtered(self) -> List[Card]:
        """Snapshot of the cards currently shown."""
        return list(self.selection.visible)

    def get(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def find(self, ref: str) -> Optional[Card]:
        """Look up a card by full id or by an unambiguous id prefix."""
        card = self.get(ref)
        if card is not None or not ref:
            return card
        candidates = [c for c in self.cards if c.id.startswith(ref)]
        return candidates[0] if len(candidates) == 1 else None

    def _index_of(self, cards: List[Card], card_id: str) -> Optional[int]:
        for i, card in enumerate(cards):
            if card.id == card_id:
                return i
        return None

    @staticmethod
    def _replaced(cards: List[Card], card: Card) -> List[Card]:
        # Never mutates `cards`
        return [card if c.id == card.id else c for c in cards]

    # ── load ─────────────────────────────────────────────────────────────────

    def load(self) -> List[Card]:
        """Fetch every card. On failure both lists are left empty."""
        try:
            records = self.store.select_all(self.table)
        except RowStoreError as e:
            self.cards = []
            self.selection.visible = []
            logger.error(f"Loading {self.table} failed: {e}")
            raise LoadError(f"Could not load cards: {e}") from e

        cards: List[Card] = []
        seen = set()
        for record in records:
            try:
                card = Card.from_record(record)
            except ValueError as e:
                logger.warning(f"Skipping unreadable record: {e}")
                continue
            if card.id in seen:
                logger.warning(f"Duplicate card id {card.id} in {self.table}, keeping first")
                continue
            seen.add(card.id)
            cards.append(card)

        self.cards = cards
        self.selection.refresh()
        logger.info(f"Loaded {len(cards)} cards from {self.table}")
        return list(self.cards)

    # ── create ───────────────────────────────────────────────────────────────

    def create(self, draft: CardDraft) -> Card:
        """
        Store a draft and add the resulting card to the session.

        Timestamps are stamped here, not by the caller. The new card joins the
        filtered view only if it matches the active criteria.

        Raises:
            ValueError: the draft is missing a required field
            SaveError: the store rejected the insert
        """
        draft.validate()
        now = self._clock().isoformat()
        record = draft.to_record()
        record["created_at"] = now
        record["updated_at"] = now

        try:
            stored = self.store.insert(self.table, record)
        except RowStoreError as e:
            logger.error(f"Creating card '{draft.command}' failed: {e}")
            raise SaveError(f"Could not create card: {e}") from e
        try:
            card = Card.from_record(stored)
        except ValueError as e:
            # The row exists in the store but not in the cache until the next load()
            logger.error(f"Card '{draft.command}' stored as id={stored.get('id')!r} but unreadable: {e}")
            raise SaveError(f"Card stored but could not be read back: {e}") from e

        if self._index_of(self.cards, card.id) is None:
            self.cards = self.cards + [card]
        else:
            self.cards = self._replaced(self.cards, card)

        visible = self.selection.visible
        if self._index_of(visible, card.id) is not None:
            self.selection.visible = self._replaced(visible, card)
        elif self.selection.matches(card):
            self.selection.visible = visible + [card]

        logger.info(f"Created card {card.id} ({card.command})")
        return card

    # ── update ───────────────────────────────────────────────────────────────

    def update(self, card: Card) -> Card:
        """
        Send every field of the card with a fresh updated_at, then re-read it.

        The entry with the same id is replaced in both lists only after the
        store confirms. Pass an edited copy, not the cached instance.

        Raises:
            ValueError: a required field is blank
            SaveError: unknown id, store failure, or the row vanished
        """
        card.validate()
        if self._index_of(self.cards, card.id) is None:
            raise SaveError(f"Card {card.id} is not loaded")

        record = card.to_record()
        record.pop("id", None)
        record["updated_at"] = self._clock().isoformat()

        try:
            self.store.update_by_id(self.table, card.id, record)
            stored = self.store.select_by_id(self.table, card.id)
        except RowStoreError as e:
            logger.error(f"Updating card {card.id} failed: {e}")
            raise SaveError(f"Could not update card {card.id}: {e}") from e
        if stored is None:
            logger.error(f"Card {card.id} not found after update")
            raise SaveError(f"Card {card.id} no longer exists")

        try:
            updated = Card.from_record(stored)
        except ValueError as e:
            logger.error(f"Card {card.id} updated but unreadable: {e}")
            raise SaveError(f"Card {card.id} updated but could not be read back: {e}") from e

        # Match by id again: the lists may have changed during the store calls
        self.cards = self._replaced(self.cards, updated)
        self.selection.visible = self._replaced(self.selection.visible, updated)

        logger.info(f"Updated card {updated.id} ({updated.command})")
        return updated

    # ── remove ───────────────────────────────────────────────────────────────

    def remove(self, card_id: str) -> None:
        """Delete a card by id and drop it from both lists."""
        try:
            self.store.delete_by_id(self.table, card_id)
        except RowStoreError as e:
            logger.error(f"Deleting card {card_id} failed: {e}")
            raise DeleteError(f"Could not delete card {card_id}: {e}") from e

        self.cards = [c for c in self.cards if c.id != card_id]
        self.selection.visible = [c for c in self.selection.visible if c.id != card_id]
        logger.info(f"Deleted card {card_id}")
