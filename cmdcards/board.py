"""
Card board: the add / edit / delete flow around a synchronizer.

Tracks which form is open and which delete is awaiting confirmation.
Failures are logged and kept in last_error; they never raise out of the
submit/confirm methods. A failed save keeps its form open so the user can
retry. A delete confirmation is always dismissed, whatever the outcome.
"""
import copy
import logging
from typing import Optional

from .schema import Card, CardDraft
from .sync import CardSynchronizer, CardSyncError

logger = logging.getLogger(__name__)


class CardBoard:
    """Page-level state for one user's view of the cards."""

    def __init__(self, sync: CardSynchronizer):
        self.sync = sync
        self.adding = False
        self.editing_id: Optional[str] = None
        self.pending_delete_id: Optional[str] = None
        self.last_error: Optional[Exception] = None

    # ── add ──────────────────────────────────────────────────────────────────

    def start_adding(self) -> CardDraft:
        self.adding = True
        return CardDraft()

    def cancel_adding(self) -> None:
        self.adding = False

    def submit_new(self, draft: CardDraft) -> Optional[Card]:
        """Create the card. Returns None (form stays open) on failure."""
        try:
            card = self.sync.create(draft)
        except (CardSyncError, ValueError) as e:
            logger.warning(f"Error saving card: {e}")
            self.last_error = e
            return None
        self.last_error = None
        self.adding = False
        return card

    # ── edit ─────────────────────────────────────────────────────────────────

    def start_editing(self, card_id: str) -> Card:
        """Open the edit form. Returns a copy safe to modify."""
        card = self.sync.get(card_id)
        if card is None:
            raise KeyError(card_id)
        self.editing_id = card_id
        return copy.deepcopy(card)

    def cancel_editing(self) -> None:
        self.editing_id = None

    def submit_edit(self, card: Card) -> Optional[Card]:
        """Save an edited card. On failure the edit form stays open."""
        try:
            updated = self.sync.update(card)
        except (CardSyncError, ValueError) as e:
            logger.warning(f"Error saving card {card.id}: {e}")
            self.last_error = e
            return None
        self.last_error = None
        if self.editing_id == card.id:
            self.editing_id = None
        return updated

    # ── delete ───────────────────────────────────────────────────────────────

    def request_delete(self, card_id: str) -> Card:
        card = self.sync.get(card_id)
        if card is None:
            raise KeyError(card_id)
        self.pending_delete_id = card_id
        return card

    def cancel_delete(self) -> None:
        self.pending_delete_id = None

    def confirm_delete(self) -> bool:
        """Delete the pending card. Returns True if it was removed."""
        if not self.pending_delete_id:
            return False
        card_id = self.pending_delete_id
        try:
            self.sync.remove(card_id)
        except CardSyncError as e:
            logger.warning(f"Error deleting card {card_id}: {e}")
            self.last_error = e
            return False
        finally:
            self.pending_delete_id = None
        self.last_error = None
        if self.editing_id == card_id:
            self.editing_id = None
        return True
