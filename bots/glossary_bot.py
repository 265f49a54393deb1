#!/usr/bin/env python3
"""
cmdcards Glossary Bot
──────────────────────
Look up glossary cards from Telegram. Every user gets their own filter
selection over one shared card cache.

Setup:
    export CMDCARDS_BOT_TOKEN=your_token_here
    python glossary_bot.py --config ../config/cmdcards.yaml

Commands:
    /search <term>     — set the search term (empty clears it)
    /tag <tag>         — toggle a tag filter
    /category <key>    — toggle a category filter
    /clear             — drop tag and category filters
    /list              — show the cards matching the current filters
    /tags [text]       — list known tags, optionally narrowed
    /categories        — list category keys
    /card <id>         — show one card (id prefix accepted)
    /delete <id>       — ask to delete a card, then /confirm or /cancel
    /reload            — reload cards from the store
"""

import logging
import sys
from pathlib import Path

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

# Allow running from project root or bots/ directory
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))
from bot_base import BotBase, command_argument, truncate
from cmdcards.board import CardBoard
from cmdcards.config import Config, open_store
from cmdcards.render import format_card, format_card_list
from cmdcards.schema import CATEGORY_STYLES, CardCategory, resolve_category
from cmdcards.selection import CardSelection
from cmdcards.sync import CardSynchronizer, LoadError

logger = logging.getLogger(__name__)


def describe_filters(selection: CardSelection) -> str:
    """One line summarizing the active term, tags and categories."""
    parts = []
    if selection.term.strip():
        parts.append(f"🔎 \"{selection.term}\"")
    if selection.tags:
        parts.append("🏷 " + ", ".join(sorted(selection.tags)))
    if selection.categories:
        labels = sorted(resolve_category(c).label for c in selection.categories)
        parts.append("📂 " + ", ".join(labels))
    return " · ".join(parts) if parts else "No filters"


def format_categories() -> str:
    lines = ["📂 Categories:"]
    for category, style in CATEGORY_STYLES.items():
        lines.append(f"• {category.value} — {style.label}")
    return "\n".join(lines)


class GlossaryBot(BotBase):
    """Search, filter and browse cards; delete with confirmation."""

    def __init__(self, cfg: Config, sync: CardSynchronizer = None):
        super().__init__(cfg, "glossary_bot")
        self.sync = sync or CardSynchronizer(open_store(cfg), table=cfg.table)
        self._loaded = False
        self._selections: dict[int, CardSelection] = {}
        self._boards: dict[int, CardBoard] = {}

    def bot_commands(self) -> list:
        return [
            ("search", "Search cards by text"),
            ("tag", "Toggle a tag filter"),
            ("category", "Toggle a category filter"),
            ("clear", "Clear tag and category filters"),
            ("list", "Show matching cards"),
            ("tags", "List known tags"),
            ("categories", "List categories"),
            ("card", "Show one card"),
            ("delete", "Delete a card (asks for confirmation)"),
            ("reload", "Reload cards from the store"),
        ]

    def register_handlers(self, app: Application):
        super().register_handlers(app)
        app.add_handler(CommandHandler("search", self.cmd_search))
        app.add_handler(CommandHandler("tag", self.cmd_tag))
        app.add_handler(CommandHandler("category", self.cmd_category))
        app.add_handler(CommandHandler("clear", self.cmd_clear))
        app.add_handler(CommandHandler("list", self.cmd_list))
        app.add_handler(CommandHandler("tags", self.cmd_tags))
        app.add_handler(CommandHandler("categories", self.cmd_categories))
        app.add_handler(CommandHandler("card", self.cmd_card))
        app.add_handler(CommandHandler("delete", self.cmd_delete))
        app.add_handler(CommandHandler("confirm", self.cmd_confirm))
        app.add_handler(CommandHandler("cancel", self.cmd_cancel))
        app.add_handler(CommandHandler("reload", self.cmd_reload))

    # ──────────────────────────────────────────
    # Per-user state
    # ──────────────────────────────────────────

    def _ensure_loaded(self):
        if not self._loaded:
            self.sync.load()
            self._loaded = True

    def selection_for(self, user_id: int) -> CardSelection:
        if user_id not in self._selections:
            self._selections[user_id] = CardSelection(lambda: self.sync.cards)
        return self._selections[user_id]

    def board_for(self, user_id: int) -> CardBoard:
        if user_id not in self._boards:
            self._boards[user_id] = CardBoard(self.sync)
        return self._boards[user_id]

    async def _begin(self, update: Update, command: str) -> bool:
        """Authorize and make sure cards are loaded. False means: stop here."""
        if not await self.authorize(update):
            return False
        try:
            self._ensure_loaded()
        except LoadError as e:
            logger.error(f"/{command}: {e}")
            await update.message.reply_text(f"❌ Cards unavailable: {e}")
            return False
        self._audit(update, command, "received")
        return True

    async def _reply_listing(self, update: Update, selection: CardSelection):
        visible = selection.refresh()
        text = describe_filters(selection) + "\n\n" + format_card_list(visible, self.cfg.list_limit)
        await update.message.reply_text(truncate(text))

    # ──────────────────────────────────────────
    # Filtering
    # ──────────────────────────────────────────

    async def cmd_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "search"):
            return
        selection = self.selection_for(update.effective_user.id)
        selection.set_term(command_argument(update.message.text))
        await self._reply_listing(update, selection)

    async def cmd_tag(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "tag"):
            return
        tag = command_argument(update.message.text)
        if not tag:
            await update.message.reply_text("Usage: /tag <tag>   (see /tags)")
            return
        selection = self.selection_for(update.effective_user.id)
        selection.toggle_tag(tag)
        await self._reply_listing(update, selection)

    async def cmd_category(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "category"):
            return
        key = command_argument(update.message.text).lower()
        selection = self.selection_for(update.effective_user.id)
        try:
            selection.toggle_category(CardCategory(key))
        except ValueError:
            await update.message.reply_text(f"❌ Unknown category: {key or '(none)'}\n\n{format_categories()}")
            return
        await self._reply_listing(update, selection)

    async def cmd_clear(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "clear"):
            return
        selection = self.selection_for(update.effective_user.id)
        selection.clear_filters()
        await self._reply_listing(update, selection)

    async def cmd_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "list"):
            return
        await self._reply_listing(update, self.selection_for(update.effective_user.id))

    async def cmd_tags(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "tags"):
            return
        selection = self.selection_for(update.effective_user.id)
        tags = selection.set_tag_search(command_argument(update.message.text))
        if not tags:
            await update.message.reply_text("No tags found")
            return
        marked = [f"✓ {t}" if t in selection.tags else t for t in tags]
        await update.message.reply_text(truncate("🏷 Tags:\n" + "\n".join(marked)))

    async def cmd_categories(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "categories"):
            return
        await update.message.reply_text(format_categories())

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    async def cmd_card(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "card"):
            return
        ref = command_argument(update.message.text)
        card = self.sync.find(ref) if ref else None
        if not card:
            await update.message.reply_text(f"❌ No card matches id {ref or '(none)'}")
            return
        await update.message.reply_text(truncate(format_card(card)))

    async def cmd_delete(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "delete"):
            return
        ref = command_argument(update.message.text)
        card = self.sync.find(ref) if ref else None
        if not card:
            await update.message.reply_text(f"❌ No card matches id {ref or '(none)'}")
            return
        self.board_for(update.effective_user.id).request_delete(card.id)
        await update.message.reply_text(
            f"⚠️ Delete \"{card.command}\" permanently?\n"
            f"This cannot be undone. Send /confirm or /cancel."
        )

    async def cmd_confirm(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "confirm"):
            return
        board = self.board_for(update.effective_user.id)
        card_id = board.pending_delete_id
        if not card_id:
            await update.message.reply_text("Nothing to confirm.")
            return
        if board.confirm_delete():
            self._audit(update, "delete", "complete", card_id=card_id)
            await update.message.reply_text(f"✅ Deleted {card_id[:8]}")
        else:
            self._audit(update, "delete", "failed", card_id=card_id, error=str(board.last_error))
            await update.message.reply_text(f"❌ Delete failed: {board.last_error}")

    async def cmd_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self._begin(update, "cancel"):
            return
        self.board_for(update.effective_user.id).cancel_delete()
        await update.message.reply_text("✅ Cancelled.")

    async def cmd_reload(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not await self.authorize(update):
            return
        self._loaded = False
        try:
            self._ensure_loaded()
        except LoadError as e:
            await update.message.reply_text(f"❌ Reload failed: {e}")
            return
        self._audit(update, "reload", "complete", count=len(self.sync.cards))
        await update.message.reply_text(f"🔄 Loaded {len(self.sync.cards)} cards")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="cmdcards Glossary Bot")
    parser.add_argument("--config", help="Path to cmdcards.yaml (overrides CMDCARDS_CONFIG)")
    args = parser.parse_args()

    GlossaryBot(Config.load(args.config)).run()
