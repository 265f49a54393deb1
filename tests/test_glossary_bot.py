"""
Tests for the glossary bot: filter summaries and command handlers.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from cmdcards.config import Config
from cmdcards.schema import CardCategory
from cmdcards.selection import CardSelection
from cmdcards.sync import CardSynchronizer
from glossary_bot import GlossaryBot, describe_filters, format_categories


def make_update(text, user_id=42):
    update = MagicMock()
    update.effective_user.id = user_id
    update.effective_user.username = "tester"
    update.effective_user.full_name = "Test User"
    update.message.text = text
    update.message.reply_text = AsyncMock()
    return update


def reply_of(update):
    return update.message.reply_text.call_args[0][0]


@pytest.fixture
def bot(seeded_store, tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_BOT_TOKEN", "123:abc")
    cfg = Config(
        bot_token_env="TEST_BOT_TOKEN",
        allowed_users=["42"],
        audit_log=str(tmp_path / "audit.jsonl"),
    )
    return GlossaryBot(cfg, sync=CardSynchronizer(seeded_store))


def run(bot, handler, text, user_id=42):
    update = make_update(text, user_id)
    asyncio.run(getattr(bot, handler)(update, MagicMock()))
    return update


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_describe_filters(sample_cards):
    selection = CardSelection(lambda: sample_cards)
    assert describe_filters(selection) == "No filters"

    selection.set_term("git")
    selection.toggle_tag("basic")
    selection.toggle_category(CardCategory.GIT)
    summary = describe_filters(selection)
    assert '🔎 "git"' in summary
    assert "🏷 basic" in summary
    assert "📂 Control de versiones (Git)" in summary


def test_format_categories_lists_every_key():
    text = format_categories()
    for category in CardCategory:
        assert f"• {category.value} — " in text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Handlers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_unauthorized_user_rejected(bot, tmp_path):
    update = run(bot, "cmd_list", "/list", user_id=7)
    assert reply_of(update).startswith("⛔")
    entry = json.loads((tmp_path / "audit.jsonl").read_text().splitlines()[-1])
    assert entry["status"] == "rejected"


def test_search_and_list(bot):
    update = run(bot, "cmd_search", "/search git")
    text = reply_of(update)
    assert '🔎 "git"' in text
    assert "📋 1 card(s):" in text
    assert "git status" in text

    text = reply_of(run(bot, "cmd_list", "/list"))
    assert "📋 1 card(s):" in text


def test_selections_are_per_user(bot):
    bot.cfg.allowed_users.append("43")
    run(bot, "cmd_tag", "/tag basic")
    text = reply_of(run(bot, "cmd_list", "/list", user_id=43))
    assert "No filters" in text
    assert "📋 3 card(s):" in text


def test_tag_toggle_and_clear(bot):
    text = reply_of(run(bot, "cmd_tag", "/tag shell"))
    assert "📋 1 card(s):" in text
    text = reply_of(run(bot, "cmd_clear", "/clear"))
    assert "📋 3 card(s):" in text


def test_unknown_category(bot):
    text = reply_of(run(bot, "cmd_category", "/category cooking"))
    assert "Unknown category: cooking" in text
    text = reply_of(run(bot, "cmd_category", "/category JavaScript"))
    assert "npm install" in text


def test_tags_marks_selected(bot):
    run(bot, "cmd_tag", "/tag js")
    text = reply_of(run(bot, "cmd_tags", "/tags s"))
    assert "✓ js" in text
    assert "shell" in text
    assert "git" not in text.split("\n", 1)[1]


def test_card_lookup(bot):
    text = reply_of(run(bot, "cmd_card", "/card c2"))
    assert text.startswith("npm install")
    assert "No card matches" in reply_of(run(bot, "cmd_card", "/card zz"))


def test_delete_confirm(bot):
    text = reply_of(run(bot, "cmd_delete", "/delete c3"))
    assert 'Delete "ls -la" permanently?' in text
    assert bot.sync.get("c3") is not None

    text = reply_of(run(bot, "cmd_confirm", "/confirm"))
    assert text.startswith("✅ Deleted")
    assert bot.sync.get("c3") is None
    assert reply_of(run(bot, "cmd_confirm", "/confirm")) == "Nothing to confirm."


def test_delete_failure_reported(bot, seeded_store):
    seeded_store.fail_on.add("delete_by_id")
    run(bot, "cmd_delete", "/delete c1")
    text = reply_of(run(bot, "cmd_confirm", "/confirm"))
    assert text.startswith("❌ Delete failed")
    assert bot.sync.get("c1") is not None


def test_load_failure_reported(bot, seeded_store):
    seeded_store.fail_on.add("select_all")
    text = reply_of(run(bot, "cmd_list", "/list"))
    assert text.startswith("❌ Cards unavailable")

    seeded_store.fail_on.discard("select_all")
    text = reply_of(run(bot, "cmd_reload", "/reload"))
    assert text == "🔄 Loaded 3 cards"
