#!/usr/bin/env python3
"""
cmdcards Bot Base
─────────────────
Telegram plumbing shared by the cmdcards bots: token and allowlist checks,
the JSONL audit trail, /help, and the polling loop.

    AuditLog  — one JSON object per line, per handled command
    BotBase   — subclass it, list commands, register handlers, call run()

Requires python-telegram-bot 20+ (async handlers).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple

from telegram import BotCommand, Update, User
from telegram.ext import Application, CommandHandler, ContextTypes

from cmdcards.config import Config

logger = logging.getLogger(__name__)

# Telegram rejects messages over 4096 characters
MESSAGE_LIMIT = 3500


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Utilities
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def utc_now() -> str:
    """Second-precision UTC timestamp with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def truncate(text: str, max_chars: int = MESSAGE_LIMIT) -> str:
    """Cut text down to one Telegram message, noting how much was dropped."""
    overflow = len(text) - max_chars
    if overflow <= 0:
        return text
    return f"{text[:max_chars]}\n…[truncated, {overflow} chars omitted]"


def command_argument(text: str) -> str:
    """Everything after the /command word, stripped."""
    parts = (text or "").split(None, 1)
    return parts[1].strip() if len(parts) > 1 else ""


def setup_logging(name: str):
    logging.basicConfig(
        level=logging.INFO,
        format=f"%(asctime)s [{name}] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class ConfigError(Exception):
    """The bot cannot start with the given configuration."""
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# AuditLog
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class AuditLog:
    """
    Append-only .jsonl trail of bot commands.

    Extra fields set to None are left out. Write failures are logged and
    swallowed: an unwritable audit file must not take the bot down.
    """

    def __init__(self, log_path: Path, bot: str):
        self.log_path = Path(log_path)
        self.bot = bot
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Audit directory {self.log_path.parent} unavailable: {e}")

    def record(self, user: User, command: str, status: str, **extra):
        entry = dict(
            ts=utc_now(),
            bot=self.bot,
            user_id=user.id,
            username=user.username or "",
            command=command,
            status=status,
        )
        entry.update((k, v) for k, v in extra.items() if v is not None)
        line = json.dumps(entry, ensure_ascii=False)
        try:
            with open(self.log_path, "a") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error(f"Audit entry dropped ({command}/{status}): {e}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BotBase
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BotBase:
    """
    Base class for cmdcards bots.

    Subclasses list their commands in bot_commands(), extend
    register_handlers() and open every handler with `await self.authorize(update)`.
    """

    def __init__(self, cfg: Config, bot_name: str):
        self.cfg = cfg
        self.bot_name = bot_name
        self.token = cfg.bot_token
        if not self.token:
            raise ConfigError(
                f"No bot token: {cfg.bot_token_env} is not set. "
                f"Create a bot with @BotFather and export {cfg.bot_token_env}."
            )
        if not cfg.allowed_users:
            logger.warning(f"{bot_name}: allowed_users is empty, every request will be rejected")
        self.audit = AuditLog(Path(cfg.audit_log), bot_name)
        setup_logging(bot_name)

    def is_authorized(self, user_id: int) -> bool:
        return str(user_id) in self.cfg.allowed_users

    async def authorize(self, update: Update) -> bool:
        """True if the sender is allowlisted. Otherwise reply, audit and return False."""
        user = update.effective_user
        if self.is_authorized(user.id):
            return True
        logger.warning(f"Rejected {user.id} (@{user.username}, {user.full_name})")
        self.audit.record(user, "UNAUTHORIZED", "rejected")
        await update.message.reply_text("⛔ Unauthorized. This incident has been logged.")
        return False

    def _audit(self, update: Update, command: str, status: str, **extra):
        self.audit.record(update.effective_user, command, status, **extra)

    # ──────────────────────────────────────────
    # Commands
    # ──────────────────────────────────────────

    def bot_commands(self) -> List[Tuple[str, str]]:
        """(command, description) pairs for /help and the Telegram menu."""
        return []

    def help_text(self) -> str:
        entries = self.bot_commands() + [("help", "Show available commands")]
        return "\n".join([f"🤖 {self.bot_name}", ""] + [f"/{name} — {desc}" for name, desc in entries])

    async def handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if await self.authorize(update):
            await update.message.reply_text(self.help_text())

    def register_handlers(self, app: Application):
        """Subclasses call super() first, then add their own handlers."""
        for name in ("help", "start"):
            app.add_handler(CommandHandler(name, self.handle_help))

    async def publish_commands(self, app: Application):
        menu = [BotCommand(name, desc[:256]) for name, desc in self.bot_commands()]
        menu.append(BotCommand("help", "Show available commands"))
        await app.bot.set_my_commands(menu)

    def run(self):
        """Poll Telegram until interrupted."""
        app = Application.builder().token(self.token).post_init(self.publish_commands).build()
        self.register_handlers(app)
        logger.info(f"{self.bot_name} polling ({len(self.cfg.allowed_users)} allowed users)")
        app.run_polling(drop_pending_updates=True)
