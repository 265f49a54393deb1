"""Plain-text card formatting (used by the bot and for terminal output)."""
from typing import Sequence

from .schema import Card, resolve_category


def format_card(card: Card) -> str:
    """Format one card with its examples, notes and tags."""
    header = card.command
    if card.favorite:
        header += " ★"
    if card.generated_by_ai:
        header += " [AI]"

    lines = [
        header,
        f"📂 {resolve_category(card.category).label}",
        "",
        card.description,
    ]

    if card.examples:
        lines.append("")
        lines.append("💡 Ejemplos:")
        for example in card.examples:
            lines.append(f"  $ {example.cmd}")
            if example.desc:
                lines.append(f"    {example.desc}")

    if card.qa_context:
        lines.append("")
        lines.append(f"🎯 Contexto QA: {card.qa_context}")

    if card.reminder:
        lines.append("")
        lines.append(f"⚠️ Recuerda: {card.reminder}")

    if card.tags:
        lines.append("")
        lines.append("🏷 " + " ".join(f"#{tag}" for tag in card.tags))

    lines.append("")
    lines.append(f"id: {card.id}")
    return "\n".join(lines)


def format_card_list(cards: Sequence[Card], limit: int = 15) -> str:
    """One line per card, capped at limit, with a count of the rest."""
    if not cards:
        return "No cards found."

    lines = [f"📋 {len(cards)} card(s):"]
    for card in cards[:limit]:
        star = "★ " if card.favorite else ""
        lines.append(f"• {star}{card.command} — {card.id[:8]}")
    if len(cards) > limit:
        lines.append(f"…and {len(cards) - limit} more")
    return "\n".join(lines)
