#!/usr/bin/env python3
"""
cmdcards Server
----------------
JSON API over the card glossary. One synchronizer per app: cards are loaded
once on first use and kept in sync with every mutation made through the API.

Usage:
    python card_server.py --config config/cmdcards.yaml
    python card_server.py --backend memory --port 3001

API:
    GET    /health
    GET    /api/cards?q=<term>&tag=<t>&tag=<t>&category=<key>
                                → { cards, count, total }
    GET    /api/cards/<id>      → { card }
    GET    /api/tags?search=    → { tags }
    GET    /api/categories      → { categories: [{key, label, style, count}] }
    POST   /api/cards           → 201 { card }          (X-API-Key)
    PUT    /api/cards/<id>      → { card }              (X-API-Key)
    DELETE /api/cards/<id>      → { deleted }           (X-API-Key)
    POST   /api/reload          → { count }             (X-API-Key)
"""

import hmac
import logging
import sys
from functools import wraps
from typing import Optional

from flask import Flask, current_app, jsonify, request

from cmdcards.config import Config, open_store
from cmdcards.filters import FilterCriteria, filter_cards, collect_tags, narrow_tags
from cmdcards.schema import CATEGORY_STYLES, Card, CardDraft
from cmdcards.sync import CardSynchronizer, LoadError, SaveError, DeleteError

logger = logging.getLogger(__name__)


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config["CMDCARDS"].api_secret
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Session ──────────────────────────────────────────────────────────────────


def get_sync() -> CardSynchronizer:
    """The app's synchronizer, loaded on first use."""
    sync = current_app.config["CMDCARDS_SYNC"]
    if not current_app.config["CMDCARDS_LOADED"]:
        sync.load()
        current_app.config["CMDCARDS_LOADED"] = True
    return sync


def _card_json(card: Card) -> dict:
    return card.to_record()


def _body_error(data: dict) -> Optional[str]:
    """Reject list fields of the wrong shape instead of silently emptying them."""
    if "examples" in data and not isinstance(data["examples"], list):
        return "'examples' must be a list"
    if "tags" in data and not isinstance(data["tags"], (list, str)):
        return "'tags' must be a list or a comma-separated string"
    return None


# ── App ──────────────────────────────────────────────────────────────────────


def create_app(config: Config = None, store=None) -> Flask:
    cfg = config or Config.load()
    app = Flask(__name__)
    app.config["CMDCARDS"] = cfg
    app.config["CMDCARDS_SYNC"] = CardSynchronizer(store or open_store(cfg), table=cfg.table)
    app.config["CMDCARDS_LOADED"] = False

    @app.errorhandler(LoadError)
    def on_load_error(e):
        # Not marked loaded: the next request retries the fetch
        return jsonify({"error": str(e)}), 502

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "backend": cfg.backend,
            "loaded": current_app.config["CMDCARDS_LOADED"],
        })

    @app.route("/api/cards", methods=["GET"])
    def api_cards():
        sync = get_sync()
        criteria = FilterCriteria(
            term=request.args.get("q", ""),
            tags=request.args.getlist("tag"),
            categories=request.args.getlist("category"),
        )
        cards = filter_cards(sync.cards, criteria)
        return jsonify({
            "cards": [_card_json(c) for c in cards],
            "count": len(cards),
            "total": len(sync.cards),
        })

    @app.route("/api/cards/<card_id>", methods=["GET"])
    def api_card(card_id):
        card = get_sync().get(card_id)
        if not card:
            return jsonify({"error": "Card not found"}), 404
        return jsonify({"card": _card_json(card)})

    @app.route("/api/tags")
    def api_tags():
        tags = collect_tags(get_sync().cards)
        return jsonify({"tags": narrow_tags(tags, request.args.get("search", ""))})

    @app.route("/api/categories")
    def api_categories():
        counts = {}
        for card in get_sync().cards:
            counts[card.category] = counts.get(card.category, 0) + 1
        return jsonify({"categories": [
            {"key": cat.value, "label": style.label, "style": style.style, "count": counts.get(cat, 0)}
            for cat, style in CATEGORY_STYLES.items()
        ]})

    @app.route("/api/cards", methods=["POST"])
    @require_api_key
    def api_create_card():
        data = request.get_json(force=True, silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object"}), 400
        error = _body_error(data)
        if error:
            return jsonify({"error": error}), 400
        draft = CardDraft.from_dict(data)
        sync = get_sync()
        try:
            card = sync.create(draft)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except SaveError as e:
            return jsonify({"error": str(e)}), 502
        return jsonify({"card": _card_json(card)}), 201

    @app.route("/api/cards/<card_id>", methods=["PUT"])
    @require_api_key
    def api_update_card(card_id):
        data = request.get_json(force=True, silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object"}), 400
        error = _body_error(data)
        if error:
            return jsonify({"error": error}), 400
        sync = get_sync()
        existing = sync.get(card_id)
        if not existing:
            return jsonify({"error": "Card not found"}), 404

        # Fields absent from the body keep their current values
        merged = existing.to_draft().to_record()
        merged.update({k: v for k, v in data.items() if k in merged})
        draft = CardDraft.from_dict(merged)
        edited = Card(
            id=existing.id,
            created_at=existing.created_at,
            updated_at=existing.updated_at,
            **vars(draft),
        )
        try:
            card = sync.update(edited)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except SaveError as e:
            return jsonify({"error": str(e)}), 502
        return jsonify({"card": _card_json(card)})

    @app.route("/api/cards/<card_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_card(card_id):
        sync = get_sync()
        if not sync.get(card_id):
            return jsonify({"error": "Card not found"}), 404
        try:
            sync.remove(card_id)
        except DeleteError as e:
            return jsonify({"error": str(e)}), 502
        return jsonify({"deleted": card_id})

    @app.route("/api/reload", methods=["POST"])
    @require_api_key
    def api_reload():
        sync = current_app.config["CMDCARDS_SYNC"]
        current_app.config["CMDCARDS_LOADED"] = False
        cards = sync.load()
        current_app.config["CMDCARDS_LOADED"] = True
        return jsonify({"count": len(cards)})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="cmdcards Server")
    parser.add_argument("--config", help="Path to cmdcards.yaml (overrides CMDCARDS_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--backend", choices=["sqlite", "rest", "memory"])
    parser.add_argument("--db", help="Path to the SQLite file (overrides CMDCARDS_DB)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [card_server] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    cfg = Config.load(args.config)
    if args.backend:
        cfg.backend = args.backend
    if args.db:
        cfg.db_path = args.db
    host = args.host or cfg.host
    port = args.port or cfg.port

    app = create_app(cfg)
    logger.info(f"Serving cards on http://{host}:{port} (backend={cfg.backend})")

    # The card cache is unlocked: serve one request at a time
    app.run(host=host, port=port, debug=False, threaded=False)
