#!/usr/bin/env python3
"""
Board Storage Server
--------------------
Persists the whole board as one JSON blob in SQLite and serves it over a
small JSON API. The board editor loads it on start and PUTs the full state
after every (debounced) change.

Usage:
    python board_server.py
    python board_server.py --port 3001 --db /data/board.db
    python board_server.py --config config.yaml

API:
    GET    /api/board          → 200 board JSON, or 204 when nothing is saved
    PUT    /api/board          → body: board JSON object; 204
    DELETE /api/board          → 204
    POST   /api/board/actions  → body: { type, payload }; applies one action
                                 to the stored board, returns the new board
    GET    /api/projects       → project summaries with live card counts
    GET    /health

Environment:
    BOARD_CONFIG, BOARD_DB_PATH, BOARD_DATA_DIR, PORT, CORS_ORIGIN, BOARD_LOG_LEVEL
"""

import logging
import os
import sqlite3
import sys
from pathlib import Path

from flask import Flask, jsonify, request

from pkg.board.actions import ActionError, action_from_dict
from pkg.board.config import BoardConfig
from pkg.board.normalizer import normalize
from pkg.board.reducer import BoardReducer
from pkg.board.store import BoardStore

CONFIG = BoardConfig.load(os.environ.get("BOARD_CONFIG"))

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = CONFIG.max_body_bytes

reducer = BoardReducer()


# ── Config ───────────────────────────────────────────────────────────────────

def get_db_path() -> Path:
    env = os.environ.get("BOARD_DB_PATH")
    if env:
        return Path(env)
    data_dir = os.environ.get("BOARD_DATA_DIR")
    if data_dir:
        return Path(data_dir) / "board.db"
    return Path(CONFIG.db_path)


def get_store() -> BoardStore:
    return BoardStore(str(get_db_path()))


# ── CORS ─────────────────────────────────────────────────────────────────────

@app.before_request
def preflight():
    if request.method == "OPTIONS":
        return "", 204


@app.after_request
def cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = os.environ.get("CORS_ORIGIN", CONFIG.cors_origin)
    response.headers["Access-Control-Allow-Methods"] = "GET,PUT,POST,DELETE,OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


@app.errorhandler(413)
def too_large(e):
    return jsonify({"error": "Board payload too large"}), 413


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/api/board", methods=["GET"])
def api_board_get():
    try:
        data = get_store().get()
    except (sqlite3.Error, ValueError) as e:
        app.logger.error(f"Failed to load board state: {e}")
        return jsonify({"error": "Failed to load board state"}), 500
    if data is None:
        return "", 204
    return jsonify(data)


@app.route("/api/board", methods=["PUT"])
def api_board_put():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid board payload"}), 400
    try:
        get_store().put(data)
    except (sqlite3.Error, TypeError, ValueError) as e:
        app.logger.error(f"Failed to save board state: {e}")
        return jsonify({"error": "Failed to save board state"}), 500
    return "", 204


@app.route("/api/board", methods=["DELETE"])
def api_board_delete():
    try:
        get_store().delete()
    except sqlite3.Error as e:
        app.logger.error(f"Failed to clear board state: {e}")
        return jsonify({"error": "Failed to clear board state"}), 500
    return "", 204


@app.route("/api/board/actions", methods=["POST"])
def api_board_action():
    """Apply one action to the stored board and persist the result."""
    body = request.get_json(force=True, silent=True)
    try:
        action = action_from_dict(body)
    except ActionError as e:
        return jsonify({"error": str(e)}), 400

    store = get_store()
    try:
        raw = store.get()
        if raw is None:
            return jsonify({"error": "No board saved yet"}), 409
        before = normalize(raw)
        after = reducer.transition(before, action)
        if after is not before:
            store.put(after.to_dict())
    except (sqlite3.Error, TypeError, ValueError) as e:
        app.logger.error(f"Failed to apply {action.type}: {e}")
        return jsonify({"error": f"Failed to apply {action.type}"}), 500

    return jsonify({"board": after.to_dict(), "changed": after is not before})


@app.route("/api/projects")
def api_projects():
    """List projects with live card counts."""
    try:
        raw = get_store().get()
    except (sqlite3.Error, ValueError) as e:
        app.logger.error(f"Failed to load board state: {e}")
        return jsonify({"error": "Failed to load board state"}), 500
    state = normalize(raw)
    counts = {p.id: 0 for p in state.projects}
    for card in state.cards.values():
        if not card.is_deleted and card.project_id in counts:
            counts[card.project_id] += 1
    projects = [
        {
            "id": p.id,
            "title": p.title,
            "thumbnailUrl": p.thumbnail_url,
            "lanes": len(p.lanes),
            "cards": counts[p.id],
            "active": p.id == state.active_project_id,
            "updatedAt": p.updated_at,
        }
        for p in state.projects
    ]
    return jsonify({"projects": projects, "count": len(projects)})


@app.route("/health")
def health():
    return jsonify({"status": "ok", "db": str(get_db_path())})


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Board Storage Server")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to board.db (overrides BOARD_DB_PATH env var)")
    parser.add_argument("--config", help="Path to config.yaml (overrides BOARD_CONFIG env var)")
    args = parser.parse_args()

    if args.config:
        CONFIG = BoardConfig.load(args.config)
        app.config["MAX_CONTENT_LENGTH"] = CONFIG.max_body_bytes
    host = args.host or CONFIG.host
    port = args.port or CONFIG.port

    if args.db:
        os.environ["BOARD_DB_PATH"] = args.db

    logging.basicConfig(
        level=getattr(logging, CONFIG.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    db_path = get_db_path()
    get_store()  # create the table up front
    app.logger.info(f"Board API listening on http://{host}:{port} (db: {db_path})")
    app.run(host=host, port=port, debug=False, threaded=True)
