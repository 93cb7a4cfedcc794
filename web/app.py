"""
Flask web server for AdCheck.

Routes
──────
GET  /                        Dashboard UI
GET  /api/platforms           Platform catalog (JSON)
GET  /api/state               Current session state (JSON)
POST /api/check               Run a check and return the new history item (JSON)
GET  /api/stream?platform=..&query=..
                              SSE: stream tokens + sources + final result
GET  /api/history             List recent history entries (JSON)
GET  /api/history/<id>        Restore an entry into the session (JSON)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, render_template, request, stream_with_context

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from adcheck.checker import FeasibilityChecker
from adcheck.history import open_history
from adcheck.models import VERDICT_LABELS, HistoryItem
from adcheck.platforms import PLATFORMS
from adcheck.prompts import EmptyQueryError
from adcheck.session import Session, SessionBusyError
from config.settings import Settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _item_json(item: HistoryItem, full: bool = True) -> dict:
    data = {
        "id": item.id,
        "platform_name": item.platform_name,
        "query": item.query,
        "verdict": item.result.verdict.value,
        "verdict_label": item.result.verdict.label,
        "created_at": item.created_at.isoformat(),
    }
    if full:
        data["result"] = _result_json(item.result)
    return data


def _result_json(result) -> dict:
    data = result.model_dump(mode="json")
    data["verdict_label"] = result.verdict.label
    data["sources"] = [
        {"uri": s.uri, "title": s.display_title, "hostname": s.hostname}
        for s in result.sources
    ]
    return data


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def create_app(
    settings: Optional[Settings] = None,
    checker: Optional[FeasibilityChecker] = None,
    history=None,
) -> Flask:
    """Build the Flask app around one dashboard session."""
    settings = settings or Settings()
    checker = checker or FeasibilityChecker(settings)
    history = history if history is not None else open_history(settings)
    session = Session(checker, history)

    app = Flask(__name__)
    app.config["ADCHECK_SESSION"] = session

    # ── UI ─────────────────────────────────────────────────────────────────

    @app.route("/")
    def index():
        return render_template(
            "index.html",
            platforms=PLATFORMS,
            platform_names={p.id: p.name for p in PLATFORMS},
            state=session.state,
            verdict_labels={v.value: label for v, label in VERDICT_LABELS.items()},
            model=settings.check_model,
        )

    # ── Catalog + state ────────────────────────────────────────────────────

    @app.route("/api/platforms")
    def list_platforms():
        return jsonify([p.model_dump(mode="json") for p in PLATFORMS])

    @app.route("/api/state")
    def get_state():
        state = session.state.to_dict()
        if session.state.result is not None:
            state["result"] = _result_json(session.state.result)
        state["can_submit"] = session.can_submit
        return jsonify(state)

    def _start_error(exc: Exception):
        """Map a refused submission to its JSON error response."""
        if isinstance(exc, KeyError):
            return jsonify({"error": "Unknown platform"}), 404
        if isinstance(exc, EmptyQueryError):
            return jsonify({"error": "query is required"}), 400
        return jsonify({"error": "a check is already running"}), 409

    # ── Check ──────────────────────────────────────────────────────────────

    @app.route("/api/check", methods=["POST"])
    def check_endpoint():
        """Run a blocking check.

        JSON body: {"platform_id": "google", "query": "..."}
        """
        body = request.get_json(silent=True) or {}
        try:
            item = session.submit(body.get("platform_id") or None, body.get("query", ""))
        except (KeyError, EmptyQueryError, SessionBusyError) as exc:
            return _start_error(exc)

        if item is None:
            return jsonify({"error": session.state.error}), 502
        return jsonify(_item_json(item))

    @app.route("/api/stream")
    def stream_endpoint():
        """SSE endpoint that streams one check.

        Query params:
          platform  — platform id (defaults to the current selection)
          query     (required) — the question to check

        SSE events emitted:
          {"type": "token",  "text": "..."}      streaming text chunk
          {"type": "source", "data": {...}}       a cited page
          {"type": "result", "data": {...}}       final history item
          {"type": "error",  "message": "..."}   on failure
        """
        try:
            events = session.submit_streaming(
                request.args.get("platform") or None, request.args.get("query", "")
            )
        except (KeyError, EmptyQueryError, SessionBusyError) as exc:
            return _start_error(exc)

        def generate():
            for event_type, payload in events:
                if event_type == "token":
                    yield _sse({"type": "token", "text": payload})
                elif event_type == "source":
                    yield _sse({
                        "type": "source",
                        "data": {
                            "uri": payload.uri,
                            "title": payload.display_title,
                            "hostname": payload.hostname,
                        },
                    })
                elif event_type == "result":
                    yield _sse({"type": "result", "data": _item_json(payload)})
                elif event_type == "error":
                    yield _sse({"type": "error", "message": payload})
            yield "data: [DONE]\n\n"

        response = Response(
            stream_with_context(generate()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
        # HEAD requests and dropped clients never iterate the body.
        response.call_on_close(events.close)
        return response

    # ── History API ────────────────────────────────────────────────────────

    @app.route("/api/history")
    def list_history():
        """Return recent history entries, newest first."""
        limit = request.args.get("limit", type=int)
        if limit is not None and limit < 0:
            return jsonify({"error": "limit must be zero or positive"}), 400
        return jsonify([_item_json(i, full=False) for i in history.items(limit=limit)])

    @app.route("/api/history/<item_id>")
    def restore_history_entry(item_id: str):
        """Load a past result into the session without a new AI call."""
        try:
            item = session.restore_by_id(item_id)
        except SessionBusyError:
            return jsonify({"error": "a check is already running"}), 409
        if item is None:
            return jsonify({"error": "Not found"}), 404
        return jsonify(_item_json(item))

    return app


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    settings = Settings()
    settings.validate()
    create_app(settings).run(debug=settings.debug, host="0.0.0.0", port=settings.port)
