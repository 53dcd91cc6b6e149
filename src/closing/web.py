"""Flask JSON API for the buyer closing tracker."""
from flask import Flask, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from closing.config import get_settings
from closing.engine import progress
from closing.engine.stages import STAGE_DEFINITIONS, get_completed_stages, get_next_stage
from closing.models import AcceptedOffer, StatusUpdate, TaskUpdate, Transaction

app = Flask(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _user() -> str:
    # TODO: replace with the authenticated user once login exists
    return get_settings().mock_user_id


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _txn_dict(t: Transaction) -> dict:
    out = t.model_dump(mode="json")
    out["stage_label"] = t.stage_label
    return out


def _txn_detail(t: Transaction) -> dict:
    out = _txn_dict(t)
    nxt = get_next_stage(t.status)
    out["completed_stages"] = [s.id.value for s in get_completed_stages(t.status)]
    out["next_stage"] = nxt.id.value if nxt else None
    return out


@app.errorhandler(ValidationError)
def invalid_request(err: ValidationError):
    details = err.errors(include_url=False, include_context=False)
    return jsonify({"error": "Invalid request data", "details": details}), 400


@app.errorhandler(Exception)
def unexpected_error(err: Exception):
    if isinstance(err, HTTPException):
        return jsonify({"error": err.description}), err.code
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


# ── Stages ───────────────────────────────────────────────────────────────────

@app.route("/api/stages")
def list_stages():
    return jsonify([s.model_dump(mode="json") for s in STAGE_DEFINITIONS])


# ── Transactions ─────────────────────────────────────────────────────────────

@app.route("/api/transactions")
def list_transactions():
    return jsonify({"transactions": [_txn_dict(t) for t in progress.list_transactions(_user())]})


@app.route("/api/transactions", methods=["POST"])
def create_transaction():
    offer = AcceptedOffer.model_validate(_body())
    result = progress.create_transaction(offer, _user())
    if result is None:
        return jsonify({"error": "Offer already has a transaction"}), 409
    tid, created = result
    t = progress.get_transaction(tid, _user())
    return jsonify({"transaction": _txn_detail(t), "created": created}), 201 if created else 200


@app.route("/api/transactions/<tid>")
def get_transaction(tid):
    t = progress.get_transaction(tid, _user())
    if not t:
        return jsonify({"error": "Transaction not found or unauthorized"}), 404
    return jsonify({"transaction": _txn_detail(t)})


@app.route("/api/transactions/<tid>/status", methods=["PATCH"])
def update_status(tid):
    body = StatusUpdate.model_validate(_body())
    t = progress.set_status(tid, body.status, _user())
    if not t:
        return jsonify({"error": "Transaction not found or unauthorized"}), 404
    return jsonify({"success": True, "transaction": {"id": t.id, "status": t.status.value}})


@app.route("/api/transactions/<tid>/audit")
def get_audit(tid):
    rows = progress.audit_rows(tid, _user())
    if rows is None:
        return jsonify({"error": "Transaction not found or unauthorized"}), 404
    return jsonify(rows)


# ── Tasks ────────────────────────────────────────────────────────────────────

@app.route("/api/tasks/<task_id>", methods=["PATCH"])
def update_task(task_id):
    body = TaskUpdate.model_validate(_body())
    result = progress.update_task(task_id, body.completed, _user())
    if not result:
        return jsonify({"error": "Task not found or unauthorized"}), 404
    out = result.model_dump(mode="json")
    out["success"] = True
    return jsonify(out)


if __name__ == "__main__":
    app.run(host=get_settings().web_host, port=get_settings().web_port, debug=True)
