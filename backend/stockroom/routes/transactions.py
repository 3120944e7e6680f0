# Overview: Flask API routes for the four warehouse transaction kinds; parses input and returns JSON responses.

"""
Transaction Routes

One blueprint serves every kind; the first path segment selects it:

    /api/incoming-goods   /api/outgoing-goods
    /api/item-requests    /api/purchase-orders

Endpoints (per kind):
- POST   /api/<kind>                create DRAFT       body: header fields + items[]
- GET    /api/<kind>/<id>           fetch with lines
- PUT    /api/<kind>/<id>           replace header + lines (DRAFT only)
- POST   /api/<kind>/<id>/submit    DRAFT -> WAITING_APPROVAL
- POST   /api/<kind>/<id>/approve   body: {items: [rejected item ids], signatureImage}
- POST   /api/<kind>/<id>/reject    body: {reason}
- DELETE /api/<kind>/<id>

SECURITY: The acting user is always g.principal (set by require_principal),
NOT a user id from the request body. This keeps the audit trail honest.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_principal
from ..errors import StockroomError
from ..services import approval_service, transaction_service
from ..services.transaction_kinds import get_kind


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api")

LINE_KEYS = ("items", "lines")


def _json_object():
    """Request JSON as a dict, or None when the body is JSON but not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def _not_an_object():
    return jsonify({"error": "Request body must be an object"}), 400


def _split_payload(data: dict) -> tuple[dict, object]:
    header = {k: v for k, v in data.items() if k not in LINE_KEYS}
    lines = data.get("items", data.get("lines"))
    return header, lines


def _run(action: str, func):
    """Call a service function and render its domain errors as JSON."""
    try:
        return func()
    except StockroomError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<kind_slug>")
@require_principal
def create_transaction_route(kind_slug: str):
    """
    Create a transaction in DRAFT status.

    Request body (incoming goods example):
    {
        "supplierId": 1,                      // required for incoming/PO
        "referenceNumber": "INV-991",         // optional
        "notes": "...",                       // optional
        "items": [{"itemId": 3, "quantity": 10, "unitPrice": 2.5}]
    }

    Returns:
        201 with the created transaction
    """
    data = _json_object()
    if data is None:
        return _not_an_object()
    header, lines = _split_payload(data)

    def _op():
        tx = transaction_service.create_transaction(
            get_kind(kind_slug), header, lines, creator_id=g.principal.id,
        )
        return jsonify(tx.to_dict()), 201

    return _run(f"create {kind_slug}", _op)


@transactions_bp.get("/<kind_slug>/<int:transaction_id>")
@require_principal
def get_transaction_route(kind_slug: str, transaction_id: int):
    def _op():
        tx = transaction_service.get_transaction(get_kind(kind_slug), transaction_id)
        return jsonify(tx.to_dict())

    return _run(f"load {kind_slug} {transaction_id}", _op)


@transactions_bp.put("/<kind_slug>/<int:transaction_id>")
@require_principal
def update_transaction_route(kind_slug: str, transaction_id: int):
    """
    Replace header fields and lines of a DRAFT transaction.

    Error responses:
        404: Transaction not found
        409: Transaction is not DRAFT
        400: Invalid header or lines
    """
    data = _json_object()
    if data is None:
        return _not_an_object()
    header, lines = _split_payload(data)

    def _op():
        tx = transaction_service.update_transaction(
            get_kind(kind_slug), transaction_id, header, lines,
        )
        return jsonify(tx.to_dict())

    return _run(f"update {kind_slug} {transaction_id}", _op)


@transactions_bp.post("/<kind_slug>/<int:transaction_id>/submit")
@require_principal
def submit_transaction_route(kind_slug: str, transaction_id: int):
    def _op():
        tx = transaction_service.submit_transaction(get_kind(kind_slug), transaction_id)
        return jsonify(tx.to_dict())

    return _run(f"submit {kind_slug} {transaction_id}", _op)


@transactions_bp.post("/<kind_slug>/<int:transaction_id>/approve")
@require_principal
def approve_transaction_route(kind_slug: str, transaction_id: int):
    """
    Approve a WAITING_APPROVAL transaction with optional partial rejection.

    Request body:
    {
        "items": [4, 7],                 // item ids to REJECT; [] approves every line
        "signatureImage": "data:..."     // optional
    }

    Response:
        {
            "transaction_id": 12, "number": "OUT-20260114-7QX2",
            "approved_line_count": 1, "rejected_line_count": 1, ...
        }

    Error responses:
        404: Transaction or item not found
        409: Not WAITING_APPROVAL, or insufficient stock
        422: Every line was rejected
    """
    data = _json_object()
    if data is None:
        return _not_an_object()
    rejected = data.get("items", data.get("rejected_item_ids"))
    if not isinstance(rejected, list):
        return jsonify({"error": "items must be an array"}), 400

    signature = data.get("signatureImage", data.get("signature_image"))

    def _op():
        summary = approval_service.approve_transaction(
            get_kind(kind_slug),
            transaction_id,
            rejected,
            signature,
            approver_id=g.principal.id,
        )
        return jsonify(summary)

    return _run(f"approve {kind_slug} {transaction_id}", _op)


@transactions_bp.post("/<kind_slug>/<int:transaction_id>/reject")
@require_principal
def reject_transaction_route(kind_slug: str, transaction_id: int):
    """
    Reject a whole WAITING_APPROVAL transaction. No stock effect.

    Request body:
        {"reason": "Wrong supplier"}
    """
    data = _json_object()
    if data is None:
        return _not_an_object()

    def _op():
        tx = transaction_service.reject_transaction(
            get_kind(kind_slug),
            transaction_id,
            data.get("reason"),
            rejector_id=g.principal.id,
        )
        return jsonify(tx.to_dict())

    return _run(f"reject {kind_slug} {transaction_id}", _op)


@transactions_bp.delete("/<kind_slug>/<int:transaction_id>")
@require_principal
def delete_transaction_route(kind_slug: str, transaction_id: int):
    def _op():
        kind = get_kind(kind_slug)
        transaction_service.delete_transaction(kind, transaction_id)
        return jsonify({"message": f"{kind.label} deleted successfully"})

    return _run(f"delete {kind_slug} {transaction_id}", _op)
