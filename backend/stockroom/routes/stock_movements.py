# Overview: Flask API routes for reading the stock movement log.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_principal
from ..services import stock_movement_service
from ..services.item_ledger_service import get_item
from ..errors import StockroomError


stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")

MAX_PAGE_SIZE = 5000


def _page_args() -> tuple[int, int]:
    limit = request.args.get("limit", stock_movement_service.DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


def _page(item_id=None, reference=None) -> dict:
    """
    One page of the log. Fetches a single extra row to tell whether
    more movements follow.
    """
    limit, offset = _page_args()
    rows = stock_movement_service.list_stock_movements(
        item_id, reference=reference, limit=limit + 1, offset=offset,
    )
    has_more = len(rows) > limit
    rows = rows[:limit]
    return {
        "items": [m.to_dict() for m in rows],
        "count": len(rows),
        "offset": offset,
        "limit": limit,
        "has_more": has_more,
        "next_offset": offset + len(rows) if has_more else None,
    }


@stock_movements_bp.get("")
@require_principal
def list_movements_route():
    """
    Global movement log, oldest first, paged.

    Query parameters:
    - reference: Only movements of this transaction number
    - limit: Page size (default 500)
    - offset: Rows to skip; follow next_offset while has_more is true
    """
    return jsonify(_page(reference=request.args.get("reference") or None))


@stock_movements_bp.get("/item/<int:item_id>")
@require_principal
def list_item_movements_route(item_id: int):
    """Movement history for one item, oldest first, paged like the global log."""
    try:
        item = get_item(item_id)
        page = _page(item_id)
    except StockroomError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list movements for item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500

    page["item"] = item.to_dict()
    return jsonify(page)
