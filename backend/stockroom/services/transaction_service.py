# Overview: Service-layer operations for warehouse transactions; drafting, submission, rejection, deletion.

"""
Transaction Service

One implementation for all four transaction kinds (see transaction_kinds.py).
Approval lives in approval_service.py because it is the only transition
with a stock effect.

RULES:
1. A transaction always has at least one line, each with a positive whole
   quantity and an existing item; an item appears on at most one line.
2. Only DRAFT transactions may be updated or submitted.
3. Only WAITING_APPROVAL transactions may be rejected (or approved).
4. APPROVED and REJECTED are terminal.
5. Nothing here touches stock or the movement log.

Status changes are written with a status-guarded UPDATE so two callers
racing on the same transaction cannot both win.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Item, Supplier, STATUS_DRAFT, STATUS_WAITING_APPROVAL, STATUS_REJECTED
from ..time_utils import coerce_datetime, utcnow
from .concurrency import atomic, lock_for_update
from .numbering_service import next_number
from .transaction_kinds import TransactionKind, get_kind

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Inserts retried when a concurrent create takes the generated number
NUMBER_INSERT_ATTEMPTS = 3

# Header keys that name a different column than their snake_case spelling
HEADER_ALIASES = {
    "issued_by_id": "issued_by_user_id",
    "received_by_id": "received_by_user_id",
}


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _coerce_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidInputError(f"{field} must be an integer")


def _coerce_price(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidInputError("unit_price must be a number")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError("unit_price must be a number")
    if not price.is_finite() or price < 0:
        raise InvalidInputError("unit_price cannot be negative")
    return price


def normalize_header(kind: TransactionKind, header: Mapping[str, Any] | None) -> dict:
    """
    Map a header payload (camelCase or snake_case keys) onto the kind's columns.

    Every header field of the kind is present in the result; absent optional
    fields are None.

    Raises:
        InvalidInputError: Missing required field, bad date or id, unknown supplier
    """
    if header is None:
        header = {}
    if not isinstance(header, Mapping):
        raise InvalidInputError("Transaction header must be an object")

    model = kind.model
    raw = {}
    for key, value in header.items():
        column = _snake(key)
        column = HEADER_ALIASES.get(column, column)
        raw[column] = value

    values: dict[str, Any] = {}
    for field in model.HEADER_FIELDS + ("notes",):
        value = raw.get(field)
        if isinstance(value, str):
            value = value.strip() or None

        if value is not None and field in model.INT_FIELDS:
            value = _coerce_int(value, field)
        if value is not None and field in model.DATE_FIELDS:
            try:
                value = coerce_datetime(value)
            except ValueError:
                raise InvalidInputError(f"Invalid {field} format")

        values[field] = value

    missing = [f for f in model.REQUIRED_FIELDS if values.get(f) is None]
    if missing:
        raise InvalidInputError(
            f"{kind.label} requires: {', '.join(missing)}",
            missing=missing,
        )

    supplier_id = values.get("supplier_id")
    if supplier_id is not None:
        if db.session.query(Supplier.id).filter_by(id=supplier_id).first() is None:
            raise InvalidInputError(f"Supplier {supplier_id} not found")

    return values


def normalize_lines(kind: TransactionKind, lines: Iterable[Mapping[str, Any]] | None) -> list[dict]:
    """
    Validate a line payload: at least one line, positive integer quantities,
    existing items, one line per item.

    Raises:
        InvalidInputError: If any line is invalid
    """
    if lines is None or isinstance(lines, (str, bytes, Mapping)):
        raise InvalidInputError("items is required and must be a non-empty array")
    lines = list(lines)
    if not lines:
        raise InvalidInputError("items is required and must be a non-empty array")

    extra_fields = kind.model.LINE_FIELDS
    normalized = []
    seen: set[int] = set()
    for position, line in enumerate(lines, start=1):
        if not isinstance(line, Mapping):
            raise InvalidInputError(f"Line {position} must be an object")
        data = {_snake(k): v for k, v in line.items()}

        if data.get("item_id") is None:
            raise InvalidInputError(f"Line {position}: item_id is required")
        item_id = _coerce_int(data["item_id"], "item_id")

        if data.get("quantity") is None:
            raise InvalidInputError(f"Line {position}: quantity is required")
        quantity = _coerce_int(data["quantity"], "quantity")
        if quantity <= 0:
            raise InvalidInputError(f"Line {position}: quantity must be positive")

        if item_id in seen:
            raise InvalidInputError(
                f"Item {item_id} appears on more than one line; combine the quantities instead"
            )
        seen.add(item_id)

        entry = {"item_id": item_id, "quantity": quantity}
        if "unit_price" in extra_fields:
            entry["unit_price"] = _coerce_price(data.get("unit_price"))
        normalized.append(entry)

    found = {
        row.id for row in db.session.query(Item.id).filter(Item.id.in_(seen)).all()
    }
    missing = sorted(seen - found)
    if missing:
        raise InvalidInputError(
            f"Item not found: {', '.join(str(i) for i in missing)}",
            missing_item_ids=missing,
        )

    return normalized


def _replace_lines(kind: TransactionKind, tx, lines: list[dict]) -> None:
    tx.lines.clear()
    db.session.flush()
    for entry in lines:
        tx.lines.append(kind.line_model(**entry))


def _number_taken(kind: TransactionKind, number: str) -> bool:
    model = kind.model
    return db.session.query(model.id).filter(model.number == number).first() is not None


def _number_exists(kind: TransactionKind):
    def _exists(candidate: str) -> bool:
        return _number_taken(kind, candidate)

    return _exists


def get_transaction(kind, transaction_id: int, *, lock: bool = False):
    """
    Load a transaction of the given kind.

    Raises:
        NotFoundError: If not found
    """
    kind = get_kind(kind)
    query = db.session.query(kind.model).filter_by(id=transaction_id)
    if lock:
        query = lock_for_update(query)
    tx = query.first()
    if tx is None:
        raise NotFoundError(f"{kind.label} {transaction_id} not found")
    return tx


def transition_status(kind, tx, *, from_status: str, to_status: str, **values) -> None:
    """
    Move tx from from_status to to_status with a status-guarded UPDATE.

    Raises:
        InvalidStateError: If the row was no longer in from_status
    """
    kind = get_kind(kind)
    model = kind.model
    result = db.session.execute(
        update(model)
        .where(model.id == tx.id, model.status == from_status)
        .values(status=to_status, **values)
    )
    if result.rowcount != 1:
        raise InvalidStateError(
            f"{kind.label} {tx.number} is no longer {from_status}",
            expected_status=from_status,
        )
    logger.info("%s %s: %s -> %s", kind.label, tx.number, from_status, to_status)


def create_transaction(kind, header: Mapping[str, Any] | None, lines, creator_id: int):
    """
    Create a DRAFT transaction with its lines.

    Args:
        kind: Transaction kind name, slug or TransactionKind
        header: Kind-specific header fields (see the model's HEADER_FIELDS)
        lines: [{item_id, quantity[, unit_price]}, ...]
        creator_id: Principal creating the document

    Returns:
        The created transaction

    Raises:
        InvalidInputError: If header or lines fail validation
        ConflictError: If no unique number could be generated
    """
    kind = get_kind(kind)
    attempted = {}

    def _op():
        if creator_id is None:
            raise InvalidInputError("creator_id is required")
        values = normalize_header(kind, header)
        line_values = normalize_lines(kind, lines)

        for field in kind.model.DEFAULT_NOW_FIELDS:
            if values.get(field) is None:
                values[field] = utcnow()
        for field in kind.model.DEFAULT_CREATOR_FIELDS:
            if values.get(field) is None:
                values[field] = creator_id

        attempted["number"] = next_number(kind.prefix, exists=_number_exists(kind))
        tx = kind.model(
            number=attempted["number"],
            status=STATUS_DRAFT,
            created_by_user_id=creator_id,
            **values,
        )
        for entry in line_values:
            tx.lines.append(kind.line_model(**entry))

        db.session.add(tx)
        db.session.flush()
        logger.info("Created %s %s with %d lines", kind.label, tx.number, len(line_values))
        return tx

    # The number can be taken between the exists check and the flush
    for attempt in range(1, NUMBER_INSERT_ATTEMPTS + 1):
        try:
            return atomic(_op)
        except IntegrityError:
            number = attempted.get("number")
            if number is None or not _number_taken(kind, number):
                raise
            logger.warning(
                "%s number %s was taken concurrently (attempt %d/%d)",
                kind.label, number, attempt, NUMBER_INSERT_ATTEMPTS,
            )

    raise ConflictError(
        f"Could not allocate a unique {kind.label.lower()} number "
        f"after {NUMBER_INSERT_ATTEMPTS} attempts"
    )


def update_transaction(kind, transaction_id: int, header: Mapping[str, Any] | None, lines):
    """
    Replace the header fields and the whole line set of a DRAFT transaction.

    Raises:
        NotFoundError: If not found
        InvalidStateError: If not in DRAFT status
        InvalidInputError: If header or lines fail validation
    """
    kind = get_kind(kind)

    def _op():
        tx = get_transaction(kind, transaction_id, lock=True)
        if tx.status != STATUS_DRAFT:
            raise InvalidStateError(
                f"Only DRAFT {kind.label.lower()} can be edited (current status is {tx.status})",
                status=tx.status,
            )

        values = normalize_header(kind, header)
        line_values = normalize_lines(kind, lines)

        for field in kind.model.DEFAULT_NOW_FIELDS + kind.model.DEFAULT_CREATOR_FIELDS:
            if values.get(field) is None:
                values[field] = getattr(tx, field)

        for field, value in values.items():
            setattr(tx, field, value)
        _replace_lines(kind, tx, line_values)

        db.session.flush()
        logger.info("Updated %s %s (%d lines)", kind.label, tx.number, len(line_values))
        return tx

    return atomic(_op)


def submit_transaction(kind, transaction_id: int):
    """
    Submit a DRAFT transaction for approval (DRAFT -> WAITING_APPROVAL).

    No stock effect.

    Raises:
        NotFoundError: If not found
        InvalidStateError: If not in DRAFT status
    """
    kind = get_kind(kind)

    def _op():
        tx = get_transaction(kind, transaction_id, lock=True)
        if tx.status != STATUS_DRAFT:
            raise InvalidStateError(
                f"Cannot submit {kind.label.lower()} {tx.number}: "
                f"current status is '{tx.status}', must be '{STATUS_DRAFT}'",
                status=tx.status,
            )
        if not tx.lines:
            raise InvalidInputError(f"{kind.label} {tx.number} has no lines")

        transition_status(
            kind, tx,
            from_status=STATUS_DRAFT,
            to_status=STATUS_WAITING_APPROVAL,
            submitted_at=utcnow(),
        )
        return tx

    return atomic(_op)


def reject_transaction(kind, transaction_id: int, reason: str | None, rejector_id: int | None = None):
    """
    Reject a whole transaction (WAITING_APPROVAL -> REJECTED).

    No stock effect and no line-level semantics; for partial rejection use
    approval_service.approve_transaction with rejected item ids.

    Raises:
        NotFoundError: If not found
        InvalidStateError: If not in WAITING_APPROVAL status
        InvalidInputError: If reason is blank
    """
    kind = get_kind(kind)

    def _op():
        tx = get_transaction(kind, transaction_id, lock=True)
        if tx.status != STATUS_WAITING_APPROVAL:
            raise InvalidStateError(
                f"Cannot reject {kind.label.lower()} {tx.number}: "
                f"current status is '{tx.status}', must be '{STATUS_WAITING_APPROVAL}'",
                status=tx.status,
            )

        if reason is not None and not isinstance(reason, str):
            raise InvalidInputError("reason must be a string")
        cleaned = (reason or "").strip()
        if not cleaned:
            raise InvalidInputError("reason is required")

        transition_status(
            kind, tx,
            from_status=STATUS_WAITING_APPROVAL,
            to_status=STATUS_REJECTED,
            reject_reason=cleaned,
            rejected_by_user_id=rejector_id,
            rejected_at=utcnow(),
        )
        return tx

    return atomic(_op)


def delete_transaction(kind, transaction_id: int) -> None:
    """
    Delete a transaction and its lines.

    Allowed in any status unless DELETE_DRAFT_ONLY is configured. Deleting
    never touches stock; movements of an approved transaction stay in the
    log (they reference the number, not the row).

    Raises:
        NotFoundError: If not found
        InvalidStateError: If DELETE_DRAFT_ONLY is set and status is not DRAFT
    """
    kind = get_kind(kind)

    def _op():
        tx = get_transaction(kind, transaction_id, lock=True)
        if current_app.config.get("DELETE_DRAFT_ONLY") and tx.status != STATUS_DRAFT:
            raise InvalidStateError(
                f"Only DRAFT {kind.label.lower()} can be deleted (current status is {tx.status})",
                status=tx.status,
            )
        number = tx.number
        db.session.delete(tx)
        db.session.flush()
        logger.info("Deleted %s %s", kind.label, number)

    atomic(_op)
