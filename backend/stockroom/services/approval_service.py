# Overview: Approval engine; applies partial rejection and mutates stock atomically for every transaction kind.

"""
Approval Engine

================================================================================
PURPOSE: WAITING_APPROVAL -> APPROVED with line-level rejection and stock effect
================================================================================

approve_transaction(kind, id, rejected_item_ids, signature, approver_id):

    1. Load the transaction under row lock             (NotFoundError)
    2. Require status WAITING_APPROVAL                 (InvalidStateError)
    3. Drop every line whose item_id was rejected
    4. Require at least one line left                  (NoApprovableItemsError)
    5. For each remaining line, in line order:
         apply the kind's stock delta via the item ledger
                                                       (ItemNotFoundError,
                                                        InsufficientStockError)
         append one StockMovement referencing the transaction number
    6. Status-guarded write to APPROVED with approver, time and signature

RULES (NON-NEGOTIABLE):
1. Steps 3-6 commit together or not at all. Any error rolls back line
   removal, every stock change and every movement already written.
2. Stock and movements are created only here, never at create or submit.
3. Two approvers racing on one transaction: the status-guarded UPDATE lets
   exactly one through; the other gets InvalidStateError.
4. Two approvals touching the same item: the item row lock plus the
   Item.version_id check turn a lost update into StaleDataError, and the
   whole unit is retried from a fresh read.

Whole-transaction rejection is a different transition
(transaction_service.reject_transaction) and never touches stock.
================================================================================
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import InvalidInputError, InvalidStateError, NoApprovableItemsError
from ..models import STATUS_WAITING_APPROVAL, STATUS_APPROVED
from ..time_utils import utcnow
from .concurrency import atomic, run_with_retry
from .item_ledger_service import apply_delta
from .stock_movement_service import record_movement
from .transaction_kinds import TransactionKind, get_kind
from .transaction_service import get_transaction, transition_status

logger = logging.getLogger(__name__)


def _normalize_rejected_ids(rejected_item_ids: Iterable | None) -> set[int]:
    if rejected_item_ids is None:
        return set()
    if isinstance(rejected_item_ids, (str, bytes, dict)):
        raise InvalidInputError("items must be an array")

    ids = set()
    for value in rejected_item_ids:
        if isinstance(value, bool):
            raise InvalidInputError("Rejected item ids must be integers")
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            raise InvalidInputError("Rejected item ids must be integers")
    return ids


def _approve(
    kind: TransactionKind,
    transaction_id: int,
    rejected_ids: set[int],
    signature: str | None,
    approver_id: int,
) -> dict:
    tx = get_transaction(kind, transaction_id, lock=True)

    if tx.status != STATUS_WAITING_APPROVAL:
        raise InvalidStateError(
            f"Only WAITING_APPROVAL {kind.label.lower()} can be approved "
            f"({tx.number} is {tx.status})",
            status=tx.status,
        )

    rejected_lines = [line for line in tx.lines if line.item_id in rejected_ids]
    for line in rejected_lines:
        tx.lines.remove(line)

    approved_lines = list(tx.lines)
    if not approved_lines:
        raise NoApprovableItemsError(
            "All items were rejected. Nothing to approve.",
            rejected_line_count=len(rejected_lines),
        )

    check_stock = kind.requires_sufficient_stock()
    movement_ids = []
    for line in approved_lines:
        previous, new = apply_delta(
            line.item_id,
            kind.stock_delta(line.quantity),
            allow_negative=not check_stock,
        )
        note = kind.movement_note
        if rejected_lines:
            note = f"{note} (partial)"
        movement = record_movement(
            item_id=line.item_id,
            direction=kind.direction,
            quantity=line.quantity,
            previous_stock=previous,
            new_stock=new,
            reference=tx.number,
            performed_by_user_id=approver_id,
            transaction_kind=kind.name,
            notes=note,
        )
        movement_ids.append(movement.id)

    transition_status(
        kind, tx,
        from_status=STATUS_WAITING_APPROVAL,
        to_status=STATUS_APPROVED,
        approved_by_user_id=approver_id,
        approved_at=utcnow(),
        signature_image=signature,
    )

    return {
        "transaction_id": tx.id,
        "number": tx.number,
        "kind": kind.name,
        "status": STATUS_APPROVED,
        "approved_line_count": len(approved_lines),
        "rejected_line_count": len(rejected_lines),
        "movement_ids": movement_ids,
    }


def approve_transaction(
    kind,
    transaction_id: int,
    rejected_item_ids: Iterable | None = None,
    signature: str | None = None,
    *,
    approver_id: int,
) -> dict:
    """
    Approve a WAITING_APPROVAL transaction, excluding the lines of the
    rejected items, and apply its stock effect.

    Args:
        kind: Transaction kind name, slug or TransactionKind
        transaction_id: Transaction to approve
        rejected_item_ids: Item ids whose lines are removed before approval
        signature: Approver signature image (data URL), stored as-is
        approver_id: Principal approving; recorded as approved_by and performed_by

    Returns:
        {transaction_id, number, kind, status, approved_line_count,
         rejected_line_count, movement_ids}

    Raises:
        NotFoundError: Transaction not found
        InvalidStateError: Not in WAITING_APPROVAL (includes already approved)
        NoApprovableItemsError: Every line was rejected
        ItemNotFoundError: A remaining line references a missing item
        InsufficientStockError: A stock-out line exceeds current stock
    """
    kind = get_kind(kind)
    if approver_id is None:
        raise InvalidInputError("approver_id is required")
    rejected_ids = _normalize_rejected_ids(rejected_item_ids)

    def _op():
        return atomic(lambda: _approve(kind, transaction_id, rejected_ids, signature, approver_id))

    try:
        summary = run_with_retry(_op)
    except Exception as exc:
        logger.info("Approval of %s %s failed: %s", kind.label, transaction_id, exc)
        raise

    logger.info(
        "Approved %s %s: %d lines applied, %d rejected",
        kind.label, summary["number"],
        summary["approved_line_count"], summary["rejected_line_count"],
    )
    return summary
