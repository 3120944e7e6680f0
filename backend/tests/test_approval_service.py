"""
Approval engine tests.

Covers the stock effect per kind, partial rejection, atomic rollback on
failure and double-approval protection.
"""

import pytest
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from stockroom.errors import (
    InsufficientStockError,
    InvalidInputError,
    InvalidStateError,
    ItemNotFoundError,
    NoApprovableItemsError,
    NotFoundError,
)
from stockroom.models import (
    Item,
    OutgoingGoods,
    StockMovement,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_REJECTED,
    STATUS_WAITING_APPROVAL,
)
from stockroom.services import approval_service, concurrency, transaction_service

from conftest import APPROVER_ID, CREATOR_ID


def _stock(db_session, item):
    return db_session.get(Item, item.id).current_stock


def _movements(db_session):
    return db_session.query(StockMovement).order_by(StockMovement.id).all()


@pytest.mark.parametrize("kind_name, sign", [
    ("incoming_goods", 1),
    ("purchase_order", 1),
    ("outgoing_goods", -1),
    ("item_request", -1),
])
def test_approve_applies_stock_delta_per_kind(db_session, submitted, approve, item_a, kind_name, sign):
    tx = submitted(kind_name, [{"item_id": item_a.id, "quantity": 4}])

    summary = approve(kind_name, tx.id)

    assert summary["status"] == STATUS_APPROVED
    assert summary["approved_line_count"] == 1
    assert summary["rejected_line_count"] == 0
    assert _stock(db_session, item_a) == 15 + sign * 4

    movements = _movements(db_session)
    assert len(movements) == 1
    assert movements[0].reference == tx.number
    assert movements[0].new_stock - movements[0].previous_stock == sign * 4
    assert movements[0].performed_by_user_id == APPROVER_ID
    assert movements[0].transaction_kind == kind_name
    assert summary["movement_ids"] == [movements[0].id]


def test_approve_records_approver_and_signature(db_session, submitted, approve, item_a):
    tx = submitted("purchase_order", [{"item_id": item_a.id, "quantity": 1}])

    approve("purchase_order", tx.id, signature="data:image/png;base64,AAAA")

    approved = transaction_service.get_transaction("purchase_order", tx.id)
    assert approved.status == STATUS_APPROVED
    assert approved.approved_by_user_id == APPROVER_ID
    assert approved.approved_at is not None
    assert approved.signature_image == "data:image/png;base64,AAAA"


def test_incoming_goods_scenario(db_session, submitted, approve, item_a):
    tx = submitted("incoming_goods", [{"item_id": item_a.id, "quantity": 10}])

    approve("incoming_goods", tx.id)

    assert _stock(db_session, item_a) == 25
    [movement] = _movements(db_session)
    assert (movement.direction, movement.quantity, movement.previous_stock, movement.new_stock) == ("in", 10, 15, 25)
    assert movement.item_id == item_a.id
    assert movement.notes == "Incoming goods approved"


def test_item_request_with_insufficient_stock_changes_nothing(db_session, submitted, approve, item_a, item_b):
    tx = submitted("item_request", [
        {"item_id": item_a.id, "quantity": 5},
        {"item_id": item_b.id, "quantity": 3},
    ])

    with pytest.raises(InsufficientStockError) as exc_info:
        approve("item_request", tx.id)

    assert "Wireless Mouse" in exc_info.value.message
    # Item A was updated before item B failed; the whole unit must roll back
    assert _stock(db_session, item_a) == 15
    assert _stock(db_session, item_b) == 2
    assert _movements(db_session) == []
    reloaded = transaction_service.get_transaction("item_request", tx.id)
    assert reloaded.status == STATUS_WAITING_APPROVAL
    assert len(reloaded.lines) == 2


def test_outgoing_partial_rejection(db_session, submitted, approve, item_a, item_b):
    tx = submitted("outgoing_goods", [
        {"item_id": item_a.id, "quantity": 4},
        {"item_id": item_b.id, "quantity": 6},
    ])

    summary = approve("outgoing_goods", tx.id, rejected=[item_b.id])

    assert summary["approved_line_count"] == 1
    assert summary["rejected_line_count"] == 1
    assert _stock(db_session, item_a) == 11
    assert _stock(db_session, item_b) == 2

    [movement] = _movements(db_session)
    assert movement.item_id == item_a.id
    assert movement.direction == "out"
    assert movement.notes.endswith("(partial)")

    approved = transaction_service.get_transaction("outgoing_goods", tx.id)
    assert approved.status == STATUS_APPROVED
    assert [line.item_id for line in approved.lines] == [item_a.id]


def test_rejecting_unknown_item_ids_counts_nothing(db_session, submitted, approve, item_a):
    tx = submitted("purchase_order", [{"item_id": item_a.id, "quantity": 2}])

    summary = approve("purchase_order", tx.id, rejected=[9999])

    assert summary["rejected_line_count"] == 0
    assert summary["approved_line_count"] == 1


def test_rejecting_every_line_fails_and_changes_nothing(db_session, submitted, approve, item_a, item_b):
    tx = submitted("incoming_goods", [
        {"item_id": item_a.id, "quantity": 1},
        {"item_id": item_b.id, "quantity": 1},
    ])

    with pytest.raises(NoApprovableItemsError):
        approve("incoming_goods", tx.id, rejected=[item_a.id, item_b.id])

    reloaded = transaction_service.get_transaction("incoming_goods", tx.id)
    assert reloaded.status == STATUS_WAITING_APPROVAL
    assert len(reloaded.lines) == 2
    assert _stock(db_session, item_a) == 15
    assert _stock(db_session, item_b) == 2
    assert _movements(db_session) == []


def test_second_approval_is_invalid_state(db_session, submitted, approve, item_a):
    tx = submitted("outgoing_goods", [{"item_id": item_a.id, "quantity": 3}])
    approve("outgoing_goods", tx.id)

    with pytest.raises(InvalidStateError):
        approve("outgoing_goods", tx.id)

    assert _stock(db_session, item_a) == 12
    assert len(_movements(db_session)) == 1


@pytest.mark.parametrize("status", [STATUS_DRAFT, STATUS_REJECTED])
def test_approve_requires_waiting_approval(db_session, header_for, approve, item_a, status):
    tx = transaction_service.create_transaction(
        "outgoing_goods", header_for("outgoing_goods"),
        [{"item_id": item_a.id, "quantity": 1}], creator_id=CREATOR_ID,
    )
    if status == STATUS_REJECTED:
        transaction_service.submit_transaction("outgoing_goods", tx.id)
        transaction_service.reject_transaction("outgoing_goods", tx.id, "Cancelled")

    with pytest.raises(InvalidStateError):
        approve("outgoing_goods", tx.id)

    assert _stock(db_session, item_a) == 15


def test_approve_missing_transaction(db_session, approve):
    with pytest.raises(NotFoundError):
        approve("purchase_order", 4242)


def test_approve_requires_list_of_rejected_ids(db_session, submitted, item_a):
    tx = submitted("outgoing_goods", [{"item_id": item_a.id, "quantity": 1}])

    with pytest.raises(InvalidInputError):
        approval_service.approve_transaction("outgoing_goods", tx.id, "1,2", approver_id=APPROVER_ID)
    with pytest.raises(InvalidInputError):
        approval_service.approve_transaction("outgoing_goods", tx.id, ["x"], approver_id=APPROVER_ID)


def test_outgoing_goods_checks_stock_by_default(db_session, submitted, approve, item_b):
    tx = submitted("outgoing_goods", [{"item_id": item_b.id, "quantity": 6}])

    with pytest.raises(InsufficientStockError):
        approve("outgoing_goods", tx.id)

    assert _stock(db_session, item_b) == 2


def test_outgoing_goods_may_go_negative_when_configured(app, db_session, submitted, approve, item_b):
    app.config["ALLOW_NEGATIVE_OUTGOING"] = True
    tx = submitted("outgoing_goods", [{"item_id": item_b.id, "quantity": 6}])

    approve("outgoing_goods", tx.id)

    assert _stock(db_session, item_b) == -4
    [movement] = _movements(db_session)
    assert (movement.previous_stock, movement.new_stock) == (2, -4)


def test_item_request_always_checks_stock(app, db_session, submitted, approve, item_b):
    app.config["ALLOW_NEGATIVE_OUTGOING"] = True
    tx = submitted("item_request", [{"item_id": item_b.id, "quantity": 3}])

    with pytest.raises(InsufficientStockError):
        approve("item_request", tx.id)


def test_item_deleted_after_submit(db_session, submitted, approve, item_a, item_b):
    tx = submitted("incoming_goods", [
        {"item_id": item_a.id, "quantity": 1},
        {"item_id": item_b.id, "quantity": 1},
    ])
    db_session.query(Item).filter_by(id=item_b.id).delete()
    db_session.commit()

    with pytest.raises(ItemNotFoundError):
        approve("incoming_goods", tx.id)

    assert _stock(db_session, item_a) == 15
    assert _movements(db_session) == []


def test_lost_race_on_status_rolls_back(db_session, submitted, approve, item_a, monkeypatch):
    tx = submitted("outgoing_goods", [{"item_id": item_a.id, "quantity": 3}])
    real_apply_delta = approval_service.apply_delta

    def _apply_then_lose_race(*args, **kwargs):
        result = real_apply_delta(*args, **kwargs)
        # Another approver finishes first
        db_session.execute(
            update(OutgoingGoods)
            .where(OutgoingGoods.id == tx.id)
            .values(status=STATUS_APPROVED)
            .execution_options(synchronize_session=False)
        )
        return result

    monkeypatch.setattr(approval_service, "apply_delta", _apply_then_lose_race)

    with pytest.raises(InvalidStateError):
        approve("outgoing_goods", tx.id)

    assert _stock(db_session, item_a) == 15
    assert _movements(db_session) == []


def test_stale_item_is_retried(db_session, submitted, approve, item_a, monkeypatch):
    tx = submitted("incoming_goods", [{"item_id": item_a.id, "quantity": 10}])
    real_apply_delta = approval_service.apply_delta
    calls = []

    def _stale_once(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise StaleDataError("items row was updated by another transaction")
        return real_apply_delta(*args, **kwargs)

    monkeypatch.setattr(approval_service, "apply_delta", _stale_once)
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

    summary = approve("incoming_goods", tx.id)

    assert summary["status"] == STATUS_APPROVED
    assert len(calls) == 2
    assert _stock(db_session, item_a) == 25
    assert len(_movements(db_session)) == 1


def test_persistent_conflict_gives_up(db_session, submitted, approve, item_a, monkeypatch):
    tx = submitted("incoming_goods", [{"item_id": item_a.id, "quantity": 10}])

    def _always_stale(*args, **kwargs):
        raise StaleDataError("items row was updated by another transaction")

    monkeypatch.setattr(approval_service, "apply_delta", _always_stale)
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

    with pytest.raises(StaleDataError):
        approve("incoming_goods", tx.id)

    assert transaction_service.get_transaction("incoming_goods", tx.id).status == STATUS_WAITING_APPROVAL
    assert _stock(db_session, item_a) == 15
