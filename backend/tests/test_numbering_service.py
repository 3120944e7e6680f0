import re

import pytest

from stockroom.errors import ConflictError
from stockroom.services import numbering_service
from stockroom.time_utils import date_stamp


NUMBER_RE = re.compile(r"^IN-\d{8}-[0-9A-Z]{4}$")


def test_transaction_number_format(app):
    number = numbering_service.next_number("in")

    assert NUMBER_RE.match(number)
    assert number.split("-")[1] == date_stamp()


def test_random_token_is_uppercase_base36():
    token = numbering_service.random_token(32)

    assert len(token) == 32
    assert set(token) <= set(numbering_service.BASE36_ALPHABET)


def test_number_rerolls_until_unused(app, monkeypatch):
    tokens = iter(["AAAA", "AAAA", "BBBB"])
    monkeypatch.setattr(numbering_service, "random_token", lambda length: next(tokens))
    taken = {f"PO-{date_stamp()}-AAAA"}

    number = numbering_service.next_number("PO", exists=taken.__contains__)

    assert number == f"PO-{date_stamp()}-BBBB"


def test_number_gives_up_after_max_attempts(app, monkeypatch):
    calls = []

    def _token(length):
        calls.append(length)
        return "ZZZZ"

    monkeypatch.setattr(numbering_service, "random_token", _token)
    monkeypatch.setitem(app.config, "NUMBER_MAX_ATTEMPTS", 3)

    with pytest.raises(ConflictError):
        numbering_service.next_number("REQ", exists=lambda candidate: True)

    assert len(calls) == 3


def test_number_without_exists_check_accepts_first_candidate(app, monkeypatch):
    monkeypatch.setattr(numbering_service, "random_token", lambda length: "0000")

    assert numbering_service.next_number("OUT").endswith("-0000")


def test_number_requires_prefix(app):
    with pytest.raises(ValueError):
        numbering_service.next_number("")


@pytest.mark.parametrize("category_name, expected", [
    ("Electronics", "ELEC"),
    ("Office Supplies", "OFFI"),
    ("3D Printers", "DPRI"),
    ("Kb", "KB"),
    ("123", "ITEM"),
    (None, "ITEM"),
])
def test_sku_prefix(category_name, expected):
    assert numbering_service.sku_prefix(category_name) == expected


def test_next_sku_skips_existing_items(db_session, make_item, monkeypatch):
    existing = make_item()
    existing.sku = "ELEC-AAAAAA"
    db_session.commit()

    tokens = iter(["AAAAAA", "BBBBBB"])
    monkeypatch.setattr(numbering_service, "random_token", lambda length: next(tokens))

    assert numbering_service.next_sku("Electronics") == "ELEC-BBBBBB"
