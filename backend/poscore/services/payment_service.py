# Overview: Tender parsing and payment reconciliation for sales; no gateway calls happen here.

"""
Payment reconciler.

TENDER TYPES:
- CASH: cash_received_cents optional; change is computed, never trusted from input
- CREDIT_CARD / DEBIT_CARD: settled (authorization_code) or to be authorized (card_token)
- CHECK: check_number required

Split tenders are allowed. The sum of tender amounts must match the
transaction total within AMOUNT_TOLERANCE_CENTS.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Union

from .errors import AmountMismatch, InvalidRequest


TENDER_CASH = "CASH"
TENDER_CREDIT_CARD = "CREDIT_CARD"
TENDER_DEBIT_CARD = "DEBIT_CARD"
TENDER_CHECK = "CHECK"

SUPPORTED_TENDERS = (TENDER_CASH, TENDER_CREDIT_CARD, TENDER_DEBIT_CARD, TENDER_CHECK)
CARD_TENDERS = {TENDER_CREDIT_CARD, TENDER_DEBIT_CARD}

AMOUNT_TOLERANCE_CENTS = 1

_LAST_FOUR_RE = re.compile(r"^\d{4}$")
_CHECK_NUMBER_RE = re.compile(r"^\d{1,20}$")


@dataclass(frozen=True)
class CashDetail:
    cash_received_cents: int | None = None
    change_cents: int | None = None


@dataclass(frozen=True)
class CardDetail:
    card_type: str | None = None
    card_last_four: str | None = None
    authorization_code: str | None = None
    card_token: str | None = None
    # Set once a gateway has approved the tender
    authorization_id: str | None = None
    processor: str | None = None

    @property
    def needs_authorization(self) -> bool:
        return not self.authorization_code and bool(self.card_token)


@dataclass(frozen=True)
class CheckDetail:
    check_number: str


TenderDetail = Union[CashDetail, CardDetail, CheckDetail]


@dataclass(frozen=True)
class Tender:
    method: str
    amount_cents: int
    detail: TenderDetail | None = None

    def with_detail(self, detail: TenderDetail) -> "Tender":
        return replace(self, detail=detail)


def _int_field(data: dict, key: str, *, required: bool = False) -> int | None:
    value = data.get(key)
    if value is None:
        if required:
            raise InvalidRequest(f"{key} is required", {"field": key})
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"{key} must be an integer amount in cents", {"field": key, "value": value})
    return value


def _parse_cash(amount_cents: int, data: dict) -> CashDetail:
    received = _int_field(data, "cash_received_cents")
    if received is None:
        return CashDetail()
    if received < amount_cents:
        raise InvalidRequest(
            "Cash received is less than tender amount",
            {"cash_received_cents": received, "amount_cents": amount_cents},
        )
    return CashDetail(cash_received_cents=received, change_cents=received - amount_cents)


def _parse_card(data: dict) -> CardDetail:
    last_four = data.get("card_last_four")
    if last_four is not None:
        last_four = str(last_four)
        if not _LAST_FOUR_RE.match(last_four):
            raise InvalidRequest("card_last_four must be exactly 4 digits", {"card_last_four": last_four})

    authorization_code = data.get("authorization_code") or None
    card_token = data.get("card_token") or None
    if not authorization_code and not card_token:
        raise InvalidRequest("Card tenders require authorization_code or card_token")

    card_type = data.get("card_type")
    return CardDetail(
        card_type=str(card_type).upper() if card_type else None,
        card_last_four=last_four,
        authorization_code=authorization_code,
        card_token=card_token,
    )


def _parse_check(data: dict) -> CheckDetail:
    check_number = data.get("check_number")
    if check_number is None or not _CHECK_NUMBER_RE.match(str(check_number)):
        raise InvalidRequest("check_number must be 1 to 20 digits", {"check_number": check_number})
    return CheckDetail(check_number=str(check_number))


def parse_tender(payload: dict) -> Tender:
    """Build a Tender from request data, validating the method-specific detail."""
    if not isinstance(payload, dict):
        raise InvalidRequest("Tender must be an object")

    method = str(payload.get("method") or "").upper()
    if method not in SUPPORTED_TENDERS:
        raise InvalidRequest(
            f"Unsupported tender method: {payload.get('method')}",
            {"supported": list(SUPPORTED_TENDERS)},
        )

    amount_cents = _int_field(payload, "amount_cents", required=True)
    if amount_cents <= 0:
        raise InvalidRequest("Tender amount must be positive", {"amount_cents": amount_cents})

    data = payload.get("detail") or {}
    if not isinstance(data, dict):
        raise InvalidRequest("Tender detail must be an object")

    if method == TENDER_CASH:
        detail = _parse_cash(amount_cents, data)
    elif method in CARD_TENDERS:
        detail = _parse_card(data)
    else:
        detail = _parse_check(data)

    return Tender(method=method, amount_cents=amount_cents, detail=detail)


def reconcile(tenders: list[Tender], expected_total_cents: int) -> int:
    """
    Check that tenders cover the transaction total.

    Returns the tendered sum. Raises AmountMismatch when it differs from the
    expected total by more than AMOUNT_TOLERANCE_CENTS.
    """
    if not tenders:
        raise InvalidRequest("At least one tender is required")

    for tender in tenders:
        if tender.amount_cents <= 0:
            raise InvalidRequest("Tender amount must be positive", {"amount_cents": tender.amount_cents})

    paid = sum(t.amount_cents for t in tenders)
    if abs(paid - expected_total_cents) > AMOUNT_TOLERANCE_CENTS:
        raise AmountMismatch(expected_total_cents, paid)
    return paid
