# Overview: Card authorization interface plus the mock gateway used for development and tests.

from __future__ import annotations

import logging
import re
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass


logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"^mock_tok_([a-z]+)_(\d{4})_")


@dataclass(frozen=True)
class AuthorizationResult:
    approved: bool
    authorization_id: str | None = None
    authorization_code: str | None = None
    card_brand: str | None = None
    card_last_four: str | None = None
    decline_reason: str | None = None
    processor: str | None = None


class PaymentGateway(ABC):
    """External card processor. The sale engine only authorizes and releases."""

    name = "abstract"

    @abstractmethod
    def authorize(self, amount_cents: int, card_token: str, *, metadata: dict | None = None) -> AuthorizationResult:
        raise NotImplementedError

    @abstractmethod
    def void_authorization(self, authorization_id: str) -> bool:
        raise NotImplementedError


def _luhn_valid(number: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(number)):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def card_brand(card_number: str) -> str:
    cleaned = re.sub(r"[\s-]", "", card_number)
    if cleaned.startswith("4"):
        return "visa"
    if re.match(r"^5[1-5]", cleaned):
        return "mastercard"
    if re.match(r"^3[47]", cleaned):
        return "amex"
    if re.match(r"^6(?:011|5)", cleaned):
        return "discover"
    return "unknown"


class MockPaymentGateway(PaymentGateway):
    """
    In-process gateway with no network calls.

    Tokens look like mock_tok_<brand>_<last4>_<random>; create_card_token
    produces them from a Luhn-valid card number.
    """

    name = "mock"

    def __init__(self, should_succeed: bool = True, decline_reason: str | None = None):
        self.should_succeed = should_succeed
        self.decline_reason = decline_reason
        self.authorizations: dict[str, int] = {}
        self.voided: list[str] = []

    def create_card_token(self, card_number: str) -> str:
        cleaned = re.sub(r"[\s-]", "", card_number)
        if not cleaned.isdigit() or not _luhn_valid(cleaned):
            raise ValueError("Invalid card number")
        return f"mock_tok_{card_brand(cleaned)}_{cleaned[-4:]}_{uuid.uuid4().hex[:8]}"

    def authorize(self, amount_cents: int, card_token: str, *, metadata: dict | None = None) -> AuthorizationResult:
        if not self.should_succeed:
            return AuthorizationResult(
                approved=False,
                decline_reason=self.decline_reason or "Card declined",
                processor=self.name,
            )

        match = _TOKEN_RE.match(card_token or "")
        authorization_id = f"mock_auth_{uuid.uuid4().hex[:8]}"
        self.authorizations[authorization_id] = amount_cents
        logger.debug("Mock authorization %s for %d cents", authorization_id, amount_cents)
        return AuthorizationResult(
            approved=True,
            authorization_id=authorization_id,
            authorization_code=secrets.token_hex(3).upper(),
            card_brand=match.group(1) if match else "unknown",
            card_last_four=match.group(2) if match else "0000",
            processor=self.name,
        )

    def void_authorization(self, authorization_id: str) -> bool:
        if authorization_id not in self.authorizations:
            return False
        del self.authorizations[authorization_id]
        self.voided.append(authorization_id)
        return True


def get_payment_gateway(app) -> PaymentGateway:
    """Build the gateway named by PAYMENT_GATEWAY."""
    name = str(app.config.get("PAYMENT_GATEWAY", "mock")).lower()
    if name == "mock":
        return MockPaymentGateway()
    raise ValueError(f"Unknown payment gateway: {name}")
