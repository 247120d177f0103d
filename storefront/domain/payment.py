"""Payment attempt types and status transition rules (single source of truth)."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class PaymentMethod(str, Enum):
    """Supported payment providers."""

    CARD = "card"
    PAYPAL = "paypal"
    KLARNA = "klarna"

    @classmethod
    def normalize(cls, value: PaymentMethod | str) -> PaymentMethod:
        if isinstance(value, cls):
            return value
        method = str(value or "").strip().lower()
        aliases = {"credit_card": cls.CARD, "debit_card": cls.CARD, "stripe": cls.CARD}
        if method in aliases:
            return aliases[method]
        return cls(method)


class PaymentStatus(str, Enum):
    """Lifecycle of a single payment attempt."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Mapping[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.IDLE: frozenset({PaymentStatus.INITIALIZING, PaymentStatus.FAILED}),
    PaymentStatus.INITIALIZING: frozenset(
        {
            PaymentStatus.AWAITING_CONFIRMATION,
            PaymentStatus.FAILED,
        }
    ),
    PaymentStatus.AWAITING_CONFIRMATION: frozenset(
        {
            PaymentStatus.SUCCEEDED,
            PaymentStatus.FAILED,
        }
    ),
    PaymentStatus.SUCCEEDED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED})

ACTIVE_STATUSES = frozenset({PaymentStatus.INITIALIZING, PaymentStatus.AWAITING_CONFIRMATION})


class InvalidPaymentTransition(ValueError):
    pass


@dataclass
class PaymentAttempt:
    """One in-progress payment confirmation. Replaced, never reused, on retry."""

    method: PaymentMethod
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: PaymentStatus = PaymentStatus.IDLE
    external_reference: str | None = None
    reason: str | None = None
    error: Exception | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def transition(self, target: PaymentStatus) -> None:
        if target == self.status:
            return
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidPaymentTransition(
                f"Payment attempt {self.id}: '{self.status.value} -> {target.value}' is not allowed"
            )
        self.status = target

    def fail(self, error: Exception, reason: str | None = None) -> None:
        self.transition(PaymentStatus.FAILED)
        self.error = error
        self.reason = reason or str(error)

    def succeed(self, external_reference: str | None = None) -> None:
        self.transition(PaymentStatus.SUCCEEDED)
        if external_reference:
            self.external_reference = external_reference
