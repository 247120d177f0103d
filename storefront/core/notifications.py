"""
User-facing notices raised by the engine.

The UI layer supplies a Notifier (toast, alert dialog, snackbar). The engine
only decides what to say; rendering is the caller's concern.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class NoticeType(str, Enum):
    """Kinds of notices shown to the user."""

    SIGN_IN_REQUIRED = "sign_in_required"
    CART_ITEM_ADDED = "cart_item_added"
    CART_ITEM_REMOVED = "cart_item_removed"
    CART_CLEARED = "cart_cleared"
    CART_UPDATE_FAILED = "cart_update_failed"
    COUPON_APPLIED = "coupon_applied"
    COUPON_REJECTED = "coupon_rejected"
    FAVORITES_UPDATE_FAILED = "favorites_update_failed"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    CHECKOUT_UNAVAILABLE = "checkout_unavailable"


class NoticeVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass
class Notice:
    """Notice payload."""

    type: NoticeType
    title: str
    description: str
    variant: NoticeVariant = NoticeVariant.DEFAULT
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.variant is NoticeVariant.DESTRUCTIVE


class Notifier(ABC):
    """Sink for user-facing notices."""

    @abstractmethod
    def notify(self, notice: Notice) -> None:
        pass


class LoggingNotifier(Notifier):
    """Default notifier for headless use: writes notices to the log."""

    def notify(self, notice: Notice) -> None:
        level = logging.WARNING if notice.is_error else logging.INFO
        logger.log(level, "[%s] %s: %s", notice.type.value, notice.title, notice.description)


def sign_in_required(action: str) -> Notice:
    return Notice(
        type=NoticeType.SIGN_IN_REQUIRED,
        title="Login required",
        description=f"You must be logged in to {action}",
        variant=NoticeVariant.DESTRUCTIVE,
        data={"action": action},
    )


def failure(notice_type: NoticeType, title: str, reason: str) -> Notice:
    return Notice(
        type=notice_type,
        title=title,
        description=reason or "Unknown error occurred",
        variant=NoticeVariant.DESTRUCTIVE,
    )
