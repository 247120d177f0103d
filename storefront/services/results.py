"""Result objects returned by engine mutations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from storefront.core.exceptions import AuthRequired, StorefrontException


@dataclass
class MutationResult:
    ok: bool
    error: StorefrontException | None = None
    value: Any | None = None

    @property
    def auth_required(self) -> bool:
        return isinstance(self.error, AuthRequired)

    @property
    def reason(self) -> str | None:
        return self.error.message if self.error else None

    @classmethod
    def success(cls, value: Any | None = None) -> MutationResult:
        return cls(True, value=value)

    @classmethod
    def failure(cls, error: StorefrontException) -> MutationResult:
        return cls(False, error=error)
