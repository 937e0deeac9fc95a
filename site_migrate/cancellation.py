# === FILE: site_migrate/cancellation.py ===
"""Cooperative cancellation shared by the two crawls of one comparison."""
from __future__ import annotations

from typing import Callable

CancelCheck = Callable[[], bool]


class CancellationToken:
    """One-way flag owned by a single comparison stream.

    Calling the token returns whether it was cancelled, so it can be passed
    wherever an ``is_cancelled`` predicate is expected.
    """

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __call__(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"<CancellationToken cancelled={self._cancelled}>"


def never_cancelled() -> bool:
    return False
