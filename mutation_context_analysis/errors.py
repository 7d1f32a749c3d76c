"""Exception types raised by the mutation-context analysis library."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


def _preview(features: Iterable[str], limit: int = 5) -> str:
    items = list(features)
    preview = ", ".join(map(repr, items[:limit]))
    if len(items) > limit:
        preview += f", ... ({len(items) - limit} more)"
    return preview


class SchemaError(ValueError):
    """Input columns or hierarchy metadata do not match the expected features.

    Parameters
    ----------
    message
        Human readable description of the problem.
    features
        Offending feature or column identifiers. They are appended to the
        message so the failing join can be located.
    """

    def __init__(self, message: str, features: Iterable[str] = ()) -> None:
        self.features: Tuple[str, ...] = tuple(str(f) for f in features)
        if self.features:
            message = f"{message}: {_preview(self.features)}."
        super().__init__(message)


class DomainError(ValueError):
    """Numeric argument outside of its valid domain."""

    def __init__(self, message: str, feature: Optional[str] = None) -> None:
        self.feature = feature
        if feature is not None:
            message = f"{message} (feature {feature!r})"
        super().__init__(message)


__all__ = ["SchemaError", "DomainError"]
