"""Core immutable data structures used throughout maildeliver."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Category(str, Enum):
    """Mailbox categories created under every delivery root."""

    ERROR = "Error"
    JUNK = "Junk"
    LIST = "List"
    MARKETING = "Marketing"
    TRANSACTIONAL = "Transactional"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single delivery."""

    filename: str
    category: Category | None
    path: Path


__all__ = ["Category", "DeliveryResult"]
