"""Header heuristics that route a message to a mailbox category."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .types import Category

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderRule:
    """Route to ``category`` when a header line equals one of ``patterns``.

    Patterns are lower-case; header lines are compared case-insensitively and
    must match as a whole.
    """

    category: Category
    patterns: frozenset[bytes]

    @classmethod
    def of(cls, category: Category, *patterns: str) -> HeaderRule:
        return cls(category, frozenset(p.lower().encode("ascii") for p in patterns))

    def matches(self, line: bytes) -> bool:
        return line.lower() in self.patterns


# Evaluated in order; the first rule that matched any header line wins.
DEFAULT_RULES: tuple[HeaderRule, ...] = (
    HeaderRule.of(Category.JUNK, "x-spam: yes", "x-spam-flag: yes"),
    HeaderRule.of(Category.MARKETING, "precedence: bulk"),
    HeaderRule.of(Category.LIST, "precedence: list"),
    HeaderRule.of(Category.ERROR, "return-path: <>"),
)


class HeaderScanner:
    """Incrementally inspect header lines and remember which rules matched."""

    def __init__(self, rules: Sequence[HeaderRule] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)
        self._matched = [False] * len(self._rules)
        self._in_headers = True

    @property
    def in_headers(self) -> bool:
        """True until the blank line separating headers from body was fed."""

        return self._in_headers

    def feed(self, line: bytes) -> None:
        """Inspect one line with its terminator already removed."""

        if not self._in_headers:
            return
        if not line:
            self._in_headers = False
            return
        for idx, rule in enumerate(self._rules):
            if not self._matched[idx] and rule.matches(line):
                self._matched[idx] = True
                LOGGER.debug("Header %r matched %s rule", line, rule.category.value)

    @property
    def matched(self) -> list[Category]:
        """Categories whose rules matched, in priority order."""

        return [rule.category for rule, hit in zip(self._rules, self._matched) if hit]

    @property
    def category(self) -> Category | None:
        """Winning category, or ``None`` for the uncategorised inbox."""

        for rule, hit in zip(self._rules, self._matched):
            if hit:
                return rule.category
        return None


def classify_headers(
    lines: Iterable[bytes],
    rules: Sequence[HeaderRule] = DEFAULT_RULES,
) -> Category | None:
    """Classify a complete sequence of lines (terminators removed)."""

    scanner = HeaderScanner(rules)
    for line in lines:
        scanner.feed(line)
        if not scanner.in_headers:
            break
    return scanner.category


__all__ = ["DEFAULT_RULES", "HeaderRule", "HeaderScanner", "classify_headers"]
