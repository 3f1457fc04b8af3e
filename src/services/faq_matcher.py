"""FAQ fast-path: canned answers for high-frequency questions.

Rules are evaluated in order and the first whose pattern matches anywhere
in the message wins.  Matching is case-insensitive.
"""

from __future__ import annotations

import re

import structlog

from src.config.assistant_profile import FaqRule

logger = structlog.get_logger(logger_name=__name__)


def split_answer_tokens(answer: str) -> list[str]:
    """Split a canned answer into word tokens for streaming.

    The first word is bare and each later word carries one leading space,
    so ``"".join(tokens) == answer``.
    """
    words = answer.split(" ")
    return [word if i == 0 else " " + word for i, word in enumerate(words)]


class FaqMatcher:
    """Matches a visitor message against an ordered list of :class:`FaqRule`."""

    def __init__(self, rules: list[FaqRule]) -> None:
        self._rules = [(rule, re.compile(rule.pattern, re.IGNORECASE)) for rule in rules]

    def __len__(self) -> int:
        return len(self._rules)

    def match_rule(self, message: str) -> FaqRule | None:
        for rule, pattern in self._rules:
            if pattern.search(message):
                logger.debug("faq_rule_matched", rule=rule.name)
                return rule
        return None

    def match(self, message: str) -> str | None:
        """Return the canned answer for *message*, or ``None`` if no rule fires."""
        rule = self.match_rule(message)
        return rule.answer if rule is not None else None
