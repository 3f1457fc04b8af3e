"""Site profile for the assistant: who it speaks for and what it may link to.

The profile holds the organisation-specific content the answer path needs:
the persona name, the contact line used when the assistant declines, the
link allowlist the model may cite, the fallback citation for chunks stored
without a title or URL, and the ordered FAQ fast-path rules.

``DEFAULT_PROFILE`` is the built-in FBK profile.  ``config/config.yaml`` may
override any field under its ``assistant:`` key; see
:meth:`AssistantProfile.from_config`.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FaqRule(BaseModel):
    """One canned answer, fired when ``pattern`` matches the user message."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Short intent label, used in logs.")
    pattern: str = Field(description="Case-insensitive regular expression.")
    answer: str = Field(description="Markdown answer streamed back verbatim.")

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        re.compile(value)
        return value


class AssistantProfile(BaseModel):
    """Organisation-specific content injected into the answer path."""

    model_config = ConfigDict(frozen=True)

    organisation: str = Field(default="FBK", description="Short organisation name.")
    assistant_name: str = Field(default="FBK Assistant", description="Persona name.")
    website: str = Field(default="https://fbk.org", description="Canonical site URL.")
    contact_email: str = Field(default="contact@fbk.org")
    link_allowlist: list[str] = Field(
        default_factory=list,
        description="URLs the model may cite besides those in retrieved context.",
    )
    fallback_source_title: str = Field(default="FBK Document")
    faq_rules: list[FaqRule] = Field(default_factory=list)

    @property
    def no_context_notice(self) -> str:
        return (
            f"No specific documents found. Answer from general {self.organisation} "
            "knowledge and the link allowlist only."
        )

    @property
    def decline_line(self) -> str:
        return (
            "I don't have enough information on that. Please contact "
            f"{self.organisation} at {self.contact_email}."
        )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> AssistantProfile:
        """Build a profile from the ``assistant`` section of the loaded config.

        Keys missing from the YAML fall back to :data:`DEFAULT_PROFILE`.
        """
        section = config.get("assistant") or {}
        if not section:
            return DEFAULT_PROFILE
        merged = DEFAULT_PROFILE.model_dump()
        merged.update({k: v for k, v in section.items() if v is not None})
        return cls.model_validate(merged)


# ═════════════════════════════════════════════════════════════════════════
# Built-in FBK profile
# ═════════════════════════════════════════════════════════════════════════

_FBK_LINK_ALLOWLIST: list[str] = [
    "https://fbk.org",
    "https://fbk.org/contact",
    "https://fbk.org/programs",
    "https://fbk.org/membership",
    "https://fbk.org/events",
    "https://fbk.org/donate",
    "https://fbk.org/apply",
]

# Order matters: the first matching rule wins.
_FBK_FAQ_RULES: list[FaqRule] = [
    FaqRule(
        name="contact",
        pattern=r"contact|email|phone|reach out|get in touch",
        answer=(
            "You can reach FBK at **contact@fbk.org** or visit the "
            "[Contact page](https://fbk.org/contact) for more options."
        ),
    ),
    FaqRule(
        name="hours",
        pattern=r"hour|open|schedule|timing|when are you",
        answer=(
            "FBK office hours are **Monday to Friday, 9 AM to 5 PM PT**. "
            "For urgent matters outside of those hours, please email contact@fbk.org."
        ),
    ),
    FaqRule(
        name="apply",
        pattern=r"apply|application|portal|sign.?up|register",
        answer=(
            "You can apply or access the member portal at "
            "[fbk.org/apply](https://fbk.org/apply). If you have trouble "
            "logging in, contact support@fbk.org."
        ),
    ),
    FaqRule(
        name="donate",
        pattern=r"donat|give|fund|support financially",
        answer=(
            "Donations to FBK can be made at [fbk.org/donate](https://fbk.org/donate). "
            "Thank you for your generosity!"
        ),
    ),
    FaqRule(
        name="events",
        pattern=r"event|upcoming|calendar|webinar",
        answer=(
            "Check out all upcoming FBK events on the "
            "[Events page](https://fbk.org/events)."
        ),
    ),
    FaqRule(
        name="programs",
        pattern=r"program|service|offer|what do you do",
        answer=(
            "Learn about FBK programs and services at "
            "[fbk.org/programs](https://fbk.org/programs)."
        ),
    ),
]

DEFAULT_PROFILE = AssistantProfile(
    link_allowlist=_FBK_LINK_ALLOWLIST,
    faq_rules=_FBK_FAQ_RULES,
)
