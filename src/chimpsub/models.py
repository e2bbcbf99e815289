"""Subscriber, options and credential types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

EmailType = Literal["text", "html"]

TEXT: EmailType = "text"
HTML: EmailType = "html"
EMAIL_TYPES = (TEXT, HTML)

DEFAULT_DATACENTER = "us2"


@dataclass
class Subscriber:
    """An address to subscribe, with its merge fields."""

    email: str
    list_id: str
    merge_fields: dict[str, str] = field(default_factory=dict)


@dataclass
class SubscriptionOptions:
    """Per-call subscription options.

    The boolean flags are only sent by the 1.3 API; the 3.0 members
    endpoint uses ``email_type`` alone.
    """

    email_type: str = TEXT
    double_optin: bool = False
    update_existing: bool = False
    replace_interests: bool = False
    send_welcome: bool = False


@dataclass(frozen=True)
class Credentials:
    """API key and optional datacenter of a Mailchimp account."""

    api_key: str
    datacenter: str | None = None

    def resolve_datacenter(self) -> str:
        """Return the datacenter used to build the API host.

        The explicit ``datacenter`` wins. Otherwise the suffix of the API key
        (``abc123-us6`` -> ``us6``) is used, falling back to ``us2``.
        """
        if self.datacenter:
            return self.datacenter
        _, sep, suffix = self.api_key.rpartition("-")
        if sep and suffix:
            return suffix
        return DEFAULT_DATACENTER

    def __repr__(self) -> str:
        return f"Credentials(api_key='***', datacenter={self.datacenter!r})"
