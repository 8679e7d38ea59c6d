"""
Credential handling for secret-bearing callback URLs.

Downstream callback URLs carry their authorization in the query string
(``sig=...``). Every log call site goes through :func:`redact_url` or
:func:`redact_text`; :class:`CallbackUrl` makes the unredacted value
available only through :meth:`CallbackUrl.reveal`.
"""

import re
from typing import Optional

REDACTED = "REDACTED"

# Query parameters that carry a bearer token
SECRET_QUERY_PARAMS = ("sig", "code")

_SECRET_PARAM_RE = re.compile(
    r"([?&](?:" + "|".join(SECRET_QUERY_PARAMS) + r")=)[^&\s\"'\\]+",
    re.IGNORECASE,
)


def redact_url(url: Optional[str]) -> Optional[str]:
    """Replace secret query parameter values in a URL."""
    if not url:
        return url
    return _SECRET_PARAM_RE.sub(r"\1" + REDACTED, url)


def redact_text(text: str) -> str:
    """Redact every secret-bearing URL fragment found anywhere in text."""
    if not text:
        return text
    return _SECRET_PARAM_RE.sub(r"\1" + REDACTED, text)


class CallbackUrl:
    """
    A downstream URL treated as a credential.

    ``str()`` and ``repr()`` are redacted so the value can be passed to
    log calls and f-strings safely.

    Example:
        >>> url = CallbackUrl("https://example.com/invoke?sv=1&sig=abc")
        >>> str(url)
        'https://example.com/invoke?sv=1&sig=REDACTED'
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def reveal(self) -> str:
        """Return the unredacted URL. Only for issuing requests."""
        return self._value

    @property
    def redacted(self) -> str:
        return redact_url(self._value)

    def __str__(self) -> str:
        return self.redacted

    def __repr__(self) -> str:
        return f"CallbackUrl({self.redacted!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CallbackUrl):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)
