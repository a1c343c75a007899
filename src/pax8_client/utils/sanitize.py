from __future__ import annotations

from typing import Final

_CONTROL_CHARS: Final[frozenset[str]] = frozenset(
    chr(code) for code in range(0x00, 0x20) if chr(code) not in {"\t", "\n"}
)

_SECRET_PLACEHOLDER: Final[str] = "***"


def sanitize_log_message(value: str) -> str:
    """Normalise log messages by stripping control characters and CR sequences."""

    normalised = value.replace("\r\n", "\n").replace("\r", "\n")
    return "".join(ch for ch in normalised if ch not in _CONTROL_CHARS)


def redact_headers(headers: dict[str, str] | None) -> dict[str, str]:
    """Return a copy of ``headers`` with credential-bearing values masked."""

    if not headers:
        return {}
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in {"authorization", "proxy-authorization"}:
            redacted[key] = _SECRET_PLACEHOLDER
            continue
        redacted[key] = str(value)
    return redacted


__all__ = ["redact_headers", "sanitize_log_message"]
