"""Logging filters that scrub credentials and visitor contact details."""

from __future__ import annotations

import logging
import re

_TOKEN_PATTERN = re.compile(
    r"(Bearer\s+)[\w\.-]+|(access_token\"\s*:\s*\")[^\"]+(\")",
    re.IGNORECASE,
)
# QR payloads are logged verbatim on refused scans; they embed the phone.
_PHONE_FIELD_PATTERN = re.compile(r"(visitor_phone\"\s*:\s*\")[^\"]+(\")")
_REDACTED = "**REDACTED**"


def scrub(text: str) -> str:
    text = _TOKEN_PATTERN.sub(
        lambda m: f"{m.group(1)}{_REDACTED}"
        if m.group(1)
        else f"{m.group(2)}{_REDACTED}{m.group(3)}",
        text,
    )
    return _PHONE_FIELD_PATTERN.sub(rf"\g<1>{_REDACTED}\g<2>", text)


class SensitiveFilter(logging.Filter):
    """Redact bearer tokens and visitor phones from messages and their args."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


__all__ = ["SensitiveFilter", "scrub"]
