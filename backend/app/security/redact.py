"""Helpers for masking visitor PII in logs and responses."""

from __future__ import annotations


def mask_phone(value: str | None) -> str | None:
    if not value:
        return value
    digits = [ch for ch in value if ch.isdigit()]
    if len(digits) < 4:
        return "***"
    return f"***-***-{''.join(digits[-4:])}"


def mask_name(value: str | None) -> str | None:
    """Keep the first name and the initial of the last one."""
    if not value:
        return value
    parts = value.split()
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} {parts[-1][0]}."


__all__ = ["mask_name", "mask_phone"]
