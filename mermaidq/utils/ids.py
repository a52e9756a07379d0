"""Unique id helpers for messages, sessions and API requests."""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_id(prefix: str | None = None) -> str:
    """`<prefix>_<epoch millis>_<9 random base36 chars>` (prefix optional)."""
    core = f"{int(time.time() * 1000)}_{_suffix()}"
    return f"{prefix}_{core}" if prefix else core


def generate_message_id() -> str:
    return generate_id("msg")


def generate_session_id() -> str:
    return generate_id("session")


def generate_request_id() -> str:
    return generate_id("req")
