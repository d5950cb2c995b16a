"""
models/instrument.py
--------------------
Canonical instrument identity. Everything inside the engine is keyed by
``Instrument``; raw strings or key objects are converted once at the edge.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pumpbot.exceptions import ConfigurationError

_BASE58 = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


@dataclass(frozen=True)
class Instrument:
    mint: str

    @classmethod
    def parse(cls, value: Any) -> "Instrument":
        """Accept an ``Instrument``, a base58 string, or a key exposing ``to_base58()``."""
        if isinstance(value, Instrument):
            return value
        if hasattr(value, "to_base58"):
            value = value.to_base58()
        if not isinstance(value, str):
            raise ConfigurationError(f"unsupported instrument identifier: {value!r}")
        mint = value.strip()
        if not 32 <= len(mint) <= 44 or not set(mint) <= _BASE58:
            raise ConfigurationError(f"not a base58 mint address: {value!r}")
        return cls(mint)

    @property
    def short(self) -> str:
        return f"{self.mint[:8]}…"

    def __str__(self) -> str:
        return self.mint
