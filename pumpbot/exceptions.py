"""
exceptions.py
-------------
Error taxonomy shared by the feed, router and engine.
"""
from __future__ import annotations


class PumpBotError(Exception):
    """Base class for every error raised by pumpbot."""


class ConfigurationError(PumpBotError):
    """Invalid strategy id or parameter – fatal at construction time."""


class DataUnavailableError(PumpBotError):
    """A price or balance read failed; the current tick is skipped."""


class InsufficientDataError(PumpBotError):
    """The rolling window cannot answer the query yet."""


class VenueError(PumpBotError):
    """Raised by venue / gateway implementations when a call is rejected."""


class ExecutionError(PumpBotError):
    """A buy or sell submission failed. Position state must stay untouched."""

    def __init__(self, side: str, instrument: object, reason: str) -> None:
        super().__init__(f"{side} {instrument} failed: {reason}")
        self.side = side
        self.instrument = instrument
        self.reason = reason
