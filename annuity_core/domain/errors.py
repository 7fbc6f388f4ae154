from __future__ import annotations


class EngineError(Exception):
    """Base class for errors raised by the annuity engine."""


class InsufficientData(EngineError, ValueError):
    pass


class DegenerateStatistics(EngineError, ValueError):
    pass


class InvalidAnnuity(EngineError, ValueError):
    pass
