"""Services layer wiring the interview components together."""

from .intake_service import IntakeService

__all__ = [
    "IntakeService",
]
