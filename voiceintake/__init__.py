"""voiceintake - voice or text patient history interviews for physicians."""

__version__ = "0.1.0"
