"""Storage modules for voiceintake."""

from .file_manager import FileManager

__all__ = ['FileManager']
