"""Supported interview languages and speech locale mapping."""

from typing import Dict, Optional

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese (Simplified)",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "fa": "Farsi (Persian)",
}

SPEECH_LOCALES: Dict[str, str] = {
    "en": "en-US",
    "fa": "fa-IR",
    "zh": "zh-CN",
    "pt": "pt-PT",
    "es": "es-ES",
    "fr": "fr-FR",
    "de": "de-DE",
    "it": "it-IT",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "ar": "ar-SA",
    "hi": "hi-IN",
}

DEFAULT_LANGUAGE = "en"


def normalize_language_code(code: Optional[str]) -> str:
    """Return a supported two-letter code; anything unknown falls back to English."""
    normalized = (code or DEFAULT_LANGUAGE).strip().lower().split("-")[0]
    if normalized in SUPPORTED_LANGUAGES:
        return normalized
    return DEFAULT_LANGUAGE


def get_speech_locale(code: Optional[str]) -> str:
    return SPEECH_LOCALES.get(normalize_language_code(code), "en-US")


def get_language_name(code: Optional[str]) -> str:
    return SUPPORTED_LANGUAGES[normalize_language_code(code)]
