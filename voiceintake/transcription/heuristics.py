"""Local, always-available cleanup for recognized speech."""

import re

_FILLERS = re.compile(r"(?<![\w'])(?:um+|uh+|erm+|ah+)(?![\w'])[,.]?", re.IGNORECASE)

_NUMBER_WORDS = {
    "zero": "0", "one": "1", "two": "2", "three": "3", "four": "4", "five": "5",
    "six": "6", "seven": "7", "eight": "8", "nine": "9", "ten": "10",
}
_NUMBERS = re.compile(r"\b(" + "|".join(_NUMBER_WORDS) + r")\b", re.IGNORECASE)

_UNITS = [
    (re.compile(r"\bmilligrams?\b", re.IGNORECASE), "mg"),
    (re.compile(r"\bmilli(?:liter|litre)s?\b", re.IGNORECASE), "ml"),
    (re.compile(r"\bmicrograms?\b", re.IGNORECASE), "mcg"),
]

_PRONOUN_BREAK = re.compile(r"([a-z])\s+(I|I'm|I've|I'll|I'd|My|He|She|We|They|It)\b")


def collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def strip_fillers(text: str) -> str:
    return _FILLERS.sub("", text)


def repair_punctuation(text: str) -> str:
    """Tidy the debris filler removal leaves behind."""
    text = collapse(text)
    text = re.sub(r"\s+([,.;:!?])", r"\1", text)
    text = re.sub(r"([,;:])(?:\s*[,;:])+", r"\1", text)
    text = re.sub(r",\s*([.!?])", r"\1", text)
    text = re.sub(r"^[\s,.;:]+", "", text)
    text = re.sub(r"[\s,;:]+$", "", text)
    return text.strip()


def numbers_to_digits(text: str) -> str:
    return _NUMBERS.sub(lambda m: _NUMBER_WORDS[m.group(1).lower()], text)


def normalize_units(text: str) -> str:
    for pattern, unit in _UNITS:
        text = pattern.sub(unit, text)
    return text


def apply_local_heuristics(text: str) -> str:
    """Whitespace, fillers, punctuation repair, small numbers and dose units."""
    text = collapse(text)
    text = strip_fillers(text)
    text = repair_punctuation(text)
    text = numbers_to_digits(text)
    return normalize_units(text)


def normalize_punctuation(text: str) -> str:
    """Split run-on speech at capitalized pronouns and close the final sentence."""
    text = collapse(text)
    if not text:
        return text
    text = _PRONOUN_BREAK.sub(r"\1. \2", text)
    text = text[0].upper() + text[1:]
    if text[-1] not in ".!?":
        text += "."
    return text
