"""
LingoTutor - Text Normalizer
Canonical form used for every answer comparison.

    "  What's   your NAME? " -> "whats your name"
"""

import re

SMART_APOSTROPHES = re.compile(r"[’‘]")
WHITESPACE = re.compile(r"\s+")
PUNCTUATION = re.compile(r"[.,!?;:\"'()\[\]{}]")

# ä → ae etc. Applied on top of normalize() for German comparisons only.
GERMAN_FOLDS = (
    ("ä", "ae"),
    ("ö", "oe"),
    ("ü", "ue"),
    ("ß", "ss"),
)


def normalize(text: str) -> str:
    """Lowercase, unify apostrophes, collapse whitespace, strip punctuation."""
    if not text:
        return ""
    out = SMART_APOSTROPHES.sub("'", text.lower()).strip()
    out = WHITESPACE.sub(" ", out)
    out = PUNCTUATION.sub("", out)
    # Stripping punctuation can leave double or edge spaces ("a ( b" -> "a  b")
    return WHITESPACE.sub(" ", out).strip()


def tokenize(text: str) -> list[str]:
    norm = normalize(text)
    return norm.split(" ") if norm else []


def fold_german(text: str) -> str:
    for src, dst in GERMAN_FOLDS:
        text = text.replace(src, dst)
    return text


def normalize_for_compare(text: str, language: str) -> str:
    """normalize(), plus umlaut folding when the target language is German."""
    base = normalize(text)
    if (language or "").strip().lower() == "de":
        return fold_german(base)
    return base
