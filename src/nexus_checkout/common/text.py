"""Text folding used for matching free-form names and addresses."""

import re
import unicodedata

_SPACES = re.compile(r"\s+")


def fold_accents(value: str) -> str:
    """Drop combining marks: "Ação" -> "Acao"."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: str | None) -> str:
    """Lowercase, accent-free, single-spaced."""
    if not value:
        return ""
    folded = fold_accents(value.strip().lower())
    return _SPACES.sub(" ", folded).strip()
