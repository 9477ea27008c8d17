from __future__ import annotations

import re
import unicodedata

import pandas as pd


# Turkish letters without a usable NFKD decomposition (ı) are mapped
# explicitly; the rest are listed so case is kept letter by letter.
_TRANSLIT = str.maketrans(
    {
        "İ": "I",
        "ı": "i",
        "Ş": "S",
        "ş": "s",
        "Ğ": "G",
        "ğ": "g",
        "Ç": "C",
        "ç": "c",
        "Ö": "O",
        "ö": "o",
        "Ü": "U",
        "ü": "u",
        "Â": "A",
        "â": "a",
        "Î": "I",
        "î": "i",
        "Û": "U",
        "û": "u",
    }
)

# "Mahallesi", "Mah.", "Mah", "Mh" at the end of a name all become "Mh."
_MAHALLE_SUFFIX_RE = re.compile(r"(?:^|\s+)(?:mahallesi|mah|mh)\.?$", flags=re.IGNORECASE)

MAHALLE_ABBREVIATION = "Mh."


def transliterate(text: str) -> str:
    text = text.translate(_TRANSLIT)
    text = unicodedata.normalize("NFKD", text)
    return "".join(c for c in text if not unicodedata.combining(c))


def normalize(text) -> str:
    """
    Canonical form used for province and district comparison.

    - Turkish letters -> plain ASCII, case preserved ("Çukurova" -> "Cukurova")
    - whitespace collapsed
    - trailing "Mahallesi" / "Mah." -> "Mh."
    """
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return ""
    text = transliterate(str(text))
    text = re.sub(r"\s+", " ", text).strip()
    text = _MAHALLE_SUFFIX_RE.sub(" " + MAHALLE_ABBREVIATION, text).strip()
    return text


def normalize_neighborhood(text) -> str:
    """Neighborhood names are compared uppercased: "BOTA MAHALLESİ" -> "BOTA MH."."""
    return normalize(text).upper()
