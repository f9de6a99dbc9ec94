"""Name and word normalization for lyrics verification."""

from __future__ import annotations

import re
import string

DEFAULT_MAX_ARTIST_VARIANTS = 3

_LEADING_ARTICLE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)
_SIBILANT_ENDING = re.compile(r"(?:[sxz]|[cs]h)$")
_VOWELS = "aeiou"


def artist_variants(artist: str, limit: int = DEFAULT_MAX_ARTIST_VARIANTS) -> list[str]:
    """Spellings of an artist name worth looking up, most literal first.

    Covers capitalization and a leading article in either direction:
    "the beatles" also yields "Beatles", and "Beatles" also yields "The Beatles".
    """
    trimmed = " ".join(artist.split())
    if not trimmed:
        return []
    titled = string.capwords(trimmed)
    variants = [trimmed, titled]

    stripped = _LEADING_ARTICLE.sub("", trimmed)
    if stripped and stripped != trimmed:
        variants += [stripped, string.capwords(stripped)]
    else:
        variants.append(f"The {titled}")

    return list(dict.fromkeys(variants))[:limit]


def _singular_forms(word: str) -> list[str]:
    if len(word) > 3 and word.endswith("ies"):
        return [word[:-3] + "y"]
    if len(word) > 3 and word.endswith("ves"):
        return [word[:-3] + "f", word[:-3] + "fe"]
    if len(word) > 2 and word.endswith("es"):
        # "boxes" -> "box", "eyes" -> "eye"
        return [word[:-2], word[:-1]]
    if len(word) > 1 and word.endswith("s") and not word.endswith("ss"):
        return [word[:-1]]
    return []


def _plural_forms(word: str) -> list[str]:
    if len(word) > 1 and word.endswith("y") and word[-2] not in _VOWELS:
        return [word[:-1] + "ies"]
    if word.endswith("fe"):
        return [word[:-2] + "ves", word + "s"]
    if word.endswith("f"):
        return [word[:-1] + "ves", word + "s"]
    if _SIBILANT_ENDING.search(word):
        return [word + "es"]
    return [word + "s"]


def word_variants(word: str) -> list[str]:
    """Lower-cased target word plus its regular singular and plural forms.

    A word ending in a single "s" may be either ("cats", "bus"), so both
    directions are tried. Words already ending in "-es" are only singularised.
    """
    base = word.strip().lower()
    if not base:
        return []
    singulars = _singular_forms(base)
    plurals = [] if base.endswith("es") else _plural_forms(base)
    return list(dict.fromkeys([base, *singulars, *plurals]))


def lyrics_contain_word(lyrics: str, word: str) -> bool:
    """Case-insensitive whole-word search for any form of `word` in `lyrics`."""
    variants = word_variants(word)
    if not variants or not lyrics:
        return False
    alternation = "|".join(re.escape(v) for v in sorted(variants, key=len, reverse=True))
    return re.search(rf"\b(?:{alternation})\b", lyrics, re.IGNORECASE) is not None
