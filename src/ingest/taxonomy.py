"""Controlled genre vocabulary for classification and filtering.

Genres returned by the classifier and genres named in filter settings are both
validated here. Matching is case-insensitive after trimming; the canonical
spelling from the lists below is what gets stored.
"""

from typing import Any

PRIMARY_GENRES: tuple[str, ...] = (
    "Philosophy",
    "Religion",
    "Theology",
    "Sacred Texts",
    "History",
    "Biography",
    "Science",
    "Mathematics",
    "Medicine",
    "Law",
    "Politics",
    "Economics",
    "Literature",
    "Poetry",
    "Drama",
    "Mythology",
    "Military & Strategy",
    "Education",
    "Linguistics",
    "Ethics",
    "Anthropology",
    "Sociology",
    "Psychology",
    "Geography",
    "Astronomy",
    "Alchemy & Esoterica",
    "Art & Architecture",
)

SUB_GENRES: tuple[str, ...] = (
    "Ancient",
    "Medieval",
    "Classical",
    "Early Modern",
    "Commentary",
    "Translation",
    "Manuscript",
    "Legal Code",
    "Canonical Text",
)

MAX_GENRES = 3

_PRIMARY_LOOKUP = {genre.lower(): genre for genre in PRIMARY_GENRES}
_SUB_LOOKUP = {subgenre.lower(): subgenre for subgenre in SUB_GENRES}


def validate_genre(genre: Any) -> str | None:
    """Return the canonical spelling of a primary genre, or None if unknown."""
    if not isinstance(genre, str):
        return None
    return _PRIMARY_LOOKUP.get(genre.strip().lower())


def validate_genres(genres: Any) -> list[str]:
    """Keep the valid primary genres, deduplicated, in order, at most three.

    Args:
        genres: Candidate genre list (anything that isn't a list yields [])

    Returns:
        Canonical genre names

    Example:
        >>> validate_genres(["philosophy", "Cooking", "ETHICS", "Philosophy"])
        ['Philosophy', 'Ethics']
    """
    if not isinstance(genres, list):
        return []

    valid: list[str] = []
    for genre in genres:
        canonical = validate_genre(genre)
        if canonical and canonical not in valid:
            valid.append(canonical)
            if len(valid) >= MAX_GENRES:
                break
    return valid


def validate_subgenre(subgenre: Any) -> str | None:
    """Return the canonical spelling of a sub-genre, or None if unknown."""
    if not isinstance(subgenre, str):
        return None
    return _SUB_LOOKUP.get(subgenre.strip().lower())


def is_valid_genre(genre: Any) -> bool:
    return validate_genre(genre) is not None


def invalid_genre_names(names: list[str]) -> list[str]:
    """List the names that are not primary genres (used to vet filter settings)."""
    return [name for name in names if not is_valid_genre(name)]
