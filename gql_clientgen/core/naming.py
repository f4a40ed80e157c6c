"""Naming helpers shared by the generator and the templates."""

import keyword
import re

from .errors import InvalidIdentifierError

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def pascal_case(name: str) -> str:
    """Convert any schema name to PascalCase.

    Words are split on separators, case changes and digit runs; each word is
    capitalized with the rest lower-cased, so ``WARD_VS_VITAL_SIGNS`` becomes
    ``WardVsVitalSigns`` and ``CCCTrigger`` becomes ``CccTrigger``. A name
    made of underscores only keeps its underscores.
    """
    if not name:
        return name

    words = _WORD_PATTERN.findall(name)
    if not words:
        return "".join(c for c in name if c == "_")
    return "".join(word[0].upper() + word[1:].lower() for word in words)


def snake_case(name: str) -> str:
    """Convert PascalCase or camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def upper_case(name: str) -> str:
    """Convert to UPPER_CASE."""
    return snake_case(name).upper()


def lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]


def is_valid_identifier(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def validate_identifier(name: str, description: str = "identifier") -> str:
    """Return ``name`` or raise ``InvalidIdentifierError``."""
    if not is_valid_identifier(name):
        raise InvalidIdentifierError(f"'{name}' is not a valid Python {description}", name)
    return name


def safe_name(name: str, reserved: set[str] | frozenset[str] = frozenset()) -> str:
    """Make a generated attribute or parameter name usable in Python.

    Keywords and reserved names get a trailing underscore. Leading
    underscores are moved to the end so pydantic does not treat the
    attribute as private.
    """
    stripped = name.lstrip("_")
    if stripped != name:
        name = (stripped or "field") + "_" * (len(name) - len(stripped))
    while keyword.iskeyword(name) or name in reserved:
        name += "_"
    return name


def unique_name(name: str, used: set[str]) -> str:
    """Append a counter until ``name`` is not in ``used``; records the result."""
    candidate = name
    counter = 2
    while candidate in used:
        candidate = f"{name}{counter}"
        counter += 1
    used.add(candidate)
    return candidate


def safe_docstring(text: str | None) -> str:
    """Escape text for use in docstrings."""
    if not text:
        return ""
    text = text.strip().replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if text.endswith('"'):
        text += " "
    return text


def safe_comment(text: str | None) -> str:
    """Collapse text to a single line usable after ``#``."""
    if not text:
        return ""
    text = re.sub(r"\s+", " ", text)
    if len(text) > 120:
        text = text[:117] + "..."
    return text.strip()
