"""
Glob-based record filtering for the search endpoints.

A search is a mapping of field name to shell-style glob pattern. A record
matches when every field is present, holds a scalar value, and that value
matches its pattern; the predicates are ANDed and an empty mapping matches
everything.

Supported glob syntax:
- ``*`` any run of characters, ``?`` exactly one character
- ``[abc]``, ``[a-z]``, ``[!abc]`` / ``[^abc]`` character classes
- ``{foo,bar}`` alternation (not nested)
- ``\\`` escapes the next character
"""

import json
import re
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from .enums import ResourceType
from .exceptions import PatternError

if TYPE_CHECKING:
    from .record_store import RecordStore


def _pattern_error(pattern: str, reason: str) -> PatternError:
    return PatternError(
        code="invalid_glob",
        message=f"Invalid glob pattern {pattern!r}: {reason}",
        details={"pattern": pattern, "reason": reason},
    )


def _read_class_char(pattern: str, index: int) -> tuple[str, int]:
    """Read one (possibly escaped) character inside a class; return it and the next index."""
    char = pattern[index]
    if char == "\\":
        if index + 1 >= len(pattern):
            raise _pattern_error(pattern, "dangling escape")
        return pattern[index + 1], index + 2
    return char, index + 1


def _translate_class(pattern: str, start: int) -> tuple[str, int]:
    """Translate the class opening at ``start`` ('['); return regex and index after ']'."""
    index = start + 1
    negate = False
    if index < len(pattern) and pattern[index] in "!^":
        negate = True
        index += 1

    items = []
    first = True
    while True:
        if index >= len(pattern):
            raise _pattern_error(pattern, "unclosed character class")
        if pattern[index] == "]" and not first:
            break
        first = False

        low, index = _read_class_char(pattern, index)
        if (
            index + 1 < len(pattern)
            and pattern[index] == "-"
            and pattern[index + 1] != "]"
        ):
            high, index = _read_class_char(pattern, index + 1)
            if low > high:
                raise _pattern_error(pattern, f"invalid range {low}-{high}")
            items.append(f"{re.escape(low)}-{re.escape(high)}")
        else:
            items.append(re.escape(low))

    return "[" + ("^" if negate else "") + "".join(items) + "]", index + 1


def compile_glob(pattern: str) -> re.Pattern:
    """
    Compile a glob pattern into an anchored regular expression.

    Raises:
        PatternError: If the pattern is malformed
    """
    if not isinstance(pattern, str):
        raise _pattern_error(repr(pattern), "pattern must be a string")

    parts = []
    in_alternation = False
    index = 0
    while index < len(pattern):
        char = pattern[index]

        if char == "\\":
            if index + 1 >= len(pattern):
                raise _pattern_error(pattern, "dangling escape")
            parts.append(re.escape(pattern[index + 1]))
            index += 2
            continue

        if char == "[":
            translated, index = _translate_class(pattern, index)
            parts.append(translated)
            continue

        if char == "*":
            while index + 1 < len(pattern) and pattern[index + 1] == "*":
                index += 1
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "{":
            if in_alternation:
                raise _pattern_error(pattern, "nested alternation")
            in_alternation = True
            parts.append("(?:")
        elif char == "," and in_alternation:
            parts.append("|")
        elif char == "}" and in_alternation:
            in_alternation = False
            parts.append(")")
        else:
            parts.append(re.escape(char))
        index += 1

    if in_alternation:
        raise _pattern_error(pattern, "unclosed alternation")

    return re.compile("".join(parts), re.DOTALL)


def scalar_text(value: Any) -> Optional[str]:
    """
    Render a scalar JSON value as the text globs are matched against.

    Booleans become 'true'/'false' and numbers their JSON form; objects,
    arrays and null return None.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return None


class FieldFilter:
    """A compiled set of field-glob predicates combined with logical AND."""

    def __init__(self, field_globs: Optional[Mapping[str, str]] = None) -> None:
        """
        Compile every pattern up front so malformed input fails before any I/O.

        Raises:
            PatternError: If any pattern is malformed
        """
        self._matchers = {
            field: compile_glob(pattern)
            for field, pattern in (field_globs or {}).items()
        }

    @property
    def fields(self) -> list[str]:
        return list(self._matchers)

    def __bool__(self) -> bool:
        return bool(self._matchers)

    def matches(self, record: Any) -> bool:
        if not isinstance(record, dict):
            return False
        for field, matcher in self._matchers.items():
            if field not in record:
                return False
            text = scalar_text(record[field])
            if text is None or matcher.fullmatch(text) is None:
                return False
        return True

    def select(self, records: Iterable[Any]) -> list:
        return [record for record in records if self.matches(record)]


class SearchFilter:
    """Free-text search over all stored records of one resource type."""

    def __init__(self, store: "RecordStore") -> None:
        self._store = store

    async def search(
        self,
        resource_type: ResourceType,
        field_globs: Optional[Mapping[str, str]] = None,
    ) -> list[dict]:
        """
        Return every stored record of ``resource_type`` matching all field globs.

        Raises:
            PatternError: If any pattern is malformed (no partial result)
            UpstreamError: If the store fails
        """
        field_globs = dict(field_globs or {})
        # malformed patterns must fail before the scan starts
        FieldFilter(field_globs)
        return await self._store.get([resource_type.wildcard_key()], field_globs)
