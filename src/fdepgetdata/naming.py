"""
Column and file naming.

canonical_name() is the single rule set applied to parameter names and
generated column names:
  1. delete apostrophes, commas, plus signs, parentheses and square brackets
  2. replace every other character outside [A-Za-z0-9_] with an underscore
  3. collapse every run of underscores to one underscore
The rules are total and idempotent: canonical_name(canonical_name(x)) == canonical_name(x).
"""

import datetime
import logging
import re
import typing

from stairval.notepad import Notepad

from .pivot import QUALIFIER_SUFFIX, VALUE_SUFFIX

DELETED_CHARACTERS = "',+()[]"
QUALIFIER_MARKER = "_VQ"

_DELETE = str.maketrans("", "", DELETED_CHARACTERS)
_DISALLOWED = re.compile(r"[^A-Za-z0-9_]")
_UNDERSCORE_RUN = re.compile(r"_{2,}")
_QUOTES = re.compile(r"['\"]")

logger = logging.getLogger(__name__)


def canonical_name(text: typing.Any) -> str:
    """e.g. 'PCB 1260' -> 'PCB_1260', 'Fe___Total' -> 'Fe_Total', 'Nitrite + Nitrate (as N)' -> 'Nitrite_Nitrate_as_N'."""
    name = _DISALLOWED.sub("_", str(text).translate(_DELETE))
    return _UNDERSCORE_RUN.sub("_", name)


class ColumnNameNormalizer:
    @staticmethod
    def _split_suffix(column: str) -> tuple[str, str]:
        if column.endswith(VALUE_SUFFIX):
            return column[: -len(VALUE_SUFFIX)], ""
        if column.endswith(QUALIFIER_SUFFIX):
            return column[: -len(QUALIFIER_SUFFIX)], QUALIFIER_MARKER
        return column, ""

    def normalize_name(self, column: str, split_half: bool = False) -> str:
        """
        For a split half, drop the value suffix or turn the qualifier suffix
        into _VQ; then canonicalize.
        """
        if split_half:
            stem, marker = self._split_suffix(column)
            column = stem + marker
        return canonical_name(column)

    def normalize(
        self,
        columns: typing.Sequence[str],
        split_columns: typing.Iterable[str] = (),
        notepad: Notepad | None = None,
    ) -> list[str]:
        """
        Normalize every column name. Names come out unique: when a parameter
        would take a name already in use, both of its columns get the first
        free `_2`, `_3`, ... stem instead and a warning is noted.
        """
        split_columns = set(split_columns)
        taken: set[str] = set()
        stems: dict[str, str] = {}
        normalized = []
        for column in columns:
            if column not in split_columns:
                normalized.append(canonical_name(self._claim(column, ("",), taken, notepad)))
                continue
            stem, marker = self._split_suffix(column)
            if stem not in stems:
                stems[stem] = self._claim(stem, ("", QUALIFIER_MARKER), taken, notepad)
            normalized.append(canonical_name(stems[stem] + marker))
        return normalized

    @staticmethod
    def _claim(stem: str, markers: typing.Sequence[str], taken: set[str], notepad: Notepad | None) -> str:
        candidate = stem
        n = 2
        while any(canonical_name(candidate + m) in taken for m in markers):
            candidate = f"{stem}_{n}"
            n += 1
        taken.update(canonical_name(candidate + m) for m in markers)
        if candidate != stem:
            message = (
                f"Column {stem!r} normalizes to {canonical_name(stem)!r}, which is already in use; "
                f"exported as {canonical_name(candidate)!r}"
            )
            logger.warning(message)
            if notepad is not None:
                notepad.add_warning(message)
        return candidate


def _filter_text(part: typing.Any) -> str:
    if isinstance(part, (datetime.date, datetime.datetime)):
        return part.strftime("%d-%b-%Y").upper()
    if isinstance(part, (list, tuple)):
        return "_".join(_filter_text(p) for p in part)
    text = _QUOTES.sub("", str(part))
    return "_".join(piece.strip() for piece in text.split(","))


def export_file_name(*filters: typing.Any, label: str) -> str:
    """
    Deterministic CSV name from the caller's filters.

    export_file_name("'CN18','CN19'", label="Sites") -> 'CN18_CN19_Sites.csv'
    export_file_name(["AQUIFER", "SPRING"], date(1998, 10, 1), date(2022, 12, 31), label="DUPLICATES")
        -> 'AQUIFER_SPRING_01-OCT-1998_31-DEC-2022_DUPLICATES.csv'
    """
    parts = [_filter_text(f) for f in filters if f is not None and f != ""]
    return "_".join([p for p in parts if p] + [label]) + ".csv"
