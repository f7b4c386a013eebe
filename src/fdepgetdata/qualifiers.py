"""
Value-qualifier handling.

- null_fatal_values(): blank out measurements carrying a fatal qualifier code
  (FS 62-160.700 Table 1: '?', 'O', 'N', 'T', 'X').
- encode_value_qualifier() / decode_value_qualifier(): carry a value and its
  qualifier through a single cell as "<value> | <qualifier>".
"""

import logging
import typing

import pandas as pd

logger = logging.getLogger(__name__)

FATAL_QUALIFIERS = ("?", "O", "N", "T", "X")
SEPARATOR = " | "
NULL_TEXT = "NA"
COLLISION_PREFIX = "c("
COLLISION_SUFFIX = ")"
COLLISION_JOIN = ", "


def is_null(value: typing.Any) -> bool:
    return value is None or (not isinstance(value, (list, tuple)) and pd.isna(value))


def has_fatal_qualifier(qualifier: typing.Any, codes: typing.Iterable[str] = FATAL_QUALIFIERS) -> bool:
    """True when any code occurs anywhere in the qualifier string ('OK' contains 'O')."""
    if is_null(qualifier):
        return False
    text = str(qualifier)
    return any(code in text for code in codes)


def null_fatal_values(
    frame: pd.DataFrame,
    value_column: str = "VALUE",
    qualifier_column: str = "VALUE_QUALIFIER",
    codes: typing.Iterable[str] = FATAL_QUALIFIERS,
) -> pd.DataFrame:
    """
    Return a copy of `frame` with `value_column` set to null on every row whose
    qualifier contains one of `codes`.
    """
    codes = tuple(codes)
    fatal = frame[qualifier_column].map(lambda q: has_fatal_qualifier(q, codes)).astype(bool)
    result = frame.copy()
    if fatal.any():
        result[value_column] = result[value_column].astype(object).where(~fatal, None)
    logger.info(f"Nulled {int(fatal.sum())} of {len(frame)} values with fatal qualifiers {list(codes)}")
    return result


def render(value: typing.Any) -> str:
    """Text form of a cell member; nulls render as NA."""
    return NULL_TEXT if is_null(value) else str(value)


def encode_value_qualifier(value: typing.Any, qualifier: typing.Any) -> str:
    return f"{render(value)}{SEPARATOR}{render(qualifier)}"


def encode_frame(
    frame: pd.DataFrame,
    value_column: str = "VALUE",
    qualifier_column: str = "VALUE_QUALIFIER",
    target_column: str = "VALUE_VALUE_QUALIFIER",
) -> pd.DataFrame:
    """Add `target_column` holding the encoded cell for every row."""
    result = frame.copy()
    result[target_column] = [
        encode_value_qualifier(v, q) for v, q in zip(frame[value_column], frame[qualifier_column])
    ]
    return result


def collapse(members: typing.Sequence[typing.Any]) -> typing.Any:
    """
    One member stays as it is; several become the visible aggregate 'c(a, b, ...)'.
    """
    if len(members) == 1:
        return members[0]
    return COLLISION_PREFIX + COLLISION_JOIN.join(render(m) for m in members) + COLLISION_SUFFIX


def is_collision(cell: typing.Any) -> bool:
    return (
        isinstance(cell, str)
        and cell.startswith(COLLISION_PREFIX)
        and cell.endswith(COLLISION_SUFFIX)
    )


def _from_text(text: str) -> typing.Optional[str]:
    return None if text == NULL_TEXT else text


def decode_value_qualifier(cell: typing.Any) -> tuple[typing.Optional[str], typing.Optional[str]]:
    """
    Split an encoded cell back into (value, qualifier).

    Aggregated collision cells decode member by member and are re-aggregated,
    so 'c(7.2 | A, 7.3 | J)' gives ('c(7.2, 7.3)', 'c(A, J)').

    Members are located from the separators: each member boundary is the
    first ', ' after a qualifier. Values may contain ', '; qualifier codes
    may not.
    """
    if is_null(cell):
        return None, None
    text = str(cell)
    if is_collision(text) and SEPARATOR in text:
        pieces = text[len(COLLISION_PREFIX):-len(COLLISION_SUFFIX)].split(SEPARATOR)
        values, qualifiers = [pieces[0]], []
        for piece in pieces[1:-1]:
            qualifier, _, value = piece.partition(COLLISION_JOIN)
            qualifiers.append(qualifier)
            values.append(value)
        qualifiers.append(pieces[-1])
        return collapse([_from_text(v) for v in values]), collapse([_from_text(q) for q in qualifiers])
    value, sep, qualifier = text.partition(SEPARATOR)
    if not sep:
        return _from_text(value), None
    return _from_text(value), _from_text(qualifier)
