"""
Duplicate result detection for the trend network pull.

A duplicate is more than one record for the same station, collection date and
parameter. Duplicates are not resolved here: they are split off wholesale so
they can be exported and corrected in the source database.
"""

import logging
import typing

import pandas as pd
from stairval.notepad import Notepad

from .errors import MissingInputError

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_KEY = ("PK_STATION", "COLLECTION_DATE", "PARAMETER")


def partition_duplicates(
    frame: pd.DataFrame,
    key: typing.Sequence[str] = DEFAULT_DUPLICATE_KEY,
    notepad: Notepad | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Return (duplicates, uniques).

    duplicates: every row whose key occurs more than once, ordered by the key.
    uniques: every remaining row, in input order.
    Null key members compare equal to each other.
    Each duplicated key is noted as a warning on `notepad`.
    """
    key = list(key)
    missing = [column for column in key if column not in frame.columns]
    if missing:
        raise MissingInputError(f"Duplicate key columns not found: {missing}")

    repeated = frame.duplicated(subset=key, keep=False)
    duplicates = frame[repeated].sort_values(key, kind="mergesort", na_position="last")
    uniques = frame[~repeated]
    if not duplicates.empty:
        groups = duplicates.groupby(key, dropna=False, sort=False).size()
        logger.warning(
            f"Found {len(duplicates)} duplicated results in {len(groups)} "
            f"{'/'.join(key)} groups; they are excluded from the pivot"
        )
        if notepad is not None:
            for values, count in groups.items():
                values = values if isinstance(values, tuple) else (values,)
                described = ", ".join(f"{column}={value}" for column, value in zip(key, values))
                notepad.add_warning(f"{count} results share {described}; fix them in the source database")
    return duplicates, uniques
