"""
Long-to-wide reshaping of measurement tables.

LongToWidePivoter spreads one row per (sample, parameter) into one row per
sample. Parameter columns are the union of every parameter name seen, in order
of first appearance; samples keep their order of first appearance too.

When a (sample, parameter) cell receives more than one value the cell keeps
all of them as 'c(v1, v2, ...)' and the cell is listed in the collisions
frame, so the condition stays visible in the exported table.
"""

import logging
import typing

import pandas as pd
from stairval.notepad import Notepad

from .errors import AmbiguousPivotWarning, MissingInputError
from .qualifiers import collapse, decode_value_qualifier, is_null

logger = logging.getLogger(__name__)

VALUE_SUFFIX = "_1"
QUALIFIER_SUFFIX = "_2"
COUNT_COLUMN = "N_VALUES"


def convert_numeric(series: pd.Series) -> pd.Series:
    """Numeric when every non-null member parses as a number, unchanged otherwise."""
    try:
        return pd.to_numeric(series)
    except (ValueError, TypeError):
        return series


class LongToWidePivoter:
    def __init__(self, table: str = "results"):
        self.table = table

    def pivot(
        self,
        frame: pd.DataFrame,
        identity: typing.Sequence[str],
        names: str = "PARAMETER",
        values: str = "VALUE_VALUE_QUALIFIER",
        notepad: Notepad | None = None,
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        One column per parameter holding `values` cells.
        Returns (wide, collisions).
        """
        return self._spread(frame, identity, names, [values], [""], notepad)

    def pivot_pairs(
        self,
        frame: pd.DataFrame,
        identity: typing.Sequence[str],
        names: str = "PARAMETER",
        value: str = "VALUE",
        qualifier: str = "VALUE_QUALIFIER",
        notepad: Notepad | None = None,
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        Spread value and qualifier together: each parameter gets a `<name>_1`
        value column followed by a `<name>_2` qualifier column, no separator text involved.
        """
        wide, collisions = self._spread(
            frame, identity, names, [value, qualifier], [VALUE_SUFFIX, QUALIFIER_SUFFIX], notepad
        )
        for column in wide.columns[len(identity):]:
            if column.endswith(VALUE_SUFFIX):
                wide[column] = convert_numeric(wide[column])
        return wide, collisions

    def _spread(
        self,
        frame: pd.DataFrame,
        identity: typing.Sequence[str],
        names: str,
        value_columns: typing.Sequence[str],
        suffixes: typing.Sequence[str],
        notepad: Notepad | None,
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        identity = list(identity)
        if names in identity or set(value_columns) & set(identity):
            raise ValueError(f"Identity columns {identity} overlap the names/values columns")
        missing = [c for c in identity + [names, *value_columns] if c not in frame.columns]
        if missing:
            raise MissingInputError(f"Cannot pivot {self.table!r}: missing columns {missing}")

        keys = [
            tuple(None if is_null(v) else v for v in row)
            for row in frame[identity].itertuples(index=False, name=None)
        ]
        members = zip(*(frame[c].tolist() for c in value_columns))

        cells: dict[tuple, dict[str, list]] = {}
        parameters: dict[str, None] = {}
        unnamed = 0
        for key, name, member in zip(keys, frame[names].tolist(), members):
            # every sample gets a row, even when none of its rows names a parameter
            by_name = cells.setdefault(key, {})
            if is_null(name):
                unnamed += 1
                continue
            name = str(name)
            parameters.setdefault(name, None)
            by_name.setdefault(name, []).append(tuple(None if is_null(m) else m for m in member))
        if unnamed:
            self._warn(notepad, f"{unnamed} rows without a {names} contribute no cells")

        records = []
        collisions = []
        for key, by_name in cells.items():
            record = list(key)
            for name in parameters:
                found = by_name.get(name)
                if not found:
                    record.extend([None] * len(suffixes))
                    continue
                if len(found) > 1:
                    collisions.append([*key, name, len(found)])
                record.extend(collapse([m[i] for m in found]) for i in range(len(suffixes)))
            records.append(record)

        width = len(identity)
        generated = [name + suffix for name in parameters for suffix in suffixes]
        wide = pd.concat(
            [
                pd.DataFrame.from_records([r[:width] for r in records], columns=identity),
                pd.DataFrame(
                    {
                        column: pd.Series([r[offset] for r in records], dtype=object)
                        for offset, column in enumerate(generated, start=width)
                    },
                    index=pd.RangeIndex(len(records)),
                ),
            ],
            axis=1,
        )
        collisions = pd.DataFrame.from_records(collisions, columns=identity + [names, COUNT_COLUMN])
        if not collisions.empty:
            self._warn(
                notepad,
                f"{len(collisions)} cells hold more than one value ({AmbiguousPivotWarning.__name__}); "
                f"search the export for 'c(' or see the collisions table",
            )
        logger.debug(f"Pivoted {len(frame)} rows into {len(wide)} x {len(parameters)} parameters")
        return wide, collisions

    def _warn(self, notepad: Notepad | None, message: str) -> None:
        message = f"Table {self.table!r}: {message}"
        logger.warning(message)
        if notepad is not None:
            notepad.add_warning(message)


class ColumnSplitter:
    """Split encoded "<value> | <qualifier>" columns into value/qualifier pairs."""

    def split(self, frame: pd.DataFrame, start: int) -> pd.DataFrame:
        """
        Split every column from position `start` on into `<col>_1` (value,
        numeric where possible) and `<col>_2` (qualifier), in place of the
        original column. Columns before `start` are left as they are.
        """
        data = {}
        for position, column in enumerate(frame.columns):
            if position < start:
                data[column] = frame[column]
                continue
            pairs = [decode_value_qualifier(cell) for cell in frame[column]]
            data[f"{column}{VALUE_SUFFIX}"] = convert_numeric(
                pd.Series([v for v, _ in pairs], index=frame.index, dtype=object)
            )
            data[f"{column}{QUALIFIER_SUFFIX}"] = pd.Series([q for _, q in pairs], index=frame.index, dtype=object)
        return pd.DataFrame(data, index=frame.index)

