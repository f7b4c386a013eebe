"""
Results pipelines.

Both pipelines take long-form measurement rows and return a PipelineResult
bundle; nothing is bound globally and nothing is written until
PipelineResult.write() is called.

  general: RAW -> QUALIFIER-FILTERED -> ENCODED -> PIVOTED -> SPLIT -> NORMALIZED
  trend:   RAW -> QUALIFIER-FILTERED -> DUPLICATES-PARTITIONED -> ENCODED -> PIVOTED -> SPLIT -> NORMALIZED

Only the trend pipeline partitions duplicates. Collisions that reach the pivot
are reported by both.
"""

import abc
import logging
import pathlib
import typing
from dataclasses import dataclass, field

import pandas as pd
from stairval.notepad import Notepad, create_notepad

from .audit import AuditEntry, add_entry
from .duplicates import partition_duplicates
from .errors import MissingInputError
from .measurement import RESULTS_LAYOUT, TREND_LAYOUT, MeasurementRow, TableLayout, rows_to_frame
from .naming import ColumnNameNormalizer, canonical_name, export_file_name
from .pivot import ColumnSplitter, LongToWidePivoter
from .qualifiers import FATAL_QUALIFIERS, NULL_TEXT, encode_frame, is_null, null_fatal_values

logger = logging.getLogger(__name__)

ENCODED_COLUMN = "VALUE_VALUE_QUALIFIER"
COLLISIONS_LABEL = "PIVOT_COLLISIONS"

Rows = typing.Union[pd.DataFrame, typing.Iterable[MeasurementRow]]


def write_exports(
    tables: dict[str, pd.DataFrame], directory: str | pathlib.Path, *filters: typing.Any
) -> list[pathlib.Path]:
    """Write each table as <filters>_<label>.csv without a row index."""
    directory = pathlib.Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for label, frame in tables.items():
        path = directory / export_file_name(*filters, label=label)
        frame.to_csv(path, index=False, na_rep=NULL_TEXT)
        logger.info(f"Wrote {len(frame)} rows to {path}")
        written.append(path)
    return written


@dataclass
class ExportBundle:
    """Labelled tables plus the step summaries and issues of the run that produced them."""

    tables: dict[str, pd.DataFrame]
    audit: list[AuditEntry] = field(default_factory=list)
    notepad: Notepad = field(default_factory=lambda: create_notepad("exports"))

    def exports(self) -> dict[str, pd.DataFrame]:
        return dict(self.tables)

    def write(self, directory: str | pathlib.Path, *filters: typing.Any) -> list[pathlib.Path]:
        return write_exports(self.exports(), directory, *filters)


@dataclass
class PipelineResult:
    """
    Outputs of one results pipeline run.

    wide: one row per sample, <PARAM>/<PARAM>_VQ column pairs.
    stacked: long-form rows that went into the pivot.
    all_data: every row after qualifier filtering.
    collisions: cells of `wide` that aggregate several values.
    duplicates: trend pipeline only; rows withheld from the pivot.
    audit: one summary entry per step.
    notepad: data-quality warnings (duplicates, collisions, renamed columns).
    """

    wide: pd.DataFrame
    stacked: pd.DataFrame
    all_data: pd.DataFrame
    collisions: pd.DataFrame
    labels: dict[str, str]
    duplicates: pd.DataFrame | None = None
    audit: list[AuditEntry] = field(default_factory=list)
    notepad: Notepad = field(default_factory=lambda: create_notepad("results"))

    def exports(self) -> dict[str, pd.DataFrame]:
        tables = {label: getattr(self, attribute) for label, attribute in self.labels.items()}
        if not self.collisions.empty:
            tables[COLLISIONS_LABEL] = self.collisions
        return tables

    def write(self, directory: str | pathlib.Path, *filters: typing.Any) -> list[pathlib.Path]:
        return write_exports(self.exports(), directory, *filters)


class ResultsPipeline(metaclass=abc.ABCMeta):
    default_layout: TableLayout

    def __init__(
        self,
        layout: TableLayout | None = None,
        encoded: bool = False,
        fatal_qualifiers: typing.Iterable[str] = FATAL_QUALIFIERS,
    ):
        """
        encoded=True carries value and qualifier through the pivot as a
        "<value> | <qualifier>" string and splits it afterwards; the default
        pivots both fields together. The wide tables are identical.
        """
        self.layout = layout or self.default_layout
        self.encoded = encoded
        self.fatal_qualifiers = tuple(fatal_qualifiers)
        self._pivoter = LongToWidePivoter(self.layout.name)
        self._splitter = ColumnSplitter()
        self._normalizer = ColumnNameNormalizer()

    def run(self, rows: Rows, notepad: Notepad | None = None) -> PipelineResult:
        if notepad is None:
            notepad = create_notepad(self.layout.name)
        audit: list[AuditEntry] = []
        frame = self._prepare(rows)
        add_entry(audit, "load", self.layout.name, f"{len(frame)} rows", "info", logger)

        filtered = null_fatal_values(
            frame,
            self.layout.header("value"),
            self.layout.header("value_qualifier"),
            self.fatal_qualifiers,
        )
        nulled = int((frame[self.layout.header("value")].notna() & filtered[self.layout.header("value")].isna()).sum())
        add_entry(audit, "qualifier-filter", self.layout.name, f"{nulled} values nulled", "info", logger)
        logger.debug("State QUALIFIER-FILTERED")

        result = self._reshape(filtered, audit, notepad)
        result.audit = audit
        result.notepad = notepad
        return result

    @abc.abstractmethod
    def _reshape(self, filtered: pd.DataFrame, audit: list[AuditEntry], notepad: Notepad) -> PipelineResult:
        raise NotImplementedError

    def _prepare(self, rows: Rows) -> pd.DataFrame:
        if rows is None:
            raise MissingInputError("No measurement rows supplied")
        if isinstance(rows, pd.DataFrame):
            frame = rows.copy()
        else:
            frame = rows_to_frame(rows, self.layout)
        self.layout.check_columns(frame)
        parameter = self.layout.header("parameter_name")
        frame[parameter] = frame[parameter].map(lambda name: None if is_null(name) else canonical_name(name))
        return frame

    def _to_wide(
        self, frame: pd.DataFrame, audit: list[AuditEntry], notepad: Notepad
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        identity = self.layout.identity_columns
        names = self.layout.header("parameter_name")
        value = self.layout.header("value")
        qualifier = self.layout.header("value_qualifier")

        if self.encoded:
            encoded = encode_frame(frame, value, qualifier, ENCODED_COLUMN)
            logger.debug("State ENCODED")
            pivoted, collisions = self._pivoter.pivot(encoded, identity, names, ENCODED_COLUMN, notepad)
            logger.debug("State PIVOTED")
            wide = self._splitter.split(pivoted, len(identity))
        else:
            wide, collisions = self._pivoter.pivot_pairs(frame, identity, names, value, qualifier, notepad)
            logger.debug("State PIVOTED")
        logger.debug("State SPLIT")

        wide.columns = self._normalizer.normalize(list(wide.columns), wide.columns[len(identity):], notepad)
        logger.debug("State NORMALIZED")
        add_entry(
            audit,
            "pivot",
            self.layout.name,
            f"{len(wide)} samples x {(len(wide.columns) - len(identity)) // 2} parameters",
            "info",
            logger,
        )
        return wide, collisions


class GeneralResultsPipeline(ResultsPipeline):
    default_layout = RESULTS_LAYOUT

    def _reshape(self, filtered: pd.DataFrame, audit: list[AuditEntry], notepad: Notepad) -> PipelineResult:
        wide, collisions = self._to_wide(filtered, audit, notepad)
        return PipelineResult(
            wide=wide,
            stacked=filtered,
            all_data=filtered,
            collisions=collisions,
            labels={"Results_Stacked": "stacked", "Results": "wide"},
        )


class TrendResultsPipeline(ResultsPipeline):
    default_layout = TREND_LAYOUT

    def _reshape(self, filtered: pd.DataFrame, audit: list[AuditEntry], notepad: Notepad) -> PipelineResult:
        duplicates, uniques = partition_duplicates(filtered, self.layout.duplicate_columns, notepad)
        logger.debug("State DUPLICATES-PARTITIONED")
        add_entry(
            audit,
            "duplicates",
            self.layout.name,
            f"{len(duplicates)} rows share a {'/'.join(self.layout.duplicate_columns)} key; "
            f"exported for correction and left out of the pivot",
            "info",
            logger,
        )
        wide, collisions = self._to_wide(uniques, audit, notepad)
        return PipelineResult(
            wide=wide,
            stacked=uniques,
            all_data=filtered,
            collisions=collisions,
            duplicates=duplicates,
            labels={
                "Trend_All_Data": "all_data",
                "DUPLICATES": "duplicates",
                "Results_Stacked": "stacked",
                "Results_Pivoted": "wide",
            },
        )
