"""
Measurement domain model.

Defines the MeasurementRow dataclass (one row per sample/parameter pair) and
the TableLayout that maps its fields onto the column headers of a data set.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Optional

import pandas as pd

from .errors import MissingInputError

# Fields that carry the measurement itself and may never be part of an identity key
MEASUREMENT_FIELDS = {"parameter_name", "value", "value_qualifier"}


@dataclass
class MeasurementRow:
    """
    Represents a single measurement pulled from the monitoring database.

    Attributes:
        station_id: Station primary/foreign key.
        collection_date: Date the sample was collected.
        sample_type: e.g. 'PRIMARY'.
        matrix: Sample matrix (e.g. 'WATER').
        parameter_name: Analyte name, arbitrary text.
        value: Measured value as text, None once nulled.
        value_qualifier: Short qualifier code string, may be empty.
    """

    station_id: Any
    collection_date: Any
    sample_type: str
    matrix: str
    parameter_name: str
    value: Optional[str]
    value_qualifier: Optional[str]
    random_sample_location_id: Optional[str] = None
    sample_id: Optional[Any] = None
    water_resource: Optional[str] = None
    param_code: Optional[Any] = None
    units: Optional[str] = None
    result_id: Optional[Any] = None
    project_id: Optional[str] = None


@dataclass(frozen=True)
class TableLayout:
    """
    Column headers and keys of one data set.

    `columns` maps MeasurementRow field names to headers, in export order.
    `identity` and `duplicate_key` are tuples of field names.
    """

    name: str
    columns: dict = field(hash=False)
    identity: tuple
    duplicate_key: tuple = ()

    def __post_init__(self) -> None:
        clash = MEASUREMENT_FIELDS & set(self.identity)
        if clash:
            raise ValueError(f"Layout {self.name!r}: identity key may not contain {sorted(clash)}")
        unknown = (set(self.identity) | set(self.duplicate_key)) - set(self.columns)
        if unknown:
            raise ValueError(f"Layout {self.name!r}: unknown fields {sorted(unknown)}")

    def header(self, field_name: str) -> str:
        return self.columns[field_name]

    @property
    def identity_columns(self) -> list[str]:
        return [self.columns[f] for f in self.identity]

    @property
    def duplicate_columns(self) -> list[str]:
        return [self.columns[f] for f in self.duplicate_key]

    @property
    def required_columns(self) -> list[str]:
        names = list(self.identity) + [f for f in self.duplicate_key if f not in self.identity]
        names += ["parameter_name", "value", "value_qualifier"]
        return [self.columns[f] for f in names]

    def check_columns(self, frame: pd.DataFrame) -> None:
        """Raise MissingInputError naming every required header absent from `frame`."""
        missing = [c for c in self.required_columns if c not in frame.columns]
        if missing:
            raise MissingInputError(f"Table {self.name!r}: missing required columns: {missing}")


RESULTS_LAYOUT = TableLayout(
    name="results",
    columns={
        "station_id": "FK_STATION",
        "random_sample_location_id": "FK_RANDOM_SAMPLE_LOCATION",
        "collection_date": "COLLECTION_DATE",
        "sample_type": "SAMPLE_TYPE",
        "matrix": "MATRIX",
        "parameter_name": "PARAMETER",
        "value": "VALUE",
        "value_qualifier": "VALUE_QUALIFIER",
    },
    identity=("station_id", "random_sample_location_id", "collection_date", "sample_type", "matrix"),
)

TREND_LAYOUT = TableLayout(
    name="trend",
    columns={
        "station_id": "PK_STATION",
        "water_resource": "WATER_RESOURCE",
        "result_id": "PK_RESULT",
        "project_id": "FK_PROJECT",
        "collection_date": "COLLECTION_DATE",
        "sample_type": "SAMPLE_TYPE",
        "matrix": "MATRIX",
        "param_code": "FK_PARAM_CODE",
        "parameter_name": "PARAMETER",
        "value": "VALUE",
        "value_qualifier": "VALUE_QUALIFIER",
        "units": "UNITS",
    },
    identity=("station_id", "water_resource", "collection_date", "sample_type", "matrix"),
    duplicate_key=("station_id", "collection_date", "parameter_name"),
)


def rows_to_frame(rows: Iterable[MeasurementRow], layout: TableLayout) -> pd.DataFrame:
    """
    Build a DataFrame from MeasurementRow objects using the layout's headers.
    Fields the layout does not export are dropped.
    """
    records = [
        {header: values[field_name] for field_name, header in layout.columns.items()}
        for values in (asdict(row) for row in rows)
    ]
    return pd.DataFrame.from_records(records, columns=list(layout.columns.values()))
