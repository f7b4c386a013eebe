"""
Regulatory criteria assignment.

Total nitrogen and total phosphorus numeric nutrient criteria (F.A.C. 62-302.531)
follow the nutrient watershed region; dissolved oxygen criteria (F.A.C. 62-302.533)
follow the 2012 SCI bioregion. Values without a table entry get a null criterion
and a notepad warning, never an exception.
"""

import logging
import typing

import pandas as pd
from stairval.notepad import Notepad

from .errors import MissingInputError, UnmatchedCategoryWarning

logger = logging.getLogger(__name__)

# region -> (TN_NNC, TP_NNC)
NUTRIENT_CRITERIA = {
    "PANHANDLE EAST": (1.03, 0.18),
    "PANHANDLE WEST": (0.67, 0.06),
    "PENINSULAR": (1.54, 0.12),
    "NORTH CENTRAL": (1.87, 0.30),
    "WEST CENTRAL": (1.65, 0.49),
}

# bioregion -> DO_Conc
DO_CRITERIA = {
    "BIG BEND": 34,
    "PANHANDLE": 67,
    "PENINSULA": 38,
    "NORTHEAST": 34,
    "EVERGLADES": 38,
}

DEFAULT_REGION_COLUMN = "NUTRIENT_WATERSHED_REGION"
DEFAULT_BIOREGION_COLUMN = "SCI_DO_BIOREGION_2012"


def nutrient_criteria(region: typing.Any) -> tuple[float | None, float | None]:
    """(TN_NNC, TP_NNC) for a region name; (None, None) when unknown."""
    return NUTRIENT_CRITERIA.get(region, (None, None)) if isinstance(region, str) else (None, None)


def do_criterion(bioregion: typing.Any) -> int | None:
    return DO_CRITERIA.get(bioregion) if isinstance(bioregion, str) else None


class CriteriaAnnotator:
    def __init__(
        self,
        region_column: str = DEFAULT_REGION_COLUMN,
        bioregion_column: str = DEFAULT_BIOREGION_COLUMN,
    ):
        self.region_column = region_column
        self.bioregion_column = bioregion_column

    def annotate_nutrients(self, frame: pd.DataFrame, notepad: Notepad | None = None) -> pd.DataFrame:
        """Add TN_NNC and TP_NNC columns looked up from the nutrient region."""
        regions = self._category(frame, self.region_column)
        result = frame.copy()
        pairs = [nutrient_criteria(r) for r in regions]
        result["TN_NNC"] = pd.Series([tn for tn, _ in pairs], index=frame.index, dtype="float64")
        result["TP_NNC"] = pd.Series([tp for _, tp in pairs], index=frame.index, dtype="float64")
        self._report_unmatched(regions, NUTRIENT_CRITERIA, notepad)
        return result

    def annotate_dissolved_oxygen(self, frame: pd.DataFrame, notepad: Notepad | None = None) -> pd.DataFrame:
        """Add the DO_Conc column looked up from the SCI bioregion."""
        bioregions = self._category(frame, self.bioregion_column)
        result = frame.copy()
        result["DO_Conc"] = pd.Series([do_criterion(b) for b in bioregions], index=frame.index, dtype="Int64")
        self._report_unmatched(bioregions, DO_CRITERIA, notepad)
        return result

    def annotate(self, frame: pd.DataFrame, notepad: Notepad | None = None) -> pd.DataFrame:
        return self.annotate_dissolved_oxygen(self.annotate_nutrients(frame, notepad), notepad)

    @staticmethod
    def _category(frame: pd.DataFrame, column: str) -> pd.Series:
        if column not in frame.columns:
            raise MissingInputError(f"Criteria lookup column {column!r} not found")
        return frame[column]

    @staticmethod
    def _report_unmatched(values: pd.Series, table: dict, notepad: Notepad | None) -> None:
        unmatched = values[~values.isin(list(table))]
        if unmatched.empty:
            return
        names = sorted({str(v) for v in unmatched.dropna()})
        n_null = int(unmatched.isna().sum())
        message = f"Column {values.name!r}: {len(unmatched)} rows without criteria ({UnmatchedCategoryWarning.__name__})"
        if names:
            message += f"; unmatched values: {names}"
        if n_null:
            message += f"; {n_null} rows have no {values.name}"
        logger.warning(message)
        if notepad is not None:
            notepad.add_warning(message)
