"""
Error taxonomy shared by the pipelines, the query helpers and the CLI.

Fatal conditions are exceptions; data-quality anomalies are warning
categories named in the warnings noted on a run's notepad instead of being raised.
"""


class MissingInputError(ValueError):
    """Raised when a required argument or column is absent, before any I/O happens."""


class AmbiguousPivotWarning(UserWarning):
    """More than one value landed in the same (identity, parameter) cell."""


class UnmatchedCategoryWarning(UserWarning):
    """A region/bioregion value had no entry in a criteria lookup table."""
