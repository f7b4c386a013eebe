import pathlib

import pandas as pd


def normalize_headers(frame: pd.DataFrame) -> pd.DataFrame:
    # strip, whitespace -> underscore, upper-case (database style headers)
    frame.columns = (
        frame.columns.astype(str)
        .str.strip()
        .str.replace(r"\s+", "_", regex=True)
        .str.upper()
    )
    return frame


def load_table(path: str | pathlib.Path, sheet_name: str | int = 0) -> pd.DataFrame:
    """
    Read a long-form table from .csv or .xlsx/.xlsm (first sheet unless
    `sheet_name` is given); headers are normalized to upper case.
    """
    path = pathlib.Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame = pd.read_csv(path, dtype={"VALUE": object, "VALUE_QUALIFIER": object}, keep_default_na=True)
    elif suffix in {".xlsx", ".xlsm"}:
        frame = pd.read_excel(path, sheet_name=sheet_name, header=0, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported input file type {path.suffix!r}; use .csv or .xlsx")
    return normalize_headers(frame)
