import pandas as pd
import pytest

RESULTS_HEADERS = [
    "FK_STATION",
    "FK_RANDOM_SAMPLE_LOCATION",
    "COLLECTION_DATE",
    "SAMPLE_TYPE",
    "MATRIX",
    "PARAMETER",
    "VALUE",
    "VALUE_QUALIFIER",
]

TREND_HEADERS = [
    "PK_STATION",
    "WATER_RESOURCE",
    "PK_RESULT",
    "FK_PROJECT",
    "COLLECTION_DATE",
    "SAMPLE_TYPE",
    "MATRIX",
    "FK_PARAM_CODE",
    "PARAMETER",
    "VALUE",
    "VALUE_QUALIFIER",
    "UNITS",
]


@pytest.fixture
def results_frame() -> pd.DataFrame:
    """
    Two canal samples in long form. Station 2's chlorophyll carries the fatal 'O'
    qualifier; station 1 has no chlorophyll result at all.
    """
    rows = [
        (1, "Z1-CN-18001", "2018-05-01", "PRIMARY", "WATER", "pH", "7.2", "A"),
        (1, "Z1-CN-18001", "2018-05-01", "PRIMARY", "WATER", "Dissolved Oxygen", "8.1", None),
        (1, "Z1-CN-18001", "2018-05-01", "PRIMARY", "WATER", "Nitrite + Nitrate (as N)", "0.05", "U"),
        (2, "Z1-CN-18002", "2018-05-02", "PRIMARY", "WATER", "pH", "6.9", "Q"),
        (2, "Z1-CN-18002", "2018-05-02", "PRIMARY", "WATER", "Chlorophyll a- corrected", "3.4", "O"),
        (2, "Z1-CN-18002", "2018-05-02", "PRIMARY", "WATER", "Dissolved Oxygen", "5.0", "J"),
    ]
    return pd.DataFrame(rows, columns=RESULTS_HEADERS)


@pytest.fixture
def trend_frame() -> pd.DataFrame:
    """
    Trend pull where station 3506 reports nitrate twice on the same day.
    """
    rows = [
        (3506, "SPRING", 1, "GWTR01", "2020-01-15", "PRIMARY", "WATER", 10, "Temperature", "22.1", None, "deg C"),
        (3506, "SPRING", 2, "GWTR01", "2020-01-15", "PRIMARY", "WATER", 630, "Nitrate-Nitrite (N)", "1.2", None, "mg/L"),
        (3506, "SPRING", 3, "GWTR01", "2020-01-15", "PRIMARY", "WATER", 630, "Nitrate-Nitrite (N)", "1.3", "I", "mg/L"),
        (4001, "AQUIFER", 4, "GWTR01", "2020-02-10", "PRIMARY", "WATER", 10, "Temperature", "24.0", "T", "deg C"),
        (4001, "AQUIFER", 5, "GWTR01", "2020-02-10", "PRIMARY", "WATER", 665, "Phosphorus- Total", "0.04", "I", "mg/L"),
    ]
    return pd.DataFrame(rows, columns=TREND_HEADERS)


FDEP_SCHEMA = [
    "create table t_station (pk_station integer primary key, water_resource text, waterbody_type text, sampled_tv_stations text)",
    "create table t_project (pk_project text primary key, fk_super_project text)",
    "create table t_sample (pk_sample integer primary key, fk_station integer, fk_random_sample_location text, "
    "collection_date text, sample_type text, matrix text, fk_project text)",
    "create table t_parameter (pk_param_code integer primary key, parameter text)",
    "create table t_result (pk_result integer primary key, fk_sample integer, fk_param_code integer, "
    "value text, value_qualifier text, units text)",
    "create table site_evaluations (pk_random_sample_location text primary key, fk_project text, "
    "fk_well_listframe_id integer, nutrient_watershed_region text, sci_do_bioregion_2012 text)",
    "create table well_listframe (fl_id integer, listframe_year integer)",
]

FDEP_ROWS = {
    "t_station": [
        (3506, "SPRING", "SPRING", "N"),
        (4001, "AQUIFER", "AQUIFER", "A"),
        (5000, "AQUIFER", "AQUIFER", "N"),
    ],
    "t_project": [("FWCN18", "STATUS"), ("FWCN19", "STATUS"), ("GWTR01", "GW-TREND")],
    "t_sample": [
        (1, 1, "Z1-CN-18001", "2018-05-01", "PRIMARY", "WATER", "FWCN18"),
        (2, 2, "Z1-CN-19001", "2019-05-01", "PRIMARY", "WATER", "FWCN19"),
        (3, 3506, None, "2020-01-15", "PRIMARY", "WATER", "GWTR01"),
        (4, 4001, None, "2020-02-10", "PRIMARY", "WATER", "GWTR01"),
        (5, 5000, None, "2020-02-11", "PRIMARY", "WATER", "GWTR01"),
        (6, 4001, None, "2024-01-01", "PRIMARY", "WATER", "GWTR01"),
    ],
    "t_parameter": [(10, "Temperature"), (400, "pH"), (630, "Nitrate-Nitrite (N)"), (99982, "Sample Depth")],
    "t_result": [
        (1, 1, 400, "7.2", "A", "SU"),
        (2, 1, 630, "0.05", "U", "mg/L"),
        (3, 1, 99982, "0.5", None, "m"),
        (4, 2, 400, "6.5", None, "SU"),
        (5, 3, 10, "22.1", None, "deg C"),
        (6, 3, 630, "1.2", None, "mg/L"),
        (7, 3, 630, "1.3", "I", "mg/L"),
        (8, 4, 10, "24.0", "T", "deg C"),
        (9, 4, 630, None, None, "mg/L"),
        (10, 5, 10, "23.0", None, "deg C"),
        (11, 6, 10, "25.0", None, "deg C"),
    ],
    "site_evaluations": [
        ("Z1-CN-18001", "FWCN18", None, "PENINSULAR", "PANHANDLE"),
        ("Z1-CN-18002", "FWCN18", None, "ATLANTIS", "PENINSULA"),
        ("Z1-AQ-20001", "GWAQ20", 101, None, None),
        ("Z1-AQ-20002", "GWAQ20", 102, None, None),
    ],
    "well_listframe": [(101, 2020), (102, 2016)],
}


@pytest.fixture
def fdep_database(tmp_path) -> str:
    """
    SQLite copy of the monitoring tables; returns its SQLAlchemy URL.

    Results: FWCN18 holds pH and nitrate plus an excluded depth record.
    Trend: 3506 is pulled although not flagged, 5000 is not flagged, sample 6 is out of range.
    """
    from sqlalchemy import create_engine, text

    url = f"sqlite:///{tmp_path / 'fdep.db'}"
    engine = create_engine(url)
    with engine.begin() as connection:
        for statement in FDEP_SCHEMA:
            connection.execute(text(statement))
        for table, rows in FDEP_ROWS.items():
            placeholders = ", ".join(f":c{i}" for i in range(len(rows[0])))
            connection.execute(
                text(f"insert into {table} values ({placeholders})"),
                [{f"c{i}": v for i, v in enumerate(row)} for row in rows],
            )
    engine.dispose()
    return url
