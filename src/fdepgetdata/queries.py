"""
Database pulls.

Filters are always sent as bound parameters (lists as expanding IN
parameters); nothing from the caller is pasted into SQL text. Connection
and query errors from SQLAlchemy propagate unchanged.

Environment
-----------
FDEP_DATABASE_URL : SQLAlchemy URL used by the CLI when --database-url is not given
"""

import abc
import datetime
import logging
import typing

import pandas as pd
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine, make_url

from .errors import MissingInputError
from .naming import canonical_name
from .qualifiers import is_null

logger = logging.getLogger(__name__)

DATABASE_URL_ENV = "FDEP_DATABASE_URL"

# Parameter code excluded from every results pull
EXCLUDED_PARAM_CODE = 99982
TREND_SUPER_PROJECTS = ("GW-TREND", "SW-TREND")
# Trend stations pulled regardless of their SAMPLED_TV_STATIONS flag
EXTRA_TREND_STATIONS = (3506, 3561, 3570)

RESULTS_SQL = """
select fk_station, fk_random_sample_location, collection_date, sample_type, s.matrix,
       parameter, value, value_qualifier
  from t_sample s, t_parameter p, t_result r
 where pk_sample = fk_sample
   and pk_param_code = fk_param_code
   and fk_param_code <> :excluded_param_code
   and substr(fk_project, 3, 4) in :project_codes
"""

TREND_RESULTS_SQL = """
select pk_station, water_resource, pk_result, fk_project, collection_date, sample_type,
       t_sample.matrix, t_result.fk_param_code, parameter, value, value_qualifier, units
  from t_station, t_sample, t_parameter, t_result, t_project
 where pk_station = fk_station
   and pk_sample = fk_sample
   and pk_param_code = fk_param_code
   and pk_project = fk_project
   and t_station.waterbody_type in :water_resources
   and t_sample.sample_type = 'PRIMARY'
   and t_sample.collection_date >= :start_date
   and t_sample.collection_date <= :end_date
   and t_project.fk_super_project in :super_projects
   and t_result.value is not null
   and t_result.fk_param_code <> :excluded_param_code
   and (sampled_tv_stations = 'A' or pk_station in :extra_stations)
"""

SITE_EVALUATIONS_SQL = """
select * from site_evaluations
 where substr(fk_project, 3, 4) in :project_codes
 order by pk_random_sample_location
"""

WELL_REMOVALS_SQL = """
select * from site_evaluations
 where substr(fk_project, 3, 4) in :project_codes
   and fk_well_listframe_id not in (select distinct fl_id from well_listframe
                                     where listframe_year = :listframe_year)
 order by pk_random_sample_location
"""


def as_code_list(codes: typing.Any, argument: str) -> list[str]:
    """
    Accept "'CN18','CN19'", "CN18,CN19" or ["CN18", "CN19"]; raise
    MissingInputError when nothing usable is left.
    """
    if codes is None:
        raise MissingInputError(f"Missing input: {argument}")
    if isinstance(codes, str):
        codes = codes.split(",")
    cleaned = [str(c).strip().strip("'\"").strip() for c in codes]
    cleaned = [c for c in cleaned if c]
    if not cleaned:
        raise MissingInputError(f"Missing input: {argument}")
    return cleaned


def _require(value: typing.Any, argument: str) -> typing.Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingInputError(f"Missing input: {argument}")
    return value


class QuerySource(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def fetch(self, sql: str, params: dict[str, typing.Any]) -> pd.DataFrame:
        # return the result set with upper-case column headers
        raise NotImplementedError


class SqlAlchemySource(QuerySource):
    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: str, password: str | None = None) -> "SqlAlchemySource":
        parsed = make_url(url)
        if password is not None:
            parsed = parsed.set(password=password)
        return cls(create_engine(parsed))

    def fetch(self, sql: str, params: dict[str, typing.Any]) -> pd.DataFrame:
        statement = text(sql)
        expanding = [bindparam(name, expanding=True) for name, value in params.items() if isinstance(value, (list, tuple))]
        if expanding:
            statement = statement.bindparams(*expanding)
        with self.engine.connect() as connection:
            frame = pd.read_sql_query(statement, connection, params=params)
        frame.columns = [str(c).upper() for c in frame.columns]
        logger.info(f"Fetched {len(frame)} rows")
        return frame


def _canonical_parameters(frame: pd.DataFrame) -> pd.DataFrame:
    if "PARAMETER" in frame.columns:
        frame["PARAMETER"] = frame["PARAMETER"].map(lambda name: None if is_null(name) else canonical_name(name))
    return frame


def fetch_results(source: QuerySource, project_codes: typing.Any) -> pd.DataFrame:
    """Status network results for the given resource/year codes (e.g. ['CN18', 'CN19'])."""
    params = {
        "project_codes": as_code_list(project_codes, "project codes"),
        "excluded_param_code": EXCLUDED_PARAM_CODE,
    }
    return _canonical_parameters(source.fetch(RESULTS_SQL, params))


def fetch_trend_results(
    source: QuerySource,
    water_resources: typing.Any,
    start_date: datetime.date | None,
    end_date: datetime.date | None,
) -> pd.DataFrame:
    """Trend network results; both dates are inclusive."""
    params = {
        "water_resources": as_code_list(water_resources, "water resources"),
        "start_date": _require(start_date, "start date"),
        "end_date": _require(end_date, "end date"),
        "super_projects": list(TREND_SUPER_PROJECTS),
        "excluded_param_code": EXCLUDED_PARAM_CODE,
        "extra_stations": list(EXTRA_TREND_STATIONS),
    }
    return _canonical_parameters(source.fetch(TREND_RESULTS_SQL, params))


def fetch_site_evaluations(source: QuerySource, project_codes: typing.Any) -> pd.DataFrame:
    params = {"project_codes": as_code_list(project_codes, "project codes")}
    return source.fetch(SITE_EVALUATIONS_SQL, params)


def fetch_well_removals(source: QuerySource, listframe_year: typing.Any, project_codes: typing.Any) -> pd.DataFrame:
    """Evaluated wells that are absent from the well list frame of `listframe_year`."""
    params = {
        "listframe_year": _require(listframe_year, "list frame year"),
        "project_codes": as_code_list(project_codes, "project codes"),
    }
    return source.fetch(WELL_REMOVALS_SQL, params)
