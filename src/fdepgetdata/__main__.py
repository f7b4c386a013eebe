"""
Command-line interface for fdepgetdata.

Pulls status/trend network data (or reads a long table from disk), runs the
matching pipeline and writes the CSV exports named after the filters.
"""

import json
import logging
import pathlib
import sys
import typing

import click
from sqlalchemy.engine import make_url
from stairval.notepad import Notepad

from .audit import AuditEntry
from .errors import MissingInputError
from .loader import load_table
from .pipeline import GeneralResultsPipeline, TrendResultsPipeline
from .queries import (
    DATABASE_URL_ENV,
    SqlAlchemySource,
    as_code_list,
    fetch_results,
    fetch_site_evaluations,
    fetch_trend_results,
    fetch_well_removals,
)
from .sites import (
    DEFAULT_DISTANCE_M,
    DEFAULT_SITES_CRS,
    INTERSECTS,
    RESOURCE_CRITERIA,
    WITHIN_DISTANCE,
    SiteEvaluationPipeline,
    site_removal_bundle,
    well_removal_bundle,
)

logger = logging.getLogger(__name__)

database_url_option = click.option(
    "--database-url",
    envvar=DATABASE_URL_ENV,
    required=True,
    help=f"SQLAlchemy database URL (default: ${DATABASE_URL_ENV}); prompts for the password if the URL has none",
)
output_dir_option = click.option(
    "-o",
    "--output-dir",
    default=".",
    type=click.Path(file_okay=False),
    help="where to write the CSV exports (default: current directory)",
)
encoded_option = click.option(
    "--encoded/--native",
    default=False,
    help="Carry value|qualifier through the pivot as one string and split it afterwards (default: native pair pivot)",
)
report_json_option = click.option("-r", "--report-json", is_flag=True, help="Print step summaries, warnings and errors as JSON")


@click.group()
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def main(verbose_logging: bool, log_file_path: typing.Optional[str]):
    """fdepgetdata: pull, pivot and export FDEP monitoring results."""
    _configure_logging(verbose_logging, log_file_path)


@main.command(name="results")
@click.argument("project_codes", nargs=-1)
@database_url_option
@output_dir_option
@encoded_option
@report_json_option
def results(project_codes, database_url, output_dir, encoded, report_json):
    """
    Status network results for resource/year codes, e.g. `results CN18 CN19 CN20`.
    """
    codes = _or_exit(as_code_list, project_codes, "project codes")
    source = _connect(database_url)
    frame = fetch_results(source, codes)
    result = _or_exit(GeneralResultsPipeline(encoded=encoded).run, frame)
    _finish(result, output_dir, report_json, codes)


@main.command(name="trend-results")
@click.option("-w", "--water-resource", "water_resources", multiple=True, help="e.g. -w AQUIFER -w SPRING")
@click.option("-s", "--start-date", type=click.DateTime(formats=["%Y-%m-%d", "%d-%b-%Y"]), help="first collection date (inclusive)")
@click.option("-e", "--end-date", type=click.DateTime(formats=["%Y-%m-%d", "%d-%b-%Y"]), help="last collection date (inclusive)")
@database_url_option
@output_dir_option
@encoded_option
@report_json_option
def trend_results(water_resources, start_date, end_date, database_url, output_dir, encoded, report_json):
    """
    Trend network results, split into all data, duplicates, stacked and pivoted exports.
    """
    if not water_resources or start_date is None or end_date is None:
        _exit_with("ERROR - Missing input. Please supply three inputs: water resources, start date, end date.")
    start, end = start_date.date(), end_date.date()
    source = _connect(database_url)
    frame = fetch_trend_results(source, list(water_resources), start, end)
    result = _or_exit(TrendResultsPipeline(encoded=encoded).run, frame)
    _finish(result, output_dir, report_json, list(water_resources), start, end)


@main.command(name="site-evaluations")
@click.argument("project_codes", nargs=-1)
@click.option(
    "-k",
    "--kind",
    type=click.Choice(sorted(RESOURCE_CRITERIA)),
    default="fw",
    show_default=True,
    help="fw: TN/TP/DO criteria, lake: DO criteria, aq: none",
)
@database_url_option
@output_dir_option
@report_json_option
def site_evaluations(project_codes, kind, database_url, output_dir, report_json):
    """Site evaluations with regional criteria attached."""
    codes = _or_exit(as_code_list, project_codes, "project codes")
    source = _connect(database_url)
    frame = fetch_site_evaluations(source, codes)
    bundle = _or_exit(SiteEvaluationPipeline.for_resource(kind).run, frame)
    _finish(bundle, output_dir, report_json, codes)


@main.command(name="well-removals")
@click.argument("project_codes", nargs=-1)
@click.option("-y", "--listframe-year", required=True, type=int, help="year of the well list frame to compare against")
@database_url_option
@output_dir_option
@report_json_option
def well_removals(project_codes, listframe_year, database_url, output_dir, report_json):
    """Evaluated wells, wells no longer in the list frame, and the remaining evaluations."""
    codes = _or_exit(as_code_list, project_codes, "project codes")
    source = _connect(database_url)
    evaluations = fetch_site_evaluations(source, codes)
    removals = fetch_well_removals(source, listframe_year, codes)
    bundle = _or_exit(well_removal_bundle, evaluations, removals)
    _finish(bundle, output_dir, report_json, codes)


@main.command(name="site-removals")
@click.option(
    "-i",
    "--site-evaluations",
    "evaluations_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="site evaluation export (.csv or .xlsx)",
)
@click.option("-l", "--listframe", required=True, help="list frame layer name or file (shapefile, GeoPackage, GeoJSON)")
@click.option("--listframe-directory", default=".", type=click.Path(file_okay=False), help="folder holding the list frame")
@click.option(
    "-p",
    "--predicate",
    type=click.Choice([WITHIN_DISTANCE, INTERSECTS]),
    default=WITHIN_DISTANCE,
    show_default=True,
    help="within_distance for flowing waters lines, intersects for lake polygons",
)
@click.option("--distance", default=DEFAULT_DISTANCE_M, show_default=True, type=float, help="metres, within_distance only")
@click.option("--sites-crs", default=DEFAULT_SITES_CRS, show_default=True, type=int, help="EPSG code of the site coordinates")
@output_dir_option
@report_json_option
def site_removals(evaluations_path, listframe, listframe_directory, predicate, distance, sites_crs, output_dir, report_json):
    """Sites that are not co-located with the list frame coverage."""
    sites = load_table(evaluations_path)
    bundle, retained, codes = _or_exit(
        site_removal_bundle,
        sites,
        listframe,
        predicate,
        distance,
        sites_crs=sites_crs,
        listframe_directory=listframe_directory,
    )
    click.echo(f"{len(retained)} sites retained")
    _finish(bundle, output_dir, report_json, codes)


@main.command(name="pivot-file")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--pipeline",
    "pipeline_name",
    type=click.Choice(["results", "trend"]),
    default="results",
    show_default=True,
)
@click.option("-n", "--name", "names", multiple=True, help="filter text used to name the exports (repeatable)")
@output_dir_option
@encoded_option
@report_json_option
def pivot_file(input_path, pipeline_name, names, output_dir, encoded, report_json):
    """Run a results pipeline on a long table read from .csv or .xlsx."""
    frame = load_table(input_path)
    pipeline_class = TrendResultsPipeline if pipeline_name == "trend" else GeneralResultsPipeline
    result = _or_exit(pipeline_class(encoded=encoded).run, frame)
    _finish(result, output_dir, report_json, list(names) or pathlib.Path(input_path).stem)


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _exit_with(message: str) -> typing.NoReturn:
    click.echo(message, err=True)
    sys.exit(1)


def _or_exit(function: typing.Callable, *args, **kwargs):
    # validation failures end the command before anything is written
    try:
        return function(*args, **kwargs)
    except MissingInputError as e:
        _exit_with(f"ERROR - {e}")


def _connect(database_url: str) -> SqlAlchemySource:
    url = make_url(database_url)
    password = None
    if url.password is None and url.username:
        password = click.prompt(f"Password for {url.username}", hide_input=True)
    return SqlAlchemySource.from_url(database_url, password=password)


def _report_steps(audit: list[AuditEntry]) -> None:
    indent = "  "
    for entry in audit:
        line = f"{entry.step:20} {entry.table:20} {entry.message}"
        if entry.level == "error":
            colored = click.style(line, fg="red")
        elif entry.level in ("warn", "warning"):
            colored = click.style(line, fg="yellow")
        else:
            colored = click.style(line, fg="cyan")
        click.echo(indent + colored)


def _report_issues(notepad: Notepad) -> None:
    # errors first, then warnings; neither stops the export
    if notepad.has_errors(include_subsections=True):
        click.echo(click.style("Errors found:", fg="red"))
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    if notepad.has_warnings(include_subsections=True):
        click.echo(click.style("Warnings found:", fg="yellow"))
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


def _finish(result, output_dir: str, report_json: bool, *filters) -> None:
    written = result.write(output_dir, *filters)
    if report_json:
        report = {
            "steps": [entry._asdict() for entry in result.audit],
            "warnings": [w.message for w in result.notepad.warnings()],
            "errors": [e.message for e in result.notepad.errors()],
        }
        click.echo(json.dumps(report, indent=2))
        return
    _report_steps(result.audit)
    _report_issues(result.notepad)
    for path in written:
        click.echo(f"Wrote {path}")


if __name__ == "__main__":
    main()
