"""
CLI runs through click's CliRunner against a SQLite database and files in tmp_path.
"""

import json

import pandas as pd
from click.testing import CliRunner
from stairval.notepad import create_notepad

from fdepgetdata.__main__ import _report_issues, main


def test_results_command_writes_exports(fdep_database, tmp_path):
    out = tmp_path / "out"
    runner = CliRunner()
    res = runner.invoke(main, ["results", "CN18", "--database-url", fdep_database, "-o", str(out)])
    assert res.exit_code == 0, res.output
    assert sorted(p.name for p in out.iterdir()) == ["CN18_Results.csv", "CN18_Results_Stacked.csv"]
    wide = pd.read_csv(out / "CN18_Results.csv")
    assert set(wide.columns[-4:]) == {"pH", "pH_VQ", "Nitrate_Nitrite_N", "Nitrate_Nitrite_N_VQ"}
    assert "Wrote" in res.output


def test_database_url_from_environment(fdep_database, tmp_path):
    runner = CliRunner(env={"FDEP_DATABASE_URL": fdep_database})
    res = runner.invoke(main, ["results", "CN18", "-o", str(tmp_path), "--encoded"])
    assert res.exit_code == 0, res.output


def test_trend_results_missing_input_exits_with_message(fdep_database, tmp_path):
    runner = CliRunner()
    out = tmp_path / "out"
    res = runner.invoke(main, ["trend-results", "-w", "AQUIFER", "--database-url", fdep_database, "-o", str(out)])
    assert res.exit_code == 1
    assert "Missing input" in res.output
    assert not out.exists()


def test_results_without_codes_exits(fdep_database, tmp_path):
    res = CliRunner().invoke(main, ["results", "--database-url", fdep_database, "-o", str(tmp_path)])
    assert res.exit_code == 1
    assert "project codes" in res.output


def test_pivot_file_report_json(results_frame, tmp_path):
    path = tmp_path / "canals.csv"
    results_frame.to_csv(path, index=False)
    out = tmp_path / "out"
    res = CliRunner().invoke(main, ["pivot-file", str(path), "-n", "CN18", "-o", str(out), "--report-json"])
    assert res.exit_code == 0, res.output
    report = json.loads(res.stdout)
    assert {entry["step"] for entry in report["steps"]} >= {"load", "qualifier-filter", "pivot"}
    assert report["warnings"] == [] and report["errors"] == []
    assert (out / "CN18_Results.csv").exists()


def test_pivot_file_rejects_incomplete_table(results_frame, tmp_path):
    path = tmp_path / "partial.csv"
    results_frame.drop(columns=["VALUE_QUALIFIER"]).to_csv(path, index=False)
    res = CliRunner().invoke(main, ["pivot-file", str(path), "-o", str(tmp_path)])
    assert res.exit_code == 1
    assert "VALUE_QUALIFIER" in res.output


def test_verbose_logging_to_file(results_frame, tmp_path):
    path = tmp_path / "canals.csv"
    results_frame.to_csv(path, index=False)
    log_file = tmp_path / "run.log"
    res = CliRunner().invoke(
        main, ["--log-file-path", str(log_file), "pivot-file", str(path), "-o", str(tmp_path / "out")]
    )
    assert res.exit_code == 0, res.output
    assert "qualifier" in log_file.read_text()


def test_trend_results_command(fdep_database, tmp_path):
    out = tmp_path / "out"
    res = CliRunner().invoke(
        main,
        [
            "trend-results",
            "-w", "AQUIFER",
            "-w", "SPRING",
            "-s", "1998-10-01",
            "-e", "31-DEC-2022",
            "--database-url", fdep_database,
            "-o", str(out),
        ],
    )
    assert res.exit_code == 0, res.output
    duplicates = pd.read_csv(out / "AQUIFER_SPRING_01-OCT-1998_31-DEC-2022_DUPLICATES.csv")
    assert sorted(duplicates["PK_RESULT"]) == [6, 7]


def test_site_evaluations_command(fdep_database, tmp_path):
    res = CliRunner().invoke(
        main, ["site-evaluations", "CN18", "-k", "fw", "--database-url", fdep_database, "-o", str(tmp_path), "-r"]
    )
    assert res.exit_code == 0, res.output
    sites = pd.read_csv(tmp_path / "CN18_Sites.csv")
    assert sites["TN_NNC"].tolist()[0] == 1.54
    assert pd.isna(sites["TN_NNC"].tolist()[1])
    assert sites["DO_Conc"].tolist() == [67, 38]
    report = json.loads(res.stdout)
    assert any("ATLANTIS" in message for message in report["warnings"])


def test_well_removals_command(fdep_database, tmp_path):
    res = CliRunner().invoke(
        main, ["well-removals", "AQ20", "-y", "2020", "--database-url", fdep_database, "-o", str(tmp_path)]
    )
    assert res.exit_code == 0, res.output
    removals = pd.read_csv(tmp_path / "AQ20_well_removals.csv")
    remaining = pd.read_csv(tmp_path / "AQ20_SiteEvaluations.csv")
    assert removals["PK_RANDOM_SAMPLE_LOCATION"].tolist() == ["Z1-AQ-20002"]
    assert remaining["PK_RANDOM_SAMPLE_LOCATION"].tolist() == ["Z1-AQ-20001"]


def test_site_removals_command(tmp_path):
    import geopandas as gpd
    from shapely.geometry import LineString

    sites_path = tmp_path / "sites.csv"
    pd.DataFrame(
        {
            "PK_RANDOM_SAMPLE_LOCATION": ["Z1-CN-18001", "Z3-CN-18002"],
            "RANDOM_LATITUDE": [302630, 290000],
            "RANDOM_LONGITUDE": [841650, 820000],
        }
    ).to_csv(sites_path, index=False)
    gpd.GeoDataFrame(
        geometry=[LineString([(-84.280556, 30.40), (-84.280556, 30.50)])], crs=4269
    ).to_file(tmp_path / "streams.geojson", driver="GeoJSON")

    out = tmp_path / "out"
    res = CliRunner().invoke(
        main,
        [
            "site-removals",
            "-i", str(sites_path),
            "-l", "streams.geojson",
            "--listframe-directory", str(tmp_path),
            "-o", str(out),
        ],
    )
    assert res.exit_code == 0, res.output
    assert "1 sites retained" in res.output
    removed = pd.read_csv(out / "CN_SITES_NOT_WITHIN_50M.csv")
    assert removed["PK_RANDOM_SAMPLE_LOCATION"].tolist() == ["Z3-CN-18002"]


def test_report_issues_prints_errors_and_warnings(capsys):
    notepad = create_notepad("report")
    notepad.add_warning("2 results share PK_STATION=3506")
    notepad.add_error("unreadable row")
    _report_issues(notepad)
    out = capsys.readouterr().out
    assert "Warnings found" in out and "2 results share PK_STATION=3506" in out
    assert "Errors found" in out and "unreadable row" in out


def test_trend_results_reports_duplicates(fdep_database, tmp_path):
    res = CliRunner().invoke(
        main,
        [
            "trend-results",
            "-w", "SPRING",
            "-s", "1998-10-01",
            "-e", "2022-12-31",
            "--database-url", fdep_database,
            "-o", str(tmp_path / "out"),
        ],
    )
    assert res.exit_code == 0, res.output
    assert "Warnings found" in res.output
    assert "PK_STATION=3506" in res.output
