from __future__ import annotations

import importlib.util
import json
from pathlib import Path
from unittest.mock import patch

import matplotlib
import pandas as pd
import pytest

import fioplot.report
from fioplot.config import ReportConfig
from fioplot.errors import IOFailure, NoComparableData
from fioplot.records.pivots import MetricKind
from fioplot.report import build_report, ensure_dir, make_results_dir

matplotlib.use("Agg")

REPO_ROOT = Path(__file__).resolve().parent.parent


def _write_json(path: Path, payload: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload))


def _job(bs: str, bw: int, **logs: str) -> dict[str, object]:
    return {
        "jobname": f"write-{bs}",
        "groupid": 0,
        "job options": {"rw": "write", "bs": bs, "iodepth": "8", "numjobs": "2", **logs},
        "write": {
            "bw": bw,
            "bw_min": bw // 2,
            "bw_max": bw * 2,
            "iops_min": 10,
            "iops_max": 40,
            "lat_ns": {"min": 1_000_000, "max": 5_000_000, "stddev": 250_000.0},
            "clat_ns": {"percentile": {"99.000000": 4_000_000}},
        },
    }


def _make_catalog(root: Path) -> Path:
    _write_json(
        root / "sata.json",
        {
            "fio version": "fio-3.36",
            "global options": {"ioengine": "libaio"},
            "jobs": [_job("64k", 102400, write_bw_log="w", write_iops_log="w"), _job("4k", 4096)],
        },
    )
    _write_json(root / "nvme.json", {"jobs": [_job("64k", 409600)]})
    log_dir = root / "sata"
    log_dir.mkdir()
    (log_dir / "w_bw.1.log").write_text("1000, 51200, 1, 0\n2000, 51200, 1, 0\n")
    (log_dir / "w_bw.2.log").write_text("1000, 51200, 1, 0\n2000, 51200, 1, 0\n")
    return root


def test_build_report_end_to_end(tmp_path: Path):
    catalog = _make_catalog(tmp_path / "catalog")
    config = ReportConfig(
        name="cmp",
        catalog=catalog,
        output_root=tmp_path / "out",
        log_graphs=True,
        keep_merged_logs=True,
        metrics=("performance", "lat_p99"),
    )
    result = build_report(config)
    out = tmp_path / "out" / "cmp"

    assert result.out_dir == out
    assert result.errors == []
    assert result.failures == ()
    assert [p.name for p in result.csv_paths] == ["nvme.csv", "sata.csv"]
    assert len(pd.read_csv(out / "csv-tables" / "sata.csv")) == 2

    assert result.workbook_path == out / "cmp.xlsx"
    perf = pd.read_excel(result.workbook_path, sheet_name="Performance", index_col=0)
    assert list(perf.columns) == ["nvme", "sata"]
    assert perf.loc["write-64k d=8 j=2", "nvme"] == pytest.approx(400 * 1.049)
    sheets = pd.ExcelFile(result.workbook_path).sheet_names
    assert sheets == ["Performance", "Latency_p99", "Bars"]

    assert out / "bar-charts" / "Performance.png" in result.chart_paths
    assert (out / "bar-charts" / "Latency_p99" / "write-64k d=8 j=2.png").is_file()
    assert all(p.is_file() for p in result.chart_paths)

    assert result.log_chart_paths == [out / "log-graphs" / "sata-log-graphs" / "bw" / "bw-w.png"]
    assert result.log_chart_paths[0].is_file()
    merged = out / "merged-logs" / "sata" / "w_bw.log"
    assert merged.read_text() == "1000, 102400, 1, 0\n2000, 102400, 1, 0\n"


def test_build_report_svg_without_logs(tmp_path: Path):
    catalog = _make_catalog(tmp_path / "catalog")
    config = ReportConfig(
        name="cmp", catalog=catalog, output_root=tmp_path, img_format="svg", metrics=("iops_max",)
    )
    result = build_report(config)
    assert result.log_chart_paths == []
    assert not (result.out_dir / "log-graphs").exists()
    assert (result.out_dir / "bar-charts" / "IOPS_max_value.svg").is_file()


def test_results_dir_is_never_reused(tmp_path: Path):
    first = make_results_dir(tmp_path, "cmp")
    second = make_results_dir(tmp_path, "cmp")
    assert first == tmp_path / "cmp"
    assert second == tmp_path / "cmp-1"
    assert second.is_dir()


def test_build_report_nothing_parsed_removes_dir(tmp_path: Path):
    catalog = tmp_path / "catalog"
    catalog.mkdir()
    (catalog / "broken.json").write_text("fio: no output")
    config = ReportConfig(name="cmp", catalog=catalog, output_root=tmp_path / "out")
    with pytest.raises(NoComparableData):
        build_report(config)
    assert not (tmp_path / "out" / "cmp").exists()


def test_build_report_no_common_patterns_keeps_csv(tmp_path: Path):
    catalog = tmp_path / "catalog"
    _write_json(catalog / "a.json", {"jobs": [_job("4k", 1024)]})
    _write_json(catalog / "b.json", {"jobs": [_job("1m", 1024)]})
    config = ReportConfig(name="cmp", catalog=catalog, output_root=tmp_path / "out")
    with pytest.raises(NoComparableData):
        build_report(config)
    assert sorted(p.name for p in (tmp_path / "out" / "cmp" / "csv-tables").iterdir()) == [
        "a.csv",
        "b.csv",
    ]


def test_config_from_yaml_with_overrides(tmp_path: Path):
    path = tmp_path / "report.yaml"
    path.write_text(
        "name: weekly\n"
        f"catalog: {tmp_path}\n"
        "img_format: svg\n"
        "metrics: [performance, bw_max]\n"
    )
    config = ReportConfig.from_yaml(path, img_format="png", description=None)
    assert config.name == "weekly"
    assert config.catalog == tmp_path
    assert config.img_format == "png"
    assert config.description == "fioplot"
    assert config.metrics == (MetricKind.PERFORMANCE, MetricKind.BW_MAX)


@pytest.mark.parametrize(
    "raw",
    [
        {"name": "x", "catalog": ".", "img_format": "jpg"},
        {"name": "x", "catalog": ".", "colour": "red"},
        {"name": "", "catalog": "."},
        {"catalog": "."},
        {"name": "x", "catalog": ".", "metrics": ["throughput"]},
        {"name": "x", "catalog": ".", "metrics": []},
    ],
)
def test_invalid_config(raw: dict[str, object]):
    with pytest.raises(ValueError):
        ReportConfig.from_mapping(raw)


def test_config_rejects_non_mapping_yaml(tmp_path: Path):
    path = tmp_path / "report.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        ReportConfig.from_yaml(path)


def _load_cli():
    spec = importlib.util.spec_from_file_location(
        "build_report", REPO_ROOT / "reporting" / "build_report.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_builds_report(tmp_path: Path):
    cli = _load_cli()
    catalog = _make_catalog(tmp_path / "catalog")
    code = cli.main(
        ["-n", "cli", "-c", str(catalog), "-f", "svg", "-l", "--out-root", str(tmp_path / "out")]
    )
    assert code == 0
    out = tmp_path / "out" / "cli"
    assert (out / "cli.xlsx").is_file()
    assert (out / "log-graphs" / "sata-log-graphs" / "bw" / "bw-w.svg").is_file()
    assert not (out / "merged-logs").exists()


def test_cli_reports_failure(tmp_path: Path):
    cli = _load_cli()
    (tmp_path / "catalog").mkdir()
    assert cli.main(["-n", "cli", "-c", str(tmp_path / "catalog")]) == 1
    assert cli.main(["-c", str(tmp_path / "catalog")]) == 2


def test_cli_reads_config_file(tmp_path: Path):
    cli = _load_cli()
    catalog = _make_catalog(tmp_path / "catalog")
    cfg = tmp_path / "report.yaml"
    cfg.write_text(f"name: from-yaml\ncatalog: {catalog}\nmetrics: [lat_max]\n")
    assert cli.main(["--config", str(cfg), "--out-root", str(tmp_path / "out")]) == 0
    assert pd.ExcelFile(tmp_path / "out" / "from-yaml" / "from-yaml.xlsx").sheet_names == [
        "Latency_max_value",
        "Bars",
    ]


def test_cli_rejects_missing_or_invalid_config_file(tmp_path: Path):
    cli = _load_cli()
    assert cli.main(["--config", str(tmp_path / "missing.yaml")]) == 2
    bad = tmp_path / "bad.yaml"
    bad.write_text("name: [unclosed\n")
    assert cli.main(["--config", str(bad)]) == 2


def test_ensure_dir_wraps_os_errors(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    assert ensure_dir(tmp_path / "a" / "b") == tmp_path / "a" / "b"
    assert (tmp_path / "a" / "b").is_dir()
    with pytest.raises(IOFailure) as excinfo:
        ensure_dir(blocker / "sub")
    assert excinfo.value.path == blocker / "sub"
    assert isinstance(excinfo.value.__cause__, OSError)


def test_build_report_chart_dir_failure_is_recorded(tmp_path: Path):
    catalog = _make_catalog(tmp_path / "catalog")
    real_ensure_dir = fioplot.report.ensure_dir

    def _deny_bar_charts(path: Path) -> Path:
        if path.name == "bar-charts":
            raise IOFailure(f"Could not create directory {path}: denied", path)
        return real_ensure_dir(path)

    config = ReportConfig(name="cmp", catalog=catalog, output_root=tmp_path / "out")
    with patch("fioplot.report.ensure_dir", side_effect=_deny_bar_charts):
        result = build_report(config)
    assert result.chart_paths == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("bar charts:")
    assert result.workbook_path is not None
    assert len(result.csv_paths) == 2


def test_build_report_csv_dir_failure_raises(tmp_path: Path):
    catalog = _make_catalog(tmp_path / "catalog")
    real_ensure_dir = fioplot.report.ensure_dir

    def _deny_csv(path: Path) -> Path:
        if path.name == "csv-tables":
            raise IOFailure(f"Could not create directory {path}: denied", path)
        return real_ensure_dir(path)

    config = ReportConfig(name="cmp", catalog=catalog, output_root=tmp_path / "out")
    with patch("fioplot.report.ensure_dir", side_effect=_deny_csv):
        with pytest.raises(IOFailure):
            build_report(config)
