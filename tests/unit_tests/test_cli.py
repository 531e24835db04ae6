from pathlib import Path

import yaml
from typer.testing import CliRunner

import proteoqc
from proteoqc.cli import app
from proteoqc.metrics.registry import ALL_UNITS

runner = CliRunner()


def test_init_writes_default_config(tmp_path):
    path = tmp_path / "config.yaml"
    result = runner.invoke(app, ["init", str(path)])
    assert result.exit_code == 0, result.output

    config = yaml.safe_load(path.read_text())
    assert config["thresholds"]["id_rate_bad"] == 20
    assert len(config["metrics"]) == len(ALL_UNITS)


def test_init_default_path(tmp_path):
    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0, result.output
        assert Path("proteoqc_config.yaml").is_file()


def test_run_requires_exactly_one_input(tmp_path):
    assert runner.invoke(app, ["run"]).exit_code != 0
    result = runner.invoke(app, ["run", "--txt-folder", str(tmp_path), "--mztab-file", str(tmp_path / "a.mzTab")])
    assert result.exit_code != 0


def test_run_missing_folder_exits_with_error(tmp_path):
    result = runner.invoke(app, ["run", "--txt-folder", str(tmp_path / "nope")])
    assert result.exit_code == 1


def test_run_on_txt_folder(txt_folder_minimal, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(yaml.safe_dump({"report": {"extended_filename": False}}))
    result = runner.invoke(app, ["run", "--txt-folder", txt_folder_minimal, "--config", str(config)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "txt" / f"report_v{proteoqc.__version__}.pdf").is_file()
