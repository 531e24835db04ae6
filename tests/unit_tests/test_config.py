import pytest
import yaml

from proteoqc.exceptions import ConfigError, UnsupportedOutputFormatError
from proteoqc.metrics.registry import ALL_UNITS, build_registry
from proteoqc.workflow.config import DEFAULTS, QCConfig


def test_defaults_are_used_without_user_config():
    config = QCConfig()
    assert config.threshold("id_rate_bad") == 20
    assert config.threshold("evd_precursor_tol_ppm_main_search") == 4.5
    assert config.output_formats() == ["plainPDF"]
    assert config.get("input.load_method") == "polars"


def test_user_values_override_defaults_and_unknown_keys_are_ignored():
    config = QCConfig({"thresholds": {"id_rate_great": 50}, "no_such_section": {"x": 1}})
    assert config.threshold("id_rate_great") == 50
    assert config.threshold("id_rate_bad") == 20


def test_resolved_config_contains_every_section(tmp_path):
    config = QCConfig({"thresholds": {"pg_intensity": 22}})
    build_registry(config)
    path = tmp_path / "config.yaml"
    config.write_yaml(path)

    written = yaml.safe_load(path.read_text())
    for section, values in DEFAULTS.items():
        assert section in written
        if section != "contaminants":
            assert set(values) <= set(written[section])
    assert written["thresholds"]["pg_intensity"] == 22
    assert set(written["metrics"]) == {cls.metric_id for cls in ALL_UNITS}
    assert "no_such_section" not in written


def test_written_config_reads_back_identically(tmp_path):
    config = QCConfig({"report": {"output_formats": "plainPDF html"}})
    build_registry(config)
    path = tmp_path / "config.yaml"
    config.write_yaml(path)

    again = QCConfig.from_yaml(path)
    build_registry(again)
    assert again.to_dict() == config.to_dict()


@pytest.mark.parametrize(
    "formats, expected",
    [
        ("plainPDF", ["plainPDF"]),
        ("plainPDF, html", ["plainPDF", "html"]),
        (["html"], ["html"]),
        ("", []),
    ],
)
def test_output_formats(formats, expected):
    assert QCConfig({"report": {"output_formats": formats}}).output_formats() == expected


def test_unsupported_output_format_raises_early():
    with pytest.raises(UnsupportedOutputFormatError):
        QCConfig({"report": {"output_formats": "plainPDF docx"}})


def test_unknown_load_method_raises():
    with pytest.raises(ConfigError):
        QCConfig({"input": {"load_method": "excel"}})


def test_config_must_be_a_mapping():
    with pytest.raises(ConfigError):
        QCConfig(["not", "a", "dict"])


def test_contaminants():
    assert QCConfig().contaminants() == {"cont_MYCO": {"pattern": "MYCOPLASMA", "threshold": 1.0}}
    assert QCConfig({"contaminants": {}}).contaminants() == {}
    assert QCConfig({"contaminants": {"cont_X": ["ECOLI", 2]}}).contaminants() == {
        "cont_X": {"pattern": "ECOLI", "threshold": 2.0}
    }


def test_metrics_can_be_disabled():
    config = QCConfig({"metrics": {"pg_pca": {"enabled": False}}})
    registry = build_registry(config)
    assert "pg_pca" not in registry
    assert len(registry) == len(ALL_UNITS) - 1
