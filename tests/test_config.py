import configparser

from layoutest_lib.config_service import ConfigService
from layoutest_lib.runner import RunOptions


def test_missing_config_is_created_with_defaults(tmp_path):
    path = tmp_path / "settings" / "layoutest.cfg"

    settings = ConfigService(str(path)).get_settings()

    assert path.exists()
    assert settings["Stages"]["plan_beacons"] == "true"
    assert settings["Render"] == {"width": "1200", "height": "900"}
    parser = configparser.ConfigParser()
    parser.read(path)
    assert parser["Diagnostics"]["soft_deadline"] == "5.0"


def test_saved_settings_override_defaults(tmp_path):
    path = str(tmp_path / "layoutest.cfg")
    service = ConfigService(path)
    service.save_settings(
        {
            "Pipeline": {"pipeline_dir": "/srv/mod"},
            "Stages": {"plan_heat_pipes": False},
            "Diagnostics": {"trace_line": 120},
        }
    )

    settings = service.get_settings()
    options = RunOptions.from_settings(settings)

    assert settings["Render"]["width"] == "1200"
    assert options.pipeline_dir == "/srv/mod"
    assert options.data_dir is None
    assert options.plan_heat_pipes is False
    assert options.plan_beacons is True
    assert options.trace_line == 120
