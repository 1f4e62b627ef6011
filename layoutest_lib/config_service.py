import configparser
import logging
import os
from typing import Dict

log = logging.getLogger("layoutest.config")

DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".layoutest", "layoutest.cfg")

# Every value is stored as text; RunOptions.from_settings() does the typing.
DEFAULT_SETTINGS: Dict[str, Dict[str, str]] = {
    "Pipeline": {
        "pipeline_dir": "",
        "data_dir": "",
    },
    "Stages": {
        "plan_beacons": "true",
        "plan_heat_pipes": "true",
        "plan_power_poles": "true",
    },
    "Diagnostics": {
        "trace_line": "",
        "soft_deadline": "5.0",
    },
    "Render": {
        "width": "1200",
        "height": "900",
    },
}


class ConfigService:
    """Reads and writes the harness settings file (layoutest.cfg)."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = config_path

    def _parser(self) -> configparser.ConfigParser:
        config = configparser.ConfigParser()
        config.read_dict(DEFAULT_SETTINGS)
        return config

    def get_settings(self) -> Dict[str, Dict[str, str]]:
        """Returns the stored settings over the defaults; writes the file if missing."""
        config = self._parser()
        if not config.read(self.config_path, encoding="utf-8"):
            log.info("No settings at %s, writing the defaults.", self.config_path)
            self.save_settings(DEFAULT_SETTINGS)
        else:
            log.debug("Loaded settings from %s", self.config_path)
        return {section: dict(config[section]) for section in config.sections()}

    def save_settings(self, settings: Dict[str, Dict[str, object]]):
        """Writes the given sections; values are stored as text."""
        config = configparser.ConfigParser()
        config.read_dict({s: {k: str(v) for k, v in values.items()} for s, values in settings.items()})
        directory = os.path.dirname(self.config_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                config.write(f)
        except OSError as e:
            log.error("Failed to write settings to %s: %s", self.config_path, e)
            return
        log.info("Settings saved to %s", self.config_path)
