# settings.py
import logging
from pathlib import Path
from typing import Optional

from dynaconf import Dynaconf, Validator

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = Path("config/settings.toml")

DNS_QUERY_FILTER = "dns.flags.response == 0 && !dns.qry.name.len == 0"

VALIDATORS = [
    Validator("general.scanner_type", default="nmap", is_type_of=str),
    Validator("general.json_file", default="NmapLog.json", is_type_of=str),
    Validator("general.scan_interval", default=60, is_type_of=int, gt=0),
    Validator("nmap.target", default="192.168.1.0/24", is_type_of=str),
    Validator("nmap.ports", default="22,80,443"),
    Validator("nmap.use_sudo", default=True, is_type_of=bool),
    Validator("nmap.timeout", default=600, is_type_of=int, gt=0),
    Validator("capture.interface", default="wlo1", is_type_of=str),
    Validator("capture.display_filter", default=DNS_QUERY_FILTER, is_type_of=str),
    Validator("capture.log_file", default="TsharkLog.json", is_type_of=str),
    Validator("capture.use_sudo", default=True, is_type_of=bool),
    Validator("capture.resolve_timeout", default=30, is_type_of=int, gt=0),
]


def load_config(settings_file: Optional[Path] = None) -> Dynaconf:
    """Loads the settings file, applying defaults and NETMON_ environment overrides.

    Raises:
        dynaconf.ValidationError: if a setting has an invalid value.
    """
    settings_file = Path(settings_file or DEFAULT_SETTINGS_FILE)
    if not settings_file.exists():
        logger.warning("Settings file %s not found. Using defaults.", settings_file)

    config = Dynaconf(
        settings_files=[str(settings_file)],
        envvar_prefix="NETMON",
        validators=VALIDATORS,
    )
    config.validators.validate()
    return config
