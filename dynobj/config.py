"""
Configuration management for dynobj.

Loads config.yaml from the dynobj home directory. The home directory is
$DYNOBJ_HOME when set, ~/.config/dynobj otherwise.

Every field has a default, so components accept config=None and fall back
to DynObjConfig(). The pids default to the names used by the datenverteiler
data model.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from dynobj.errors import ConfigError


UNEVALUABLE_POLICIES = ("retain", "clear")


def get_dynobj_home() -> Path:
    """Return the directory holding config.yaml."""
    home = os.environ.get("DYNOBJ_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/dynobj").expanduser()


@dataclass(frozen=True)
class DynObjConfig:
    """
    Settings read once when a registry is built.

    Attributes:
        fallback_type_pid: Generic "any dynamic object" type, used as the
            second lookup key when a type has no entry of its own
        authority_attribute_group: Attribute group holding the configuring
            properties of the configuration authority
        default_area_attribute: Attribute inside that group listing the
            default area pid(s); the first one wins
        assignment_attribute_group: Attribute group of the assignment feed
        assignment_aspect: Aspect of the assignment feed
        unevaluable_policy: "retain" keeps the previous table when an update
            cannot be evaluated, "clear" installs an empty one
        log_level: Level applied to the dynobj logger by configure_logging()
        env_file: Optional dotenv file loaded by load_config()
    """
    fallback_type_pid: str = "typ.dynamischesObjekt"
    authority_attribute_group: str = "atg.konfigurationsVerantwortlicherEigenschaften"
    default_area_attribute: str = "defaultBereich"
    assignment_attribute_group: str = "atg.verwaltungDynamischerObjekte"
    assignment_aspect: str = "asp.parameterSoll"
    unevaluable_policy: str = "retain"
    log_level: str = "INFO"
    env_file: Optional[str] = None

    def __post_init__(self):
        if self.unevaluable_policy not in UNEVALUABLE_POLICIES:
            raise ConfigError(
                f"unevaluable_policy must be one of {UNEVALUABLE_POLICIES}, "
                f"got '{self.unevaluable_policy}'"
            )
        if not self.fallback_type_pid:
            raise ConfigError("fallback_type_pid is required")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Unknown log_level: '{self.log_level}'")

    @property
    def retain_on_unevaluable(self) -> bool:
        return self.unevaluable_policy == "retain"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DynObjConfig":
        """Build a config from parsed YAML, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}")
        return cls(**data)


def load_config(config_path: Optional[Path] = None) -> DynObjConfig:
    """
    Load dynobj configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to $DYNOBJ_HOME/config.yaml

    Returns:
        DynObjConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the config is invalid
    """
    if config_path is None:
        config_path = get_dynobj_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"dynobj config.yaml not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")

    config = DynObjConfig.from_dict(data)

    if config.env_file:
        load_dotenv(Path(config.env_file).expanduser())

    return config


def configure_logging(config: Optional[DynObjConfig] = None) -> None:
    """Apply the configured level to the dynobj logger."""
    config = config or DynObjConfig()
    logging.getLogger("dynobj").setLevel(config.log_level.upper())
