"""
Config command group for the ffund CLI.

Commands for viewing and editing allocation settings.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

import click
from pydantic import ValidationError

from ffund.constants import ConfigManager, reset_config_manager
from ffund.exceptions import ConfigurationError
from ffund.models.files import ConfigFile

config_path_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path(".ffund") / "config.json",
    show_default=True,
    help="Path to config.json.",
)


def load_config_file(config_path: Path) -> ConfigFile:
    """Load config.json merged over the defaults.

    Raises:
        ConfigurationError: If the stored values do not validate.
    """
    data = ConfigManager(config_path=config_path).reload()
    try:
        return ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}")


def write_config_file(config_path: Path, config_file: ConfigFile) -> None:
    """Write config.json atomically.

    Raises:
        ConfigurationError: If writing fails.
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(
        dir=config_path.parent, prefix=".tmp_ffund_", suffix=".json"
    )
    try:
        with os.fdopen(temp_fd, "w") as temp_file:
            json.dump(config_file.model_dump(mode="json"), temp_file, indent=2)
        os.replace(temp_path, config_path)
    except OSError as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise ConfigurationError(f"Failed to write {config_path}: {e}")


def _parse_value(value: str) -> Any:
    """Read VALUE as JSON when possible so lists and numbers keep their type."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _as_dict(config_file: ConfigFile) -> Dict[str, Any]:
    return config_file.model_dump(mode="json")


@click.group()
def config():
    """View and edit allocation settings.

    Configuration is stored in .ffund/config.json.
    """
    pass


@config.command(name="show")
@config_path_option
def show_config(config_path: Path):
    """Show current configuration."""
    try:
        values = _as_dict(load_config_file(config_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(values, indent=2))


@config.command(name="get")
@click.argument("key")
@config_path_option
def get_config(key: str, config_path: Path):
    """Get a configuration value."""
    try:
        values = _as_dict(load_config_file(config_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    if key not in values:
        raise click.ClickException(f"Unknown config key '{key}'.")
    value = values[key]
    click.echo(value if isinstance(value, str) else json.dumps(value))


@config.command(name="set")
@click.argument("key")
@click.argument("value")
@config_path_option
def set_config(key: str, value: str, config_path: Path):
    """Set a configuration value.

    VALUE is read as JSON when it parses, e.g. 21, 0.25 or '["CANCELLED"]'.
    """
    try:
        values = _as_dict(load_config_file(config_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    if key not in values or key == "schema_version":
        raise click.ClickException(f"Unknown config key '{key}'.")

    values[key] = _parse_value(value)
    try:
        updated = ConfigFile.model_validate(values)
    except ValidationError as e:
        raise click.ClickException(f"Invalid value for '{key}': {e.errors()[0]['msg']}")

    try:
        write_config_file(config_path, updated)
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    reset_config_manager()
    click.echo(f"✓ Set {key} = {json.dumps(_as_dict(updated)[key])}")
