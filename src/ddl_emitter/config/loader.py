"""Configuration loading from ddl.toml."""

import tomllib
from pathlib import Path

from ddl_emitter.config.models import EmitterConfig, EmitterOptions

DEFAULT_CONFIG_FILE = "ddl.toml"


def load_emitter_config(config_path: Path | None = None) -> EmitterConfig:
    """Load emitter configuration from TOML file.

    Example ddl.toml:
        [schema]
        file = "library.toml"

        [emitter]
        output_file = "{service-name}/{version}.sql"
        new_line = "lf"
        save_mode = true
        output_dir = "build/sql"

    Args:
        config_path: Path to ddl.toml (default: ./ddl.toml)

    Returns:
        EmitterConfig with options and schema settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Emitter config not found: {config_path}\n"
            f"Create a {DEFAULT_CONFIG_FILE} with an [emitter] table or pass options on the command line."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    emitter_settings = dict(data.get("emitter", {}))
    output_dir = emitter_settings.pop("output_dir", ".")

    # Parse schema settings
    schema_settings = data.get("schema", {})

    return EmitterConfig(
        options=EmitterOptions(**emitter_settings),
        schema_file=schema_settings.get("file", "schema.toml"),
        output_dir=output_dir,
    )
