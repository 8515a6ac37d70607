"""Pydantic models for emitter configuration."""

from pydantic import BaseModel, ConfigDict, Field

from ddl_emitter.schema.serializer import NewLineType

DEFAULT_OUTPUT_FILE = "schema.{service-name}.{version}.sql"


class EmitterOptions(BaseModel):
    """Options of one emission run (``[emitter]`` table of ddl.toml).

    Example:
        >>> options = EmitterOptions(save_mode=True)
        >>> options.new_line
        <NewLineType.LF: 'lf'>
    """

    model_config = ConfigDict(extra="forbid")

    output_file: str = DEFAULT_OUTPUT_FILE  # supports {service-name} and {version}
    new_line: NewLineType = NewLineType.LF
    save_mode: bool = False  # IF NOT EXISTS forms plus hoisted ALTER TABLE ADD COLUMN
    emit_non_entity_types: bool = False


class EmitterConfig(BaseModel):
    """Complete emitter configuration from ddl.toml."""

    options: EmitterOptions = Field(default_factory=EmitterOptions)
    schema_file: str = "schema.toml"
    output_dir: str = "."
