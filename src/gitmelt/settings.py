from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from gitmelt.config import DigestOptions, DigestPreset, PatternSet, PrologueMode
from gitmelt.exceptions import ConfigError

ENV_FILE = find_dotenv(usecwd=True)
CONFIG_ENV_VAR = "GITMELT_CONFIG"


class Settings(BaseModel):
    """Configuration settings for one gitmelt invocation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    input: str = Field(default=".", description="Path to traverse or Git URL.")
    branch: str | None = Field(default=None, description="Git branch to clone.")
    include_glob: list[str] = Field(default_factory=list, description="Include glob.")
    exclude_glob: list[str] = Field(default_factory=list, description="Exclude glob.")
    output: Path | None = Field(default=None, description="Output file (default: digest.txt).")
    stdout: bool = Field(default=False, description="Print the digest to stdout.")
    verbose: bool = Field(default=False, description="Debug logging.")
    preset: DigestPreset = Field(default=DigestPreset.DEFAULT, description="Output preset.")
    prologue: PrologueMode = Field(default=PrologueMode.LIST, description="Prologue mode.")
    dry: bool = Field(default=False, description="Only estimate, write nothing.")
    no_tokens: bool = Field(default=False, description="Disable token counting.")
    timing: bool = Field(default=False, description="Show timing summary.")
    workers: int = Field(default=1, ge=1, description="Threads reading files.")
    gitignore: bool = Field(default=False, description="Honor the root .gitignore.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("prologue", mode="before")
    @classmethod
    def _yaml_off(cls, value: Any) -> Any:  # noqa: ANN401
        # YAML 1.1 reads a bare `off` as False.
        return PrologueMode.OFF if value is False else value

    @model_validator(mode="after")
    def _output_xor_stdout(self) -> Settings:
        if self.stdout and self.output is not None:
            msg = "output and stdout are mutually exclusive"
            raise ValueError(msg)
        return self

    def digest_options(self) -> DigestOptions:
        """Build the core-facing options from these settings."""
        return DigestOptions(
            patterns=PatternSet(includes=tuple(self.include_glob), excludes=tuple(self.exclude_glob)),
            preset=self.preset,
            prologue=self.prologue,
            count_tokens=not self.no_tokens,
            dry_run=self.dry,
            workers=self.workers,
            respect_gitignore=self.gitignore,
        )


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file holding default values for `Settings`.

    Args:
        path (str | Path): the YAML file

    Raises:
        ConfigError: if the file cannot be read, is not valid YAML, or is not a mapping.

    Returns:
        dict[str, Any]: the settings values found in the file
    """
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(source=str(path), message=f"Cannot load config file ({e})") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(source=str(path), message="Config file must contain a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def load_settings(cli_values: dict[str, Any], config_path: str | Path | None = None) -> Settings:
    """Merge config file values with command-line values into `Settings`.

    Command-line values that are None (not given) leave the config file's value, or
    the default, in place. Without `config_path`, the `GITMELT_CONFIG` environment
    variable (possibly set in a `.env` file) names the config file.

    Args:
        cli_values (dict[str, Any]): values parsed from the command line
        config_path (str | Path | None): explicit YAML config file

    Raises:
        ConfigError: if the config file or the merged values are invalid.

    Returns:
        Settings: the validated settings
    """
    if config_path is None:
        if ENV_FILE:
            load_dotenv(ENV_FILE, override=False)
        config_path = os.environ.get(CONFIG_ENV_VAR) or None

    data = load_config_file(config_path) if config_path else {}
    data.update({k: v for k, v in cli_values.items() if v is not None})
    try:
        return Settings(**data)
    except ValidationError as e:
        source = str(config_path) if config_path else "command line"
        raise ConfigError(source=source, message=f"Invalid settings ({e.error_count()} error(s)): {e}") from e
