"""Runtime configuration for the assistant and its capabilities."""

import json
import os
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "clarabot.json"


class Config(BaseModel):
    """Settings shared with every capability through its init context."""

    model: str = "gpt-4o-mini"
    api_key: Optional[str] = Field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY")
    )
    plugins_path: Path = Path("./plugins")
    max_build_attempts: int = Field(default=3, ge=1)
    max_chain_depth: int = Field(default=10, ge=1)
    completion_timeout: float = Field(default=60.0, gt=0)
    build_timeout: float = Field(default=120.0, gt=0)
    invoke_timeout: Optional[float] = Field(default=120.0, gt=0)
    duplicate_policy: Literal["reject", "overwrite"] = "reject"
    load_policy: Literal["fail-fast", "skip"] = "fail-fast"
    memory_file: Optional[Path] = None
    log_file: Path = Path("clarabot.log")
    debug: bool = False

    @property
    def source_dir(self) -> Path:
        return self.plugins_path / "source"

    @property
    def generated_dir(self) -> Path:
        return self.source_dir / "generated"

    @property
    def compiled_dir(self) -> Path:
        return self.plugins_path / "compiled"

    @classmethod
    def load(cls, path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> "Config":
        """Reads a JSON config file; a missing file yields the defaults.

        Raises
        ------
        ConfigError
            If the file exists but is not valid JSON or fails validation.
        """
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"could not read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a JSON object")
        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"invalid config file {path}: {exc}") from exc
