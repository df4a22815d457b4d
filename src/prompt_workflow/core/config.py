"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StoreConfig(BaseModel):
    """Workflow template store settings."""
    directory: Path = Field(default=Path(".prompt-workflows"))
    load_default_templates: bool = True
    # Reject saves whose step dependencies contain a cycle
    require_acyclic: bool = True


class ExecutionConfig(BaseModel):
    """Execution controller settings."""
    # Ceiling on branch jumps back to the same or an earlier step, per run
    max_loops: int = 50
    # Advance in list order when a conditional step resolves nowhere, instead of raising
    fallback_to_linear: bool = False

    @field_validator('max_loops')
    @classmethod
    def validate_max_loops(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_loops must be >= 1, got {v}")
        if v > 100_000:
            logger.warning(
                f"max_loops is very high ({v}). "
                "Looping branches may run for a long time before being stopped."
            )
        return v


class WorkflowConfig(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_WORKFLOW_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="allow",
    )

    store: StoreConfig = Field(default_factory=StoreConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    catalog_path: Optional[Path] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


# Loaded WorkflowConfig per resolved path, with the file mtime it was read at
_config_cache: Dict[str, Tuple[WorkflowConfig, float]] = {}


def _read_workflow_config(config_path: Path) -> WorkflowConfig:
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    return WorkflowConfig(**_expand_env_vars(data))


def load_config(config_path: Path = Path("prompt-workflow.yaml")) -> WorkflowConfig:
    """Load the workflow configuration from a YAML file.

    Repeated calls for an unchanged file return the same ``WorkflowConfig``;
    editing the file (new mtime) triggers a re-read. A missing file yields
    the defaults, so the CLI works without any config.
    """
    resolved = config_path.resolve()
    key = str(resolved)
    try:
        mtime = resolved.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        logger.warning(f"Config file not found: {config_path}. Using default configuration.")
        return WorkflowConfig()

    cached = _config_cache.get(key)
    if cached is not None and cached[1] == mtime:
        return cached[0]

    config = _read_workflow_config(resolved)
    _config_cache[key] = (config, mtime)
    logger.debug(f"Loaded config from {resolved}: store at {config.store.directory}")
    return config


def clear_config_cache() -> None:
    """Forget every loaded config so the next load_config() re-reads its file."""
    _config_cache.clear()


def _expand_env_vars(data: Any, _key: str = "") -> Any:
    """Replace ``"${NAME}"`` string values with the environment variable NAME.

    Applied to every mapping and list in the file, so a value such as
    ``store.directory: ${WORKFLOW_DIR}`` can point at a per-machine path.
    Unset variables are left as the literal ``${NAME}`` text.
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_key}.{k}" if _key else k) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item, f"{_key}[{i}]") for i, item in enumerate(data)]
    if not (isinstance(data, str) and data.startswith("${") and data.endswith("}")):
        return data

    name = data[2:-1]
    if name not in os.environ:
        logger.warning(f"Config key '{_key or '<root>'}' uses ${{{name}}} but {name} is not set")
        return data
    return os.environ[name]
