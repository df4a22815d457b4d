"""Configuration and the prompt catalog."""

from .catalog import Prompt, PromptCatalog
from .config import WorkflowConfig, clear_config_cache, load_config

__all__ = [
    "Prompt",
    "PromptCatalog",
    "WorkflowConfig",
    "clear_config_cache",
    "load_config",
]
