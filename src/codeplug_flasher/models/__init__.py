"""
Model registry for supported radios.

Provides a unified layer for model selection, configuration, and driver construction.
"""

from .registry import (
    RadioModel,
    ModelConfig,
    parse_model,
    list_models,
    get_model,
    create_radio,
    env_dry_run,
)

__all__ = [
    "RadioModel",
    "ModelConfig",
    "parse_model",
    "list_models",
    "get_model",
    "create_radio",
    "env_dry_run",
]
