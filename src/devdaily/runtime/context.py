"""Application context holding the active configuration.

The configuration lives in a ``ContextVar`` so tests and CLI commands can
swap it for the duration of a block without touching process-wide state.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace

from loguru import logger
from pydantic import BaseModel

from src.devdaily.runtime.config.config_data import ConfigData
from src.devdaily.runtime.config.config_template import load_templated_yaml
from src.devdaily.runtime.settings import EnvironmentVariables


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


def load_default_config(env: EnvironmentVariables | None = None) -> ConfigData:
    """Build the startup configuration.

    Reads ``config.yaml`` (or ``CONFIG_PATH``) when present and then applies
    the primitive overrides from the environment.
    """
    env = env or EnvironmentVariables()

    if env.config_path.exists():
        config = load_templated_yaml(env.config_path)
    else:
        logger.debug("No configuration file at {}, using defaults", env.config_path)
        config = ConfigData()

    overrides: dict = {"app": {"environment": env.environment}}
    if env.database_url:
        overrides["database"] = {"url": env.database_url}
    if env.log_level:
        overrides["logging"] = {"level": env.log_level}

    return ConfigData.model_validate(_recursive_dict_merge(config.model_dump(), overrides))



def get_context() -> AppContext:
    """Get the current application context."""
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    """Set the current application context.

    Args:
        context: AppContext instance to set as current.
    """
    return _app_context.set(context)


def _explicitly_set(model: BaseModel) -> dict:
    """Dump only the fields that were explicitly set, at every nesting level."""
    result = {}
    for field_name in model.__class__.model_fields:
        value = getattr(model, field_name)
        if isinstance(value, BaseModel):
            nested = _explicitly_set(value)
            if nested or field_name in model.model_fields_set:
                result[field_name] = nested or value.model_dump()
        elif field_name in model.model_fields_set:
            result[field_name] = value
    return result


def _recursive_dict_merge(base_dict: dict, override_dict: dict) -> dict:
    """Recursively merge two dictionaries, override values winning."""
    result = base_dict.copy()

    for key, value in override_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _recursive_dict_merge(result[key], value)
        else:
            result[key] = value

    return result


def merge_configs(base_config: ConfigData, override_config: ConfigData) -> ConfigData:
    """Merge the explicitly set fields of ``override_config`` into ``base_config``."""
    merged = _recursive_dict_merge(base_config.model_dump(), _explicitly_set(override_config))
    return ConfigData.model_validate(merged)


@contextmanager
def with_context(config_override: ConfigData | None = None):
    """Temporarily override the application configuration.

    Only fields explicitly set on ``config_override`` replace the current
    values; everything else is inherited from the enclosing context.

    Example:
        override = ConfigData()
        override.transaction.max_retries = 0
        with with_context(override):
            assert get_config().transaction.max_retries == 0
    """
    if config_override is None:
        yield
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    merged_config = merge_configs(get_context().config, config_override)
    token = set_context(replace(get_context(), config=merged_config))
    try:
        yield
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the entire current configuration."""
    set_context(replace(get_context(), config=config))


def get_config() -> ConfigData:
    """Convenience function to get the current configuration."""
    return get_context().config


_default_context = AppContext(config=load_default_config())

_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=_default_context
)
