#!/usr/bin/env python3
"""Server configuration - environment defaults, CLI overrides and per-tool defaults"""

import functools
import inspect
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = os.path.join("~", ".xcode-build-mcp", "logs")


@dataclass(frozen=True)
class ServerConfig:
    log_dir: str = DEFAULT_LOG_DIR
    log_retention_days: int = 7
    log_level: str = "INFO"

    # Presentation caps
    max_displayed_errors: int = 10
    max_displayed_warnings: int = 5
    max_displayed_failures: int = 5

    # Build warning settings. `build_warnings_forced` is True/False when the
    # user forced the behaviour on the command line, None otherwise.
    build_warnings_enabled: bool = True
    build_warnings_forced: Optional[bool] = None

    # Seconds
    build_timeout: float = 1800.0
    simctl_timeout: float = 120.0

    # Lines scanned after a Swift Testing issue for continuation messages
    continuation_window: int = 5

    @property
    def expanded_log_dir(self) -> str:
        return os.path.expanduser(self.log_dir)


_CONFIG = ServerConfig()


def _env_number(environ, name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default


def load_config_from_env(environ: Optional[Dict[str, str]] = None) -> ServerConfig:
    """
    Build a ServerConfig from XCODEMCP_* environment variables.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        A ServerConfig with every unset variable left at its default
    """
    env = os.environ if environ is None else environ
    defaults = ServerConfig()
    return ServerConfig(
        log_dir=env.get("XCODEMCP_LOG_DIR") or defaults.log_dir,
        log_retention_days=_env_number(env, "XCODEMCP_LOG_RETENTION_DAYS", defaults.log_retention_days, int),
        log_level=(env.get("XCODEMCP_LOG_LEVEL") or defaults.log_level).upper(),
        max_displayed_errors=_env_number(env, "XCODEMCP_MAX_ERRORS", defaults.max_displayed_errors, int),
        max_displayed_warnings=_env_number(env, "XCODEMCP_MAX_WARNINGS", defaults.max_displayed_warnings, int),
        max_displayed_failures=_env_number(env, "XCODEMCP_MAX_FAILURES", defaults.max_displayed_failures, int),
        build_timeout=_env_number(env, "XCODEMCP_BUILD_TIMEOUT", defaults.build_timeout, float),
        simctl_timeout=_env_number(env, "XCODEMCP_SIMCTL_TIMEOUT", defaults.simctl_timeout, float),
        continuation_window=_env_number(env, "XCODEMCP_CONTINUATION_WINDOW", defaults.continuation_window, int),
    )


def get_config() -> ServerConfig:
    """Get the active configuration"""
    return _CONFIG


def set_config(config: ServerConfig) -> None:
    """Set the active configuration - called once by the CLI"""
    global _CONFIG
    _CONFIG = config


def update_config(**changes: Any) -> ServerConfig:
    """Replace selected fields of the active configuration"""
    set_config(replace(_CONFIG, **changes))
    return _CONFIG


def _resolve_include_warnings(config: ServerConfig, value: Optional[bool]) -> bool:
    # Command-line flags override the tool argument (user control > LLM control)
    if config.build_warnings_forced is not None:
        return config.build_warnings_forced
    return value if value is not None else config.build_warnings_enabled


_PARAMETER_RESOLVERS: Dict[str, Callable[[ServerConfig, Any], Any]] = {
    "include_warnings": _resolve_include_warnings,
    "max_errors": lambda config, value: value if value is not None else config.max_displayed_errors,
    "timeout": lambda config, value: value if value is not None else config.build_timeout,
}


def apply_config(func):
    """
    Fill configuration-backed tool arguments before the tool runs.

    Any parameter named in the resolver table is replaced with its resolved
    value, so tools can declare `Optional[...] = None` and still receive a
    concrete setting.
    """
    signature = inspect.signature(func)
    managed = [name for name in signature.parameters if name in _PARAMETER_RESOLVERS]

    def _resolve(args, kwargs):
        bound = signature.bind(*args, **kwargs)
        bound.apply_defaults()
        config = get_config()
        for name in managed:
            bound.arguments[name] = _PARAMETER_RESOLVERS[name](config, bound.arguments[name])
        return bound.args, bound.kwargs

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            args, kwargs = _resolve(args, kwargs)
            return await func(*args, **kwargs)
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        args, kwargs = _resolve(args, kwargs)
        return func(*args, **kwargs)
    return wrapper
