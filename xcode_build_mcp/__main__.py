#!/usr/bin/env python3
"""Command line entry point for the Xcode Build MCP Server"""

import argparse
import logging
import sys
from dataclasses import replace

from xcode_build_mcp import __version__
from xcode_build_mcp.config_manager import load_config_from_env, set_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Xcode Build MCP Server")
    parser.add_argument("--version", action="version", version=f"xcode-build-mcp {__version__}")
    parser.add_argument("--log-dir", help="Directory for saved build/test logs (default: ~/.xcode-build-mcp/logs)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper,
                        help="Diagnostic log level written to stderr")
    parser.add_argument("--max-errors", type=int, help="Maximum number of errors shown in build output")
    parser.add_argument("--no-build-warnings", action="store_true", help="Exclude warnings from build output")
    parser.add_argument("--always-include-build-warnings", action="store_true",
                        help="Always include warnings in build output")
    return parser


def configure_from_args(args: argparse.Namespace, environ=None):
    """
    Combine environment defaults with command line overrides.

    Raises:
        ValueError: If both build warning flags are given
    """
    config = load_config_from_env(environ)

    if args.log_dir:
        config = replace(config, log_dir=args.log_dir)
    if args.log_level:
        config = replace(config, log_level=args.log_level)
    if args.max_errors is not None:
        if args.max_errors < 1:
            raise ValueError("--max-errors must be at least 1")
        config = replace(config, max_displayed_errors=args.max_errors)

    # Handle build warning settings
    if args.no_build_warnings and args.always_include_build_warnings:
        raise ValueError("Cannot use both --no-build-warnings and --always-include-build-warnings")
    elif args.no_build_warnings:
        config = replace(config, build_warnings_enabled=False, build_warnings_forced=False)
    elif args.always_include_build_warnings:
        config = replace(config, build_warnings_enabled=True, build_warnings_forced=True)

    return config


def setup_logging(level: str) -> None:
    # stdout carries the MCP stdio transport, so diagnostics go to stderr
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = configure_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level)
    set_config(config)
    logger = logging.getLogger("xcode_build_mcp")

    if config.build_warnings_forced is False:
        logger.info("Build warnings forcibly disabled")
    elif config.build_warnings_forced is True:
        logger.info("Build warnings forcibly enabled")

    # Imported after set_config so nothing captures the defaults
    from xcode_build_mcp.server import mcp
    from xcode_build_mcp.utils.log_store import LogStore
    import xcode_build_mcp.tools  # noqa: F401  registers the tools

    LogStore().cleanup_old_logs()
    logger.info("Saving logs to %s", config.expanded_log_dir)

    # Run the server
    mcp.run()


if __name__ == "__main__":
    main()
