"""Entry point for running the self-correction engine from the command line.

This module provides the ``self-correction`` command. It handles:
- Configuration loading
- Logging setup with secret sanitization
- Reading generated content from a file or stdin
- Running the iterative detect/correct loop with a pass-through corrector
- Printing a JSON report and mapping the outcome to an exit code
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from self_correction._version import __version__

log = structlog.get_logger()

EXIT_CLEAN = 0
EXIT_ERROR = 1
EXIT_DEFECTS_REMAIN = 2


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from self_correction.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="self-correction",
        description="Detect and iteratively correct defects in AI-generated content",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="File with generated content, or '-' for stdin (default: -)",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file (default: built-in defaults)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without reading content",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "--iterate",
        type=int,
        default=3,
        metavar="N",
        help="Maximum number of detect/correct rounds (default: 3)",
    )

    return parser.parse_args(argv)


def read_content(source: str) -> str:
    """Read content from a file path, or from stdin when source is '-'."""
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text()


def build_report(result: Any, stats: Any) -> dict[str, Any]:
    """Combine a correction result and engine statistics into one report."""
    report: dict[str, Any] = result.to_dict()
    report["stats"] = stats.to_dict()
    return report


async def run_correction(
    source: str,
    config_path: Path | None = None,
    dry_run: bool = False,
    max_iterations: int = 3,
) -> int:
    """Run the iterative correction loop over one piece of content.

    Args:
        source: File path, or '-' for stdin
        config_path: Optional YAML configuration file
        dry_run: If True, only validate config without reading content
        max_iterations: Maximum number of detect/correct rounds

    Returns:
        Exit code (0 when clean, 2 when defects remain, 1 on error)
    """
    log.info(
        "starting_self_correction",
        version=__version__,
        config_path=str(config_path) if config_path else None,
    )

    try:
        from self_correction.config.schema import EngineConfig

        if config_path is not None:
            from self_correction.config.loader import load_config

            log.info("loading_configuration", path=str(config_path))
            config = load_config(config_path)
            log.info("configuration_loaded")

            # Reconfigure logging from config file settings
            from self_correction.utils.logging import configure_logging

            configure_logging(
                level=config.logging.level,
                log_format=config.logging.format,
                file_path=config.logging.file.path if config.logging.file.enabled else None,
                file_enabled=config.logging.file.enabled,
            )
        else:
            config = EngineConfig()

        if dry_run:
            log.info("dry_run_mode_config_valid")
            return EXIT_CLEAN

        content = read_content(source)

        from self_correction.core.engine import create_engine

        engine = create_engine(config)
        result = await engine.iterative_correction(
            "cli",
            content,
            max_iterations=max_iterations,
        )

        print(json.dumps(build_report(result, engine.get_stats()), indent=2))

        return EXIT_CLEAN if result.success else EXIT_DEFECTS_REMAIN

    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        return EXIT_ERROR
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        log.info("keyboard_interrupt_received")
        return EXIT_ERROR
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging with CLI options
    setup_logging(
        debug=args.debug,
        log_format=args.format,
    )

    try:
        return asyncio.run(
            run_correction(args.input, args.config, args.dry_run, args.iterate)
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
