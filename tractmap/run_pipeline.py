#!/usr/bin/env python3
"""
Tract Viewer Launcher with Click CLI

Loads the tract attribute table and tract TopoJSON, builds the coordinated
session and writes one HTML page per attribute.

Usage:
    python -m tractmap [OPTIONS]

    python -m tractmap --attribute income          # Start-up page shows income
    python -m tractmap --output-dir build/html     # Write pages elsewhere
    python -m tractmap --verbose                   # Enable DEBUG level logging
"""

import sys
import time
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from .attributes import InvalidAttributeError, attribute_ids
from .config_loader import Config
from .page import INDEX_PAGE, export_pages, render_error_page
from .session import InitializationError, build_session

ERROR_PAGE = "error.html"


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
    elif verbose:
        log_level = "DEBUG"
    else:
        log_level = "INFO"

    if verbose or enable_trace:
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to config.yaml (defaults to TRACTMAP_CONFIG_PATH, ./config.yaml, then the packaged one)",
)
@click.option(
    "--attribute",
    type=click.Choice(attribute_ids()),
    help="Attribute expressed on the index page",
)
@click.option("--output-dir", type=click.Path(file_okay=False), help="Directory for HTML pages")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option(
    "--trace", is_flag=True, help="Enable TRACE level logging for deep debugging (maximum detail)"
)
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[str],
    attribute: Optional[str],
    output_dir: Optional[str],
    verbose: bool,
    trace: bool,
    log_file: Optional[str],
) -> None:
    """
    Render the coordinated tract choropleth and ranked bar chart.

    \b
    Examples:
      python -m tractmap                          # Render with the default config
      python -m tractmap --attribute education    # Start on education
      python -m tractmap --log-file viewer.log    # Also save logs to file
    """
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        logger.add(
            log_file,
            level="TRACE" if trace else ("DEBUG" if verbose else "INFO"),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.info("🗺️ Tract Choropleth Viewer")
    start = time.time()

    try:
        config = Config(config_file)
        logger.info(f"📋 Project: {config.get('project_name')}")
        config.print_config_summary()
    except Exception as e:
        logger.critical(f"Configuration error: {e}")
        logger.info("💡 Make sure config.yaml exists and is valid")
        ctx.exit(1)

    html_dir = Path(output_dir) if output_dir else config.get_output_dir("html")

    try:
        session = build_session(config, attribute)
    except (InitializationError, InvalidAttributeError) as e:
        logger.critical(f"❌ Initialization failed: {e}")
        html_dir.mkdir(parents=True, exist_ok=True)
        error_path = html_dir / ERROR_PAGE
        error_path.write_text(render_error_page(str(e)), encoding="utf-8")
        logger.info(f"   📄 Error page written: {error_path}")
        ctx.exit(1)

    export_pages(session, html_dir)

    logger.success(f"🎉 Done in {time.time() - start:.1f}s")
    logger.info(f"   🌐 Open {html_dir / INDEX_PAGE}")


if __name__ == "__main__":
    cli()
