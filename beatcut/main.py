"""Command-line entry point for beatcut."""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from . import __version__
from .config import BeatcutConfig, PRESETS
from .errors import BeatcutError
from .services import AnalysisService
from .ui import render_report

logger = logging.getLogger(__name__)


def setup_logging(config: BeatcutConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/beatcut.log')
    console_output = config.get('logging.console_output', True)
    
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    
    handlers = []
    
    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)
    
    # Console handler - only warnings and above, only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)
    
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)
    
    logger.info("=" * 50)
    logger.info("beatcut starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def load_config(config_path: Optional[str], preset: Optional[str], buffer_size: Optional[int]) -> BeatcutConfig:
    """Load the YAML config (or defaults) and apply command-line overrides."""
    config = BeatcutConfig(config_path) if config_path else BeatcutConfig(data={})
    if preset:
        config.set('analysis.preset', preset)
    if buffer_size:
        config.set('analysis.buffer_size', buffer_size)
    return config


def main() -> None:
    """Main entry point for beatcut."""
    parser = argparse.ArgumentParser(
        description="beatcut - audio-driven keep/remove decisions for trimming footage to music"
    )
    parser.add_argument(
        "input",
        type=str,
        help="PCM WAV file to analyze"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--preset",
        type=str,
        choices=sorted(PRESETS),
        default=None,
        help="Analysis preset (overridden by values in the config file)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=None,
        help="Samples per analysis buffer"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the report as JSON to this path"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"beatcut {__version__}"
    )
    
    args = parser.parse_args()
    console = Console()
    
    try:
        config = load_config(args.config, args.preset, args.buffer_size)
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))
        
        service = AnalysisService(config)
        try:
            report = service.analyze_file(args.input)
            render_report(report, console)
            saved = service.save_report(report, args.output)
            if saved:
                console.print(f"Report written to {saved}")
        finally:
            service.shutdown()
    except KeyboardInterrupt:
        console.print("\nInterrupted")
        sys.exit(130)
    except (BeatcutError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
