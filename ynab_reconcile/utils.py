"""
Utility functions for the reconciliation tool.

Helpers used by the command line and reporters that are not part of the
reconciliation logic itself.
"""

import logging
import os
import pathlib
import sys


DEFAULT_LOG_FILE = 'ynab_reconcile.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug=False, log_level='info', log_file=None):
    """Send log records to a log file and to stderr.

    The report is printed to stdout, so console logging goes to stderr and the
    two can be redirected separately.

    Args:
        debug (bool): Force DEBUG level
        log_level (str): Level name used when debug is False
        log_file (str or pathlib.Path, optional): Log file. Defaults to the
            LOG_FILE environment variable, then ynab_reconcile.log

    Returns:
        pathlib.Path: The log file being written

    Raises:
        ValueError: If log_level is not a logging level name
    """
    level = logging.DEBUG if debug else logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    log_path = pathlib.Path(log_file or os.getenv('LOG_FILE', DEFAULT_LOG_FILE))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.FileHandler(log_path, encoding='utf-8'), logging.StreamHandler(sys.stderr)]
    for handler in handlers:
        handler.setFormatter(formatter)

    # Replaces handlers from an earlier call in the same process
    logging.basicConfig(level=level, handlers=handlers, force=True)
    return log_path


def resolve_output_path(output_path, default_name):
    """
    Resolve where an output file should be written.

    Args:
        output_path (str or pathlib.Path): File path or directory
        default_name (str): File name used when output_path is a directory or
            has no suffix

    Returns:
        pathlib.Path: File path whose parent directory exists
    """
    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / default_name

    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path
