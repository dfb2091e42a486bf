"""Logging utilities for ADO Migration Tool."""

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

REDACTED = '***'

_secrets: List[str] = []


def register_secret(secret: Optional[str]) -> None:
    """Mask a secret value in every log record emitted from now on.

    Args:
        secret: Secret value (e.g. a personal access token)
    """
    if secret and secret not in _secrets:
        _secrets.append(secret)


def clear_secrets() -> None:
    """Forget all registered secrets."""
    _secrets.clear()


def redact(message: str) -> str:
    """Replace registered secrets in a message.

    Args:
        message: Message text

    Returns:
        Message with every registered secret replaced by ``***``
    """
    for secret in _secrets:
        message = message.replace(secret, REDACTED)
    return message


def _redact_record(record) -> None:
    record['message'] = redact(record['message'])


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Args:
        level: Log level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        log_format: Optional custom log format
    """
    # Remove default handler
    logger.remove()
    logger.configure(patcher=_redact_record)

    if log_format is None:
        log_format = (
            '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
            '<level>{level: <8}</level> | '
            '<level>{message}</level>'
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # File format (no colors)
        file_format = '{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}'

        logger.add(
            log_file,
            format=file_format,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.debug(f'Log file: {log_file}')

