"""Logging configuration for splitrole."""

import logging
import re
import sys
from typing import List, Optional, Union

AWS_SDK_LOGGERS = ["boto3", "botocore", "urllib3.connectionpool"]

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s - %(name)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Each pattern captures a prefix to keep; whatever follows it is redacted.
# botocore logs header values as bytes reprs, e.g. 'X-Amz-Security-Token': b'...'
_VALUE_PREFIX = r"['\"]?\s*[:=]\s*(?:b(?=['\"]))?['\"]?"
SENSITIVE_DATA_PATTERNS = [
    r"((?:aws_)?secret(?:_access)?_?key" + _VALUE_PREFIX + r")[^\s'\",}]+",
    r"((?:aws_)?session_?token" + _VALUE_PREFIX + r")[^\s'\",}]+",
    r"(SecretAccessKey" + _VALUE_PREFIX + r")[^\s'\",}]+",
    r"(SessionToken" + _VALUE_PREFIX + r")[^\s'\",}]+",
    r"(X-Amz-Security-Token" + _VALUE_PREFIX + r")[^\s'\",}]+",
    r"(<SecretAccessKey>)[^<]+",
    r"(<SessionToken>)[^<]+",
    r"(Signature=)[0-9a-f]+",
]


class SensitiveDataFilter(logging.Filter):
    """Filter to redact credential material from log messages."""

    def __init__(self, patterns: Optional[List[str]] = None) -> None:
        """
        Initialize the filter with sensitive data patterns.

        Args:
            patterns: Regex patterns whose first group is kept and the remainder redacted
        """
        super().__init__()
        self.patterns = patterns if patterns is not None else SENSITIVE_DATA_PATTERNS
        self.compiled_patterns = [re.compile(pattern, re.IGNORECASE) for pattern in self.patterns]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact sensitive data from a log record.

        Args:
            record: Log record to filter

        Returns:
            bool: Always True (we modify but don't filter out records)
        """
        if record.args:
            record.msg = record.getMessage()
            record.args = None

        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)

        return True

    def redact(self, text: str) -> str:
        """Redact sensitive data from text."""
        for pattern in self.compiled_patterns:
            text = pattern.sub(r"\1[REDACTED]", text)
        return text


def configure_aws_sdk_logging(enabled: bool, handler: Optional[logging.Handler] = None) -> None:
    """
    Turn request/response logging from the AWS SDK on or off.

    This changes the process-wide boto3/botocore/urllib3 loggers. When a
    handler is given it is attached to them and they stop propagating, so SDK
    records only reach the redacting handler. Calling with ``enabled=False``
    restores WARNING level and propagation.

    Args:
        enabled: Log boto3/botocore at DEBUG when True, WARNING otherwise
        handler: Optional handler to attach to the SDK loggers
    """
    for logger_name in AWS_SDK_LOGGERS:
        sdk_logger = logging.getLogger(logger_name)
        sdk_logger.setLevel(logging.DEBUG if enabled else logging.WARNING)
        if not enabled:
            sdk_logger.propagate = True
        elif handler is not None:
            if handler not in sdk_logger.handlers:
                sdk_logger.addHandler(handler)
            sdk_logger.propagate = False


def create_console_handler() -> logging.Handler:
    """Create a stderr handler that redacts credential material."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    return handler


def _find_redacting_handler(sdk_logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in sdk_logger.handlers:
        if any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            return handler
    return None


def enable_aws_sdk_debug_logging() -> logging.Handler:
    """
    Log AWS SDK requests and responses to stderr with credentials redacted.

    Reuses the redacting handler already on the SDK loggers (for example the
    one installed by ``setup_logging``) so repeated calls do not duplicate
    output. The setting is process-wide and stays on until
    ``configure_aws_sdk_logging(False)`` is called.

    Returns:
        The handler attached to the SDK loggers
    """
    handler = _find_redacting_handler(logging.getLogger(AWS_SDK_LOGGERS[0]))
    if handler is None:
        handler = create_console_handler()
    configure_aws_sdk_logging(True, handler)
    return handler


def setup_logging(
    level: Union[int, str] = logging.INFO, aws_sdk_debug_log: bool = False
) -> logging.Handler:
    """
    Set up console logging for splitrole and, optionally, the AWS SDK.

    Args:
        level: Level for the splitrole logger
        aws_sdk_debug_log: Whether to log AWS SDK requests and responses

    Returns:
        The console handler that was installed
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    handler = create_console_handler()

    root_logger = logging.getLogger("splitrole")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if aws_sdk_debug_log:
        for logger_name in AWS_SDK_LOGGERS:
            sdk_logger = logging.getLogger(logger_name)
            stale = _find_redacting_handler(sdk_logger)
            if stale is not None:
                sdk_logger.removeHandler(stale)
        configure_aws_sdk_logging(True, handler)
    else:
        configure_aws_sdk_logging(False)

    return handler
