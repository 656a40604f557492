"""
Logging Utility for the Assistant Backend

Console logging with:
- Color-coded log levels
- An icon per assistant component (taken from the logger name)
- Key/value rendering of structured request data
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    KEY = '\033[93m'        # Bright Yellow
    TIMESTAMP = '\033[90m'  # Dark Gray


class ColoredFormatter(logging.Formatter):
    """Formatter with level colors and component icons."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last segment of the logger name
    COMPONENT_ICONS = {
        'main': '🌐',
        'service': '🤖',
        'model_router': '🔀',
        'ai_client': '📡',
        'session_manager': '💾',
        'context_aggregator': '📚',
        'response_cache': '🗄️',
        'response_parser': '🧩',
        'content_filter': '🛡️',
    }

    LEVEL_COLORS = {
        'DEBUG': Colors.DEBUG,
        'INFO': Colors.INFO,
        'WARNING': Colors.WARNING,
        'ERROR': Colors.ERROR,
        'CRITICAL': Colors.CRITICAL,
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1]
        icon = self.COMPONENT_ICONS.get(component, self.ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, Colors.RESET)
            reset, bold, timestamp_color = Colors.RESET, Colors.BOLD, Colors.TIMESTAMP
        else:
            level_color = reset = bold = timestamp_color = ''

        formatted = (
            f"{timestamp_color}[{timestamp}]{reset} "
            f"{icon} {level_color}{record.levelname:8s}{reset} "
            f"{bold}{record.name}{reset} "
            f"| {record.getMessage()}"
        )

        data = getattr(record, 'data', None)
        if data:
            formatted += "\n" + format_data(data, key_color=Colors.KEY if self.use_colors else '', reset=reset)

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def format_data(data: Dict[str, Any], indent: int = 2, key_color: str = '', reset: str = '') -> str:
    """Render a flat or nested dict as indented key: value lines, skipping None values."""
    lines = []
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            lines.append(f"{' ' * indent}{key_color}{key}{reset}:")
            lines.append(format_data(value, indent + 2, key_color, reset))
        else:
            lines.append(f"{' ' * indent}{key_color}{key}{reset}: {value}")
    return "\n".join(lines)


class StructuredLogger:
    """Logger wrapper that attaches structured data to records."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(message, extra={"data": data})

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra={"data": data})

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(message, extra={"data": data})

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log error message with exception and optional data."""
        error_info = f" Error: {type(error).__name__}: {error}" if error else ""
        self.logger.error(f"{message}{error_info}", exc_info=error, extra={"data": data})

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(f"✅ {message}", extra={"data": data})

    def request(self, method: str, path: str, user_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Log an incoming request; long user ids are shortened."""
        request_data = {
            "method": method,
            "path": path,
            "user_id": user_id[:20] + "..." if user_id and len(user_id) > 20 else user_id,
        }
        if data:
            request_data.update(data)
        self.logger.info(f"📥 REQUEST: {method} {path}", extra={"data": request_data})

    def response(self, status: int, path: str, duration: Optional[float] = None, data: Optional[Dict[str, Any]] = None):
        response_data = {
            "status": status,
            "path": path,
            "duration_ms": f"{duration * 1000:.2f}" if duration else None,
        }
        if data:
            response_data.update(data)
        self.logger.info(f"📤 RESPONSE: {status} {path}", extra={"data": response_data})


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Install the colored console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Quiet the HTTP client stack used by the openai SDK
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
