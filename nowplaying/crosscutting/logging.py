import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
endpoint_var: ContextVar[Optional[str]] = ContextVar('endpoint', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # API tokens and keys
            r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Access and refresh tokens
            r'(?i)(access_token|refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Authorization headers
            r'(?i)(authorization|bearer)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{50,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        def replace_match(match):
            prefix = match.group(1)
            secret = match.group(2)
            # Keep first 4 and last 4 characters, mask the rest
            if len(secret) > 8:
                masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
            else:
                masked_secret = '*' * len(secret)
            return f"{prefix}: {masked_secret}"

        masked_text = text
        for pattern in self.compiled_patterns:
            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in string values of a dictionary."""
        if not data:
            return data

        masked_data = {}
        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        request_id = request_id_var.get()
        endpoint = endpoint_var.get()
        if request_id:
            log_entry['requestId'] = request_id
        if endpoint:
            log_entry['endpoint'] = endpoint

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager for request correlation data."""

    def __init__(self, request_id: Optional[str] = None, endpoint: Optional[str] = None):
        self.request_id = request_id
        self.endpoint = endpoint
        self._tokens = []

    def __enter__(self):
        if self.request_id is not None:
            self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.endpoint is not None:
            self._tokens.append((endpoint_var, endpoint_var.set(self.endpoint)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """Setup structured logging on the ``nowplaying`` logger."""
    logger = logging.getLogger('nowplaying')
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, exc_info: bool = False, **kwargs):
    """Log message with additional structured fields."""
    extra_fields = dict(fields or {})
    extra_fields.update(kwargs)
    logger.log(getattr(logging, level.upper()), message,
               extra={'fields': extra_fields} if extra_fields else None,
               exc_info=exc_info)


def log_error(logger: logging.Logger, message: str, error: Exception,
              level: str = 'ERROR', **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, level, message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
