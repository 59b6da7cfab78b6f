"""
Centralized logging configuration for the Shrish Travels operations portal
Provides structured JSON logging, correlation ids and request timing
"""

import os
import sys
import json
import uuid
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, List
from flask import has_request_context, request, g

# Attributes every LogRecord carries; anything else was passed through ``extra``
_RESERVED_RECORD_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName',
    'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'taskName',
])

COMPONENT_LOGGERS: List[str] = ['app', 'api_routes', 'services', 'utils', 'models', 'requests', 'audit', 'external']


class JSONFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line, carrying the correlation
    id and request summary when logged inside a request.
    """

    def __init__(self):
        super().__init__()
        self.application_name = "ops_portal"
        self.environment = os.environ.get('FLASK_ENV', 'development')

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'application': self.application_name,
            'environment': self.environment,
        }

        if has_request_context():
            correlation_id = getattr(g, 'correlation_id', None)
            if correlation_id:
                log_data['correlation_id'] = correlation_id
            log_data['request'] = {
                'method': request.method,
                'path': request.path,
                'action': request.args.get('action'),
                'remote_addr': request.remote_addr,
            }

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info),
            }

        extra_fields = {key: value for key, value in record.__dict__.items()
                        if key not in _RESERVED_RECORD_ATTRS}
        if extra_fields:
            log_data['extra'] = extra_fields

        if record.levelno >= logging.ERROR:
            log_data['location'] = {
                'file': record.pathname,
                'function': record.funcName,
                'line': record.lineno,
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class RequestContextFilter(logging.Filter):
    """Injects the correlation id so plain-text formats can show it too"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = getattr(g, 'correlation_id', '-') if has_request_context() else '-'
        return True


def setup_logging(app=None) -> Dict[str, logging.Logger]:
    """
    Configure root logging for the application.
    Returns the component loggers keyed by name.
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    if log_level not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
        log_level = 'INFO'

    use_json_logging = (
        os.environ.get('USE_JSON_LOGGING', 'false').lower() == 'true' or
        os.environ.get('FLASK_ENV') == 'production'
    )

    if use_json_logging:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(name)s [%(correlation_id)s]: %(message)s'
        )

    context_filter = RequestContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)

    handlers = [console_handler]

    # Error file is skipped under test so runs leave no files behind
    testing = app is not None and app.config.get('TESTING')
    log_dir = os.environ.get('LOG_DIR', 'logs')
    if not testing:
        os.makedirs(log_dir, exist_ok=True)
        error_handler = logging.FileHandler(os.path.join(log_dir, 'error.log'))
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(context_filter)
        handlers.append(error_handler)

        if os.environ.get('ENABLE_FILE_LOGGING', 'false').lower() == 'true':
            file_handler = logging.FileHandler(os.path.join(log_dir, 'application.log'))
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(context_filter)
            handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    loggers = {}
    for name in COMPONENT_LOGGERS:
        loggers[name] = logging.getLogger(name)
        loggers[name].setLevel(log_level)

    if os.environ.get('FLASK_ENV') == 'production':
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
        logging.getLogger('twilio.http_client').setLevel(logging.WARNING)

    if app:
        app.logger.info(f"Logging configured: level={log_level}, json_format={use_json_logging}")

    return loggers


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def assign_correlation_id():
    """Use the caller's X-Request-ID when given, otherwise mint one"""
    if has_request_context():
        g.correlation_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex


def log_request_start():
    """Mark the start of request processing for timing"""
    if has_request_context():
        assign_correlation_id()
        g.request_start_time = datetime.now().timestamp()


def log_request_end(response):
    """Log request completion with timing and response info"""
    if has_request_context() and hasattr(g, 'request_start_time'):
        duration = datetime.now().timestamp() - g.request_start_time

        extra_data = {
            'method': request.method,
            'path': request.path,
            'action': request.args.get('action'),
            'status_code': response.status_code,
            'duration_ms': round(duration * 1000, 2),
        }

        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400:
            log_level = logging.WARNING
        elif duration > 5.0:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        get_logger('requests').log(
            log_level, f"Request completed: {request.method} {request.path} -> {response.status_code}",
            extra=extra_data,
        )
        if getattr(g, 'correlation_id', None):
            response.headers['X-Request-ID'] = g.correlation_id

    return response
