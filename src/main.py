"""Main Flask web server for URL validation."""
import logging
import os
import sys
from flask import Flask
from flask_cors import CORS

from config import DEFAULT_CORS_ORIGINS

# Configure structured logging
_logging_configured = False
import json as _json


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs logs as JSON objects for easier parsing by log aggregators
    like Loki, Elasticsearch, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, 'hostname'):
            log_data['hostname'] = record.hostname
        if hasattr(record, 'category'):
            log_data['category'] = record.category

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return _json.dumps(log_data)


def setup_logging():
    """Configure application logging.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO
        LOG_FORMAT: Log output format ('text' or 'json'). Default: text
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    log_format = os.environ.get('LOG_FORMAT', 'text').lower()

    # Create appropriate formatter based on LOG_FORMAT
    if log_format == 'json':
        formatter = JSONFormatter(datefmt='%Y-%m-%dT%H:%M:%S')
    else:
        formatter = logging.Formatter(
            '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    # Console handler only - Docker captures stdout for logging
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # Configure root logger - clear existing handlers first to prevent duplicates
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.addHandler(console_handler)

    # Set specific logger levels
    logging.getLogger('werkzeug').setLevel(logging.INFO)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    # Create application loggers
    for name in ['urlgate.api', 'urlgate.ssrf', 'urlgate.dns', 'urlgate.links']:
        logging.getLogger(name).setLevel(getattr(logging, log_level, logging.INFO))


setup_logging()
logger = logging.getLogger('urlgate.app')


# Initialize Flask app
app = Flask(__name__)

# Enable CORS for the web UI origins
cors_origins = [o.strip() for o in os.environ.get('CORS_ORIGINS', DEFAULT_CORS_ORIGINS).split(',') if o.strip()]
CORS(app, resources={
    r"/api/*": {
        "origins": cors_origins,
        "methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Content-Type"]
    }
})

# Import and register API blueprint
from api import api as api_blueprint, log_request
app.register_blueprint(api_blueprint)


@app.route('/health')
@log_request
def health_check():
    """Health check endpoint."""
    try:
        from version import __version__
        version = __version__
    except ImportError:
        version = 'unknown'

    return {'status': 'ok', 'version': version}


# Startup initialization (runs when module is imported by gunicorn)
def _startup():
    """Initialize the application on startup."""
    from ssrf_guard import get_validator

    try:
        from version import __version__
        logger.info(f"URL Gate v{__version__} starting...")
    except ImportError:
        logger.warning("Could not import version")

    # Build the validator now so configuration errors surface at boot
    validator = get_validator()
    logger.info(
        f"SSRF validator ready: {len(validator.table)} blocked ranges, "
        f"{len(validator.matcher.rules)} hostname rules, "
        f"DNS timeout {validator.config.dns_timeout_ms}ms"
    )
    logger.info(f"CORS origins: {', '.join(cors_origins) or 'none'}")


_startup()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '8000')))
