# logging_config.py

import os
import re
import sys
import logging
import logging.handlers
from pathlib import Path
from pythonjsonlogger import jsonlogger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

_CONTEXT_FIELDS = ("service_name", "project_id", "page_id", "url", "status", "step")


class SensitiveDataFilter(logging.Filter):

    SENSITIVE_KEYS = [
        'password', 'token', 'api_key', 'secret', 'authorization',
        'bearer', 'apikey', 'x-goog-api-key', 'service_key',
        'gemini_api_key', 'storage_service_key', 'postgres_password',
    ]

    PATTERNS = [
        (r'(api[_-]?key\s*[=:]\s*)[^\s&]+', r'\1***MASKED***'),
        (r'(key=)[A-Za-z0-9_\-]{20,}', r'\1***MASKED***'),
        (r'(token\s*[=:]\s*)[^\s&]+', r'\1***MASKED***'),
        (r'(password\s*[=:]\s*)[^\s&]+', r'\1***MASKED***'),
        (r'(AIza[0-9A-Za-z_\-]{20,})', r'AIza***MASKED***'),
        (r'(Bearer\s+)[^\s]+', r'\1***MASKED***'),
        (r'(postgres(?:ql)?(?:\+asyncpg)?://[^:/\s]+:)[^@\s]+(@)', r'\1***MASKED***\2'),
    ]

    def filter(self, record):
        if hasattr(record, 'msg'):
            msg = str(record.msg)
            lowered = msg.lower()
            if any(key in lowered for key in self.SENSITIVE_KEYS) or 'AIza' in msg or '://' in msg:
                record.msg = self._mask_sensitive_data(msg)

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_if_sensitive(v) for k, v in record.args.items()}
            else:
                record.args = tuple(self._mask_if_sensitive(arg) for arg in record.args)

        return True

    def _mask_sensitive_data(self, text):
        for pattern, replacement in self.PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def _mask_if_sensitive(self, value):
        if isinstance(value, str):
            return self._mask_sensitive_data(value)
        return value


class CustomJsonFormatter(jsonlogger.JsonFormatter):

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record['service' if field == 'service_name' else field] = getattr(record, field)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


def _build_formatter():
    if ENVIRONMENT == "production":
        return CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    return logging.Formatter(
        '[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logging(service_name="ux_audit", log_to_files=True):

    logger = logging.getLogger()
    logger.setLevel(LOG_LEVEL)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(_build_formatter())
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if log_to_files:
        LOG_DIR.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            LOG_DIR / f"{service_name}.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setLevel(LOG_LEVEL)
        file_handler.setFormatter(_build_formatter())
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            LOG_DIR / f"{service_name}_error.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(_build_formatter())
        error_handler.addFilter(sensitive_filter)
        logger.addHandler(error_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)

    return logger


def get_logger(name, service_name=None):
    logger = logging.getLogger(name)

    if service_name:
        logger = logging.LoggerAdapter(logger, {'service_name': service_name})

    return logger


def log_external_api_call(logger, service_name, endpoint, duration, status_code, error=None):
    extra = {
        'api_service': service_name,
        'endpoint': endpoint,
        'duration_ms': round(duration * 1000, 2),
        'status_code': status_code,
    }

    if error:
        logger.error(
            f"External API call failed: {service_name} - {endpoint}",
            extra={**extra, 'error': str(error)},
            exc_info=error
        )
    else:
        logger.info(
            f"External API call: {service_name} - {endpoint}",
            extra=extra
        )


class AuditLogger:

    def __init__(self):
        self.logger = get_logger('ux_audit')

    def log_project_created(self, project_id, seed_url):
        self.logger.info(
            f"Project created for {seed_url}",
            extra={'project_id': project_id, 'url': seed_url}
        )

    def log_run_started(self, project_id, seed_url, page_budget):
        self.logger.info(
            f"Audit started: {seed_url} (limit: {page_budget} pages)",
            extra={'project_id': project_id, 'url': seed_url, 'page_budget': page_budget}
        )

    def log_run_completed(self, project_id, pages_scanned, overall, duration):
        self.logger.info(
            f"Audit completed: {pages_scanned} pages, score {overall} in {duration:.2f}s",
            extra={
                'project_id': project_id,
                'pages_scanned': pages_scanned,
                'overall': overall,
                'duration_seconds': round(duration, 2)
            }
        )

    def log_run_failed(self, project_id, error):
        self.logger.error(
            f"Audit failed: {error}",
            extra={'project_id': project_id},
            exc_info=error
        )

    def log_status_write_failed(self, project_id, error):
        self.logger.error(
            f"Could not update project status: {error}",
            extra={'project_id': project_id},
            exc_info=error
        )

    def log_status_transition(self, project_id, status, step, message):
        self.logger.info(
            f"Status {status} (step {step}/5): {message}",
            extra={'project_id': project_id, 'status': status, 'step': step}
        )

    def log_transition_ignored(self, project_id, current, requested):
        self.logger.debug(
            f"Ignoring {requested}: project already {current}",
            extra={'project_id': project_id, 'status': current}
        )

    def log_page_visiting(self, project_id, url, position, budget):
        self.logger.info(
            f"Visiting ({position}/{budget}): {url}",
            extra={'project_id': project_id, 'url': url}
        )

    def log_page_skipped(self, project_id, url, error):
        self.logger.warning(
            f"Failed to render page {url}: {error}",
            extra={'project_id': project_id, 'url': url}
        )

    def log_page_dropped(self, project_id, url, error):
        self.logger.warning(
            f"Save/upload error for {url}: {error}",
            extra={'project_id': project_id, 'url': url}
        )

    def log_page_persisted(self, project_id, page_id, url):
        self.logger.debug(
            f"Page saved: {url}",
            extra={'project_id': project_id, 'page_id': page_id, 'url': url}
        )

    def log_analysis_failed(self, project_id, page_id, reason):
        self.logger.warning(
            f"Analysis failed: {reason}",
            extra={'project_id': project_id, 'page_id': page_id}
        )

    def log_links_discovered(self, project_id, url, found, queued):
        self.logger.debug(
            f"Links on {url}: {found} found, {queued} queued",
            extra={'project_id': project_id, 'url': url, 'links_found': found, 'links_queued': queued}
        )

    def log_link_extraction_failed(self, project_id, url, error):
        self.logger.warning(
            f"Link extraction failed on {url}: {error}",
            extra={'project_id': project_id, 'url': url}
        )

    def log_crawl_finished(self, project_id, pages_created, urls_attempted, frontier_left):
        self.logger.info(
            f"Crawl finished: {pages_created} pages saved, {urls_attempted} URLs attempted",
            extra={
                'project_id': project_id,
                'pages_created': pages_created,
                'urls_attempted': urls_attempted,
                'frontier_left': frontier_left
            }
        )

    def log_scores_aggregated(self, project_id, overall, breakdown, pages_scored, pages_total):
        self.logger.info(
            f"Final score: {overall} (pages: {pages_scored}/{pages_total})",
            extra={'project_id': project_id, 'overall': overall, 'breakdown': breakdown}
        )
