"""
Root logging setup and Sentry error tracking.

Sentry is optional: without SENTRY_DSN nothing is sent and captured errors
are written to the log instead.
"""

import logging
import sys
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from dockmanager.core.config import settings

FILTERED = '[FILTERED]'

# Node payloads carry SSH private keys and TLS material
SENSITIVE_KEYS = {
    'password', 'token', 'secret', 'authorization', 'cookie',
    'api_key', 'access_token', 'refresh_token', 'private_key',
    'ssh_key', 'tls_key', 'tls_cert', 'tls_ca', 'x-api-key', 'x-auth-token',
}


def init_sentry():
    """Start the Sentry SDK when SENTRY_DSN is set."""
    if not settings.SENTRY_DSN:
        logging.info("Sentry disabled (no SENTRY_DSN)")
        return

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT or settings.MODE,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
            ],
            before_send=filter_sensitive_data,
            send_default_pii=False,
            attach_stacktrace=True,
            max_breadcrumbs=50,
        )
        logging.info(f"Sentry enabled for environment {settings.SENTRY_ENVIRONMENT or settings.MODE}")
    except Exception as e:
        logging.error(f"Sentry initialization failed: {e}")


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: FILTERED if str(key).lower() in SENSITIVE_KEYS else _scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    return value


def filter_sensitive_data(event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """
    Sentry before_send hook.

    Masks credentials in the request body, headers and attached contexts,
    at any nesting depth. Keys are matched case-insensitively.
    """
    request = event.get('request')
    if isinstance(request, dict):
        for part in ('data', 'headers', 'cookies'):
            if part in request:
                request[part] = _scrub(request[part])

    if 'contexts' in event:
        event['contexts'] = _scrub(event['contexts'])
    if 'extra' in event:
        event['extra'] = _scrub(event['extra'])

    return event


def capture_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None
) -> Optional[str]:
    """
    Report an exception to Sentry in an isolated scope.

    Args:
        error: The exception
        context: Named context blocks, e.g. {"node": {"node_id": "..."}}
        tags: Searchable tags

    Returns:
        The Sentry event id, or None when Sentry is disabled
    """
    if not settings.SENTRY_DSN:
        logging.error(f"Unreported error: {error}", exc_info=error)
        return None

    with sentry_sdk.new_scope() as scope:
        for name, block in (context or {}).items():
            scope.set_context(name, block)
        for name, value in (tags or {}).items():
            scope.set_tag(name, value)

        event_id = sentry_sdk.capture_exception(error)
        logging.info(f"Error reported to Sentry: {event_id}")
        return event_id


def setup_logging():
    """Send root logging to stdout at settings.LOG_LEVEL."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)-8s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    logging.info(f"Logging configured at {logging.getLevelName(level)}")
