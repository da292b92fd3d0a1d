"""
Ops Routes
==========

Public health endpoint: link store reachability and process uptime.
"""

import time
from datetime import datetime, timezone

from flask import current_app, jsonify

from linkpage.core.errors import LinkPageError
from linkpage.core.session import get_linkpage
from . import ops_health_bp


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def _check_store():
    """Cheap read against the link store."""
    store = get_linkpage().context.store
    started = time.monotonic()
    try:
        info = store.ping()
    except LinkPageError as e:
        current_app.logger.warning(f"health: store check failed: {e}")
        return {'ok': False, 'backend': store.name, 'error': e.message}

    result = {'ok': True, 'latency_ms': round((time.monotonic() - started) * 1000, 1)}
    result.update(info or {})
    result.setdefault('backend', store.name)
    return result


def _get_uptime():
    """Process uptime since LinkPage was initialised."""
    uptime_seconds = max(0.0, time.time() - get_linkpage().started_at)

    days = int(uptime_seconds // 86400)
    hours = int((uptime_seconds % 86400) // 3600)
    minutes = int((uptime_seconds % 3600) // 60)

    return {
        'seconds': round(uptime_seconds),
        'formatted': f'{days}d {hours}h {minutes}m',
        'days': days,
    }


def _build_health_response():
    """Build the health check response dict."""
    store = _check_store()
    status = 'ok' if store['ok'] else 'critical'

    result = {
        'status': status,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'checks': {
            'store': store,
            'uptime': _get_uptime(),
        },
    }
    return result, status


# ---------------------------------------------------------------------------
# Public routes (ops_health_bp, no auth)
# ---------------------------------------------------------------------------

@ops_health_bp.route('/')
@ops_health_bp.route('')
def health_check():
    """Public health endpoint for uptime monitors."""
    data, status = _build_health_response()
    code = 503 if status == 'critical' else 200
    return jsonify(data), code
