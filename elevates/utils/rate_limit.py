"""
In-memory login rate limiter.

Tracks attempts per identifier (client IP) in a fixed window. State is
process local and resets on restart.
"""

import threading
import time

MAX_ATTEMPTS = 5
WINDOW_SECONDS = 15 * 60
CLEANUP_THRESHOLD = 100

_attempts = {}
_lock = threading.Lock()


def _cleanup(now):
    expired = [key for key, entry in _attempts.items() if entry['reset_at'] <= now]
    for key in expired:
        del _attempts[key]


def check_rate_limit(identifier):
    """
    Record an attempt for identifier and report whether it is allowed.

    Returns:
        dict: {'allowed': bool, 'remaining': int, 'resetIn': seconds until the window resets}
    """
    now = time.time()
    with _lock:
        if len(_attempts) > CLEANUP_THRESHOLD:
            _cleanup(now)

        entry = _attempts.get(identifier)
        if entry is None or entry['reset_at'] <= now:
            _attempts[identifier] = {'count': 1, 'reset_at': now + WINDOW_SECONDS}
            return {'allowed': True, 'remaining': MAX_ATTEMPTS - 1, 'resetIn': WINDOW_SECONDS}

        reset_in = int(round(entry['reset_at'] - now))
        if entry['count'] >= MAX_ATTEMPTS:
            return {'allowed': False, 'remaining': 0, 'resetIn': reset_in}

        entry['count'] += 1
        return {
            'allowed': True,
            'remaining': MAX_ATTEMPTS - entry['count'],
            'resetIn': reset_in,
        }


def reset_rate_limit(identifier):
    """Forget attempts for identifier (after a successful login)"""
    with _lock:
        _attempts.pop(identifier, None)


def clear_rate_limits():
    with _lock:
        _attempts.clear()
