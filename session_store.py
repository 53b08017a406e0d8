"""
Session Store for the Rehab Coach service

Persists the caller-side session record between HTTP requests. The coach
core never touches storage; the API loads a record, calls the core, and
saves the result back.

Record shape:
    {
        'session_id': str,
        'profile_id': str or None (owner of the outcome history),
        'state': CoachState,
        'current_index': int,
        'check_in': redacted CheckIn that started the session,
        'feedback_count': int,
        'regressed': True once any feedback triggered RESET,
        'created_at': ISO timestamp,
        'updated_at': ISO timestamp,
    }

Usage:
    from session_store import create_session_store

    store = create_session_store()          # Redis if REDIS_URL is set
    store.save(session_id, record)
    record = store.load(session_id)         # None if missing/expired

    with store.lock(session_id):            # serialise read-modify-write
        record = store.load(session_id)
        ...
        store.save(session_id, record)

Outcome histories (see outcomes.py) are kept per profile and body part with
save_outcomes / load_outcomes and do not expire.
"""

import json
import uuid
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

import redis

from coach_config import REDIS_URL, SESSION_TTL_SECONDS
from coach_errors import SessionBusy

logger = logging.getLogger("app.session_store")

SESSION_KEY_PREFIX = "coach_session:"
OUTCOMES_KEY_PREFIX = "coach_outcomes:"
LOCK_KEY_PREFIX = "coach_lock:"

# Lock expiry guards against a crashed holder; waiters give up after LOCK_WAIT_SECONDS
LOCK_TIMEOUT_SECONDS = 10
LOCK_WAIT_SECONDS = 5


def new_session_id():
    return uuid.uuid4().hex


def new_record(session_id, state, current_index=0, profile_id=None, check_in=None):
    now = datetime.now(timezone.utc).isoformat()
    return {
        'session_id': session_id,
        'profile_id': profile_id,
        'state': state,
        'current_index': current_index,
        'check_in': check_in,
        'feedback_count': 0,
        'regressed': False,
        'created_at': now,
        'updated_at': now,
    }


def touch(record, state, current_index):
    """Return a copy of a record with a new state and position"""
    updated = dict(record)
    updated['state'] = state
    updated['current_index'] = current_index
    updated['updated_at'] = datetime.now(timezone.utc).isoformat()
    return updated


class InMemorySessionStore:
    """
    Process-local store for development and tests.

    Records are kept serialised so a caller can never mutate a stored
    record through a reference it still holds.
    """

    def __init__(self):
        self._sessions = {}
        self._outcomes = {}
        self._locks = {}
        self._lock = threading.Lock()

    def save(self, session_id, record):
        payload = json.dumps(record)
        with self._lock:
            self._sessions[session_id] = payload

    def load(self, session_id):
        with self._lock:
            payload = self._sessions.get(session_id)
        if payload is None:
            return None
        return json.loads(payload)

    def delete(self, session_id):
        with self._lock:
            self._sessions.pop(session_id, None)

    def save_outcomes(self, key, data):
        payload = json.dumps(data)
        with self._lock:
            self._outcomes[key] = payload

    def load_outcomes(self, key):
        with self._lock:
            payload = self._outcomes.get(key)
        if payload is None:
            return None
        return json.loads(payload)

    @contextmanager
    def lock(self, name):
        """Hold the named lock for a load → update → save sequence"""
        with self._lock:
            named = self._locks.setdefault(name, threading.Lock())
        if not named.acquire(timeout=LOCK_WAIT_SECONDS):
            logger.warning(f"⚠️ Timed out waiting for lock on {name}")
            raise SessionBusy(name)
        try:
            yield
        finally:
            named.release()

    def ping(self):
        return True


class RedisSessionStore:
    """
    Redis-backed store. One SETEX per session save; records expire after the
    TTL. Outcome histories are stored with SET and never expire. Locks use
    redis-py's Lock so concurrent workers serialise on the same key.
    """

    def __init__(self, client, ttl=SESSION_TTL_SECONDS, prefix=SESSION_KEY_PREFIX):
        self.client = client
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, session_id):
        return f"{self.prefix}{session_id}"

    def save(self, session_id, record):
        self.client.setex(self._key(session_id), self.ttl, json.dumps(record))

    def load(self, session_id):
        payload = self.client.get(self._key(session_id))
        if payload is None:
            return None
        return json.loads(payload)

    def delete(self, session_id):
        self.client.delete(self._key(session_id))

    def save_outcomes(self, key, data):
        self.client.set(f"{OUTCOMES_KEY_PREFIX}{key}", json.dumps(data))

    def load_outcomes(self, key):
        payload = self.client.get(f"{OUTCOMES_KEY_PREFIX}{key}")
        if payload is None:
            return None
        return json.loads(payload)

    @contextmanager
    def lock(self, name):
        """Hold the named lock for a load → update → save sequence"""
        lock = self.client.lock(
            f"{LOCK_KEY_PREFIX}{name}",
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_WAIT_SECONDS
        )
        if not lock.acquire():
            logger.warning(f"⚠️ Timed out waiting for lock on {name}")
            raise SessionBusy(name)
        try:
            yield
        finally:
            lock.release()

    def ping(self):
        return bool(self.client.ping())


def create_session_store(redis_url=None):
    """
    Build the session store for the service.

    Args:
        redis_url: Redis connection URL (default: REDIS_URL). Empty means
            an in-memory store.

    Returns:
        RedisSessionStore or InMemorySessionStore
    """
    redis_url = REDIS_URL if redis_url is None else redis_url
    if not redis_url:
        logger.warning("⚠️ REDIS_URL not set. Using in-memory session store.")
        return InMemorySessionStore()

    client = redis.Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True
    )
    logger.info("✅ Redis session store configured")
    return RedisSessionStore(client)
