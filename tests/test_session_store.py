"""
Session Store Tests
===================

In-memory and Redis stores (Redis is mocked; no server needed).
"""

import json
import threading
import time

import pytest

import session_store as store_module
from coach_errors import SessionBusy
from session_store import (
    LOCK_KEY_PREFIX,
    LOCK_TIMEOUT_SECONDS,
    LOCK_WAIT_SECONDS,
    OUTCOMES_KEY_PREFIX,
    SESSION_KEY_PREFIX,
    InMemorySessionStore,
    RedisSessionStore,
    create_session_store,
    new_record,
    new_session_id,
    touch
)


def test_new_record_shape(normal_knee_state):
    record = new_record('abc', normal_knee_state)

    assert record['session_id'] == 'abc'
    assert record['state'] == normal_knee_state
    assert record['current_index'] == 0
    assert record['created_at'] == record['updated_at']


def test_touch_returns_updated_copy(normal_knee_state):
    record = new_record('abc', normal_knee_state)
    reset = dict(normal_knee_state, mode='RESET')

    updated = touch(record, reset, 0)

    assert updated['state']['mode'] == 'RESET'
    assert record['state']['mode'] == 'NORMAL'
    assert updated['created_at'] == record['created_at']


def test_session_ids_are_unique():
    assert len({new_session_id() for _ in range(50)}) == 50


def test_in_memory_round_trip(session_store, normal_knee_state):
    record = new_record('s1', normal_knee_state)
    session_store.save('s1', record)

    assert session_store.load('s1') == record
    assert session_store.load('missing') is None
    assert session_store.ping() is True

    session_store.delete('s1')
    assert session_store.load('s1') is None


def test_in_memory_store_detaches_records(session_store, normal_knee_state):
    """Mutating a record after save (or after load) does not change the stored copy."""
    record = new_record('s1', normal_knee_state)
    session_store.save('s1', record)
    record['state']['plan'].append('EXTRA')

    loaded = session_store.load('s1')
    loaded['current_index'] = 5

    assert 'EXTRA' not in session_store.load('s1')['state']['plan']
    assert session_store.load('s1')['current_index'] == 0


@pytest.mark.integration
def test_redis_store_uses_setex_with_ttl(mock_redis, normal_knee_state):
    store = RedisSessionStore(mock_redis, ttl=600)
    record = new_record('s1', normal_knee_state)

    store.save('s1', record)

    key = f"{SESSION_KEY_PREFIX}s1"
    mock_redis.setex.assert_called_once_with(key, 600, json.dumps(record))
    assert store.load('s1') == record


def test_redis_store_missing_and_delete(mock_redis, normal_knee_state):
    store = RedisSessionStore(mock_redis)
    assert store.load('nope') is None

    store.save('s1', new_record('s1', normal_knee_state))
    store.delete('s1')

    mock_redis.delete.assert_called_once_with(f"{SESSION_KEY_PREFIX}s1")
    assert store.load('s1') is None


def test_redis_store_ping(mock_redis):
    assert RedisSessionStore(mock_redis).ping() is True


def test_create_session_store_without_url():
    assert isinstance(create_session_store(''), InMemorySessionStore)


def test_create_session_store_with_url():
    store = create_session_store('redis://localhost:6379/0')

    assert isinstance(store, RedisSessionStore)
    assert store.prefix == SESSION_KEY_PREFIX


def test_new_record_carries_owner_and_check_in(normal_knee_state):
    record = new_record('s1', normal_knee_state, profile_id='p1', check_in={'body_part': 'knee'})

    assert record['profile_id'] == 'p1'
    assert record['check_in'] == {'body_part': 'knee'}
    assert record['feedback_count'] == 0
    assert record['regressed'] is False


@pytest.mark.critical
def test_in_memory_lock_serialises_updates(session_store, normal_knee_state):
    """Concurrent read-modify-write sequences under the lock never lose an update."""
    session_store.save('s1', new_record('s1', normal_knee_state))

    def bump():
        with session_store.lock('s1'):
            record = session_store.load('s1')
            time.sleep(0.05)
            record['current_index'] += 1
            session_store.save('s1', record)

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert session_store.load('s1')['current_index'] == 4


def test_in_memory_lock_times_out(session_store, monkeypatch):
    monkeypatch.setattr(store_module, 'LOCK_WAIT_SECONDS', 0.05)

    with session_store.lock('s1'):
        with pytest.raises(SessionBusy):
            with session_store.lock('s1'):
                pass

    # Released after the outer block
    with session_store.lock('s1'):
        pass


def test_in_memory_locks_are_per_name(session_store):
    with session_store.lock('s1'):
        with session_store.lock('s2'):
            pass


def test_in_memory_outcomes_round_trip(session_store):
    data = {'body_part': 'knee', 'check_ins': []}
    session_store.save_outcomes('p1:knee', data)

    assert session_store.load_outcomes('p1:knee') == data
    assert session_store.load_outcomes('p2:knee') is None
    assert session_store.load('p1:knee') is None


@pytest.mark.integration
def test_redis_lock_uses_named_key(mock_redis):
    store = RedisSessionStore(mock_redis)

    with store.lock('s1'):
        pass

    mock_redis.lock.assert_called_once_with(
        f"{LOCK_KEY_PREFIX}s1",
        timeout=LOCK_TIMEOUT_SECONDS,
        blocking_timeout=LOCK_WAIT_SECONDS
    )
    mock_redis.lock.return_value.release.assert_called_once()


def test_redis_lock_busy(mock_redis):
    mock_redis.lock.return_value.acquire.return_value = False
    store = RedisSessionStore(mock_redis)

    with pytest.raises(SessionBusy):
        with store.lock('s1'):
            pass

    mock_redis.lock.return_value.release.assert_not_called()


def test_redis_outcomes_do_not_expire(mock_redis):
    store = RedisSessionStore(mock_redis)
    data = {'body_part': 'foot', 'check_ins': []}

    store.save_outcomes('p1:foot', data)

    mock_redis.set.assert_called_once_with(f"{OUTCOMES_KEY_PREFIX}p1:foot", json.dumps(data))
    mock_redis.setex.assert_not_called()
    assert store.load_outcomes('p1:foot') == data
