"""
Test Configuration and Fixtures for the Rehab Coach
===================================================

This file contains pytest fixtures used across all tests.
Fixtures provide reusable test setup and teardown.
"""

import pytest
import os
import sys
from unittest.mock import MagicMock

# Add parent directory to path so we can import app modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


@pytest.fixture(scope='session')
def test_env():
    """
    Set up test environment variables.
    These override production settings during tests.
    """
    test_vars = {
        'FLASK_ENV': 'testing',
        'TESTING': 'true',

        # Disable external services during tests
        'SENTRY_DSN': '',  # No Sentry in tests
        'REDIS_URL': '',   # In-memory session store

        'ENVIRONMENT': 'testing',
    }

    # Set test environment variables
    for key, value in test_vars.items():
        os.environ[key] = value

    yield test_vars


@pytest.fixture(scope='function')
def session_store():
    """Fresh in-memory session store per test"""
    from session_store import InMemorySessionStore
    return InMemorySessionStore()


@pytest.fixture(scope='function')
def app(test_env, session_store):
    """
    Create Flask app instance for testing.

    Returns:
        Flask app in testing mode, backed by an in-memory session store
    """
    # Import here to avoid issues with environment variables
    from main import create_app

    flask_app = create_app(session_store)
    flask_app.config['TESTING'] = True

    return flask_app


@pytest.fixture(scope='function')
def client(app):
    """
    Create Flask test client.

    Usage in tests:
        def test_something(client):
            response = client.get('/api/health')
            assert response.status_code == 200
    """
    return app.test_client()


@pytest.fixture(scope='function')
def mock_redis():
    """
    Mock Redis client for store tests.
    Keeps values in a dict so get/setex/delete behave like a real server.
    """
    data = {}
    client = MagicMock()

    def _setex(key, ttl, value):
        data[key] = value
        return True

    def _set(key, value):
        data[key] = value
        return True

    client.setex.side_effect = _setex
    client.set.side_effect = _set
    client.get.side_effect = lambda key: data.get(key)
    client.delete.side_effect = lambda key: int(data.pop(key, None) is not None)
    client.ping.return_value = True
    client.data = data

    return client


@pytest.fixture(scope='function')
def sample_check_in():
    """
    Calm knee check-in: low pain, good confidence, no red flags.
    """
    return {
        'body_part': 'knee',
        'pain_level': 2,
        'confidence_level': 8,
        'sensations': ['stiff'],
    }


@pytest.fixture(scope='function')
def sample_calibration():
    """
    Knee calibration with a severe zone at 45-60° and a mild one at 90-110°.
    """
    return {
        'body_part': 'knee',
        'problem_zones': [
            {'zone_index': 3, 'severity': 3, 'issue_types': ['pain']},
            {'zone_index': 6, 'severity': 1},
        ],
        'primary_goal': 'return_to_sport',
    }


@pytest.fixture(scope='function')
def normal_knee_state():
    """Knee CoachState in NORMAL with a short plan"""
    return {
        'body_part': 'knee',
        'mode': 'NORMAL',
        'plan': ['FOOT_TRIPOD', 'GLUTE_BRIDGE_HEEL_DRAG', 'WALL_BOW'],
        'reasoning': 'Pain and confidence are both in range. Full plan today.',
    }
