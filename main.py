import os
import sys
import json
import logging
from datetime import datetime
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from coach_api import coach_api
from coach_config import APP_VERSION, ENVIRONMENT, LOG_LEVEL, SENTRY_DSN
from coach_errors import (
    CoachError,
    ConfigurationError,
    InvalidCalibrationProfile,
    InvalidCheckIn,
    InvalidCoachState,
    InvalidFeedback,
    SessionBlocked,
    SessionBusy,
    UnknownDrillId
)
from data_sanitization import scrub_event
from session_store import create_session_store


# ---- Google Cloud friendly structured logging ----
class GCPJsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        return json.dumps(payload, ensure_ascii=False)

_root = logging.getLogger()                 # root logger
_root.handlers = []                         # remove default handlers
_stream = logging.StreamHandler(sys.stdout) # Cloud Run reads stdout/stderr
_stream.setFormatter(GCPJsonFormatter())
_root.addHandler(_stream)
_root.setLevel(LOG_LEVEL)                   # use DEBUG during troubleshooting
# --------------------------------------------------

logger = logging.getLogger("app")           # module logger you can keep using


# ─── SENTRY ERROR TRACKING ──────────────────────────────────────────

def sanitize_sentry_event(event, hint):
    """
    Strip user-entered text and request identifiers from Sentry events.

    Check-in free text and drill notes can describe symptoms in the user's
    own words, so request bodies never leave the process verbatim.
    """
    event = scrub_event(event)

    if 'request' in event:
        # Sanitize query parameters
        if 'query_string' in event['request']:
            event['request']['query_string'] = '[REDACTED]'

        # Sanitize cookies (may contain session tokens)
        if 'cookies' in event['request']:
            event['request']['cookies'] = '[REDACTED]'

        # Sanitize headers (may contain auth tokens)
        if 'headers' in event['request']:
            headers = event['request']['headers']
            if isinstance(headers, dict):
                for key in ['Authorization', 'Cookie', 'X-Api-Key']:
                    if key in headers:
                        headers[key] = '[REDACTED]'

    # Sanitize user context (keep only anonymous identifier)
    if 'user' in event:
        user = event['user']
        if isinstance(user, dict):
            event['user'] = {k: v for k, v in user.items() if k == 'id'}

    return event


if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(
                level=logging.INFO,        # Capture info and above as breadcrumbs
                event_level=logging.ERROR  # Send errors as events
            ),
        ],
        environment=ENVIRONMENT,

        # Performance Monitoring
        traces_sample_rate=0.1,  # 10% of transactions

        # Never send PII automatically
        send_default_pii=False,
        before_send=sanitize_sentry_event,

        # Release tracking
        release=APP_VERSION,

        attach_stacktrace=True,
        max_breadcrumbs=50,
    )
    logger.info(f"✅ Sentry initialized for environment: {ENVIRONMENT}")
else:
    logger.warning("⚠️  Sentry DSN not configured - error tracking disabled")


# ═══════════════════════════════════════════════════════════════════
# COACH ERROR MAPPING
# ═══════════════════════════════════════════════════════════════════

def coach_error_response(error):
    """Map a coach error to (payload, status)"""
    if isinstance(error, (InvalidCheckIn, InvalidFeedback, InvalidCoachState)):
        return {'error': 'Validation failed', 'message': str(error), 'details': error.errors}, 400

    if isinstance(error, InvalidCalibrationProfile):
        # Includes InvalidZoneIndex: the stored calibration cannot be used
        return {'error': 'Invalid calibration', 'message': str(error), 'recalibrate': True}, 422

    if isinstance(error, UnknownDrillId):
        return {'error': 'Unknown drill', 'message': str(error)}, 404

    if isinstance(error, SessionBlocked):
        return {'error': 'Session blocked', 'message': str(error), 'flag': error.flag}, 409

    if isinstance(error, SessionBusy):
        return {'error': 'Session busy', 'message': 'Another update for this session is in progress. Try again.'}, 409

    if isinstance(error, ConfigurationError):
        return {'error': 'Configuration error', 'message': 'Coach thresholds are misconfigured'}, 500

    return {'error': 'Coach error', 'message': str(error)}, 500


def register_error_handlers(app):

    @app.errorhandler(CoachError)
    def handle_coach_error(error):
        payload, status = coach_error_response(error)
        if status >= 500:
            logger.error(f"Coach error on {request.path}: {error}", exc_info=True)
        else:
            logger.warning(f"{type(error).__name__} on {request.path}: {error}")
        return jsonify(payload), status

    @app.errorhandler(404)
    def handle_404_error(error):
        """Handle 404 Not Found errors"""
        logger.warning(f"404 error: {request.path}")
        return jsonify({'error': 'Not found', 'message': 'The requested resource does not exist'}), 404

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """Catch-all handler for unexpected errors"""
        if isinstance(error, HTTPException):
            return jsonify({'error': error.name, 'message': error.description}), error.code

        # Log the full error with stack trace
        logger.error(f"Unexpected error: {error}", exc_info=True)

        # Don't expose internal error details to users
        return jsonify({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred',
            'timestamp': datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')
        }), 500


# ═══════════════════════════════════════════════════════════════════
# APP FACTORY
# ═══════════════════════════════════════════════════════════════════

def create_app(session_store=None):
    """
    Build the Flask app.

    Args:
        session_store: Store to use (default: Redis if REDIS_URL is set,
            otherwise in-memory)
    """
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024  # 1MB

    app.extensions['coach_session_store'] = session_store or create_session_store()

    app.register_blueprint(coach_api)
    register_error_handlers(app)

    @app.route("/api/health")
    def health_check():
        """
        Health check endpoint for monitoring.

        Returns:
            200 OK if the session store is reachable
            503 Service Unavailable otherwise

        Response format:
            {
                "status": "healthy" | "unhealthy",
                "timestamp": "2025-12-19T10:30:00Z",
                "version": "1.0.0",
                "checks": {"session_store": "ok" | "error"}
            }
        """
        health_status = {
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'version': APP_VERSION,
            'checks': {}
        }

        # Check session store connection
        try:
            app.extensions['coach_session_store'].ping()
            health_status['checks']['session_store'] = 'ok'
            logger.debug("Health check: session store OK")
        except Exception as e:
            health_status['checks']['session_store'] = 'error'
            health_status['status'] = 'unhealthy'
            logger.error(f"Health check: session store failed - {str(e)}")

        status_code = 200 if health_status['status'] == 'healthy' else 503
        return jsonify(health_status), status_code

    logger.info(f"Rehab coach app created ({ENVIRONMENT}, v{APP_VERSION})")
    return app


app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8080))
    app.run(host='0.0.0.0', port=port, debug=ENVIRONMENT == 'development')
