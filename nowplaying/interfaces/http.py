import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Tuple

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS

from nowplaying.application.service import ListeningService
from nowplaying.crosscutting.logging import CorrelationContext, log_error, log_with_fields
from nowplaying.domain.errors import InvariantViolation, RateLimited, ServiceError, UpstreamError

VERSION = "0.1.0"

TOP_TRACKS_CACHE_CONTROL = 'public, max-age=86400'
PLAYING_CACHE_CONTROL = 'no-cache, no-store'
RECENT_CACHE_CONTROL = 'max-age=180'
ERROR_CACHE_CONTROL = 'no-store'

logger = logging.getLogger(__name__)


def error_status(error: ServiceError) -> int:
    """Map an error kind to the HTTP status reported to the client."""
    if isinstance(error, RateLimited):
        return 429
    if isinstance(error, UpstreamError):
        return 504 if error.timeout else 502
    return 500


def error_response(error: ServiceError) -> Tuple[Response, int]:
    """Build the JSON failure response for a service error."""
    body = {'error': error.kind.value, 'details': error.message}
    if isinstance(error, UpstreamError):
        body['upstreamStatus'] = error.status

    response = jsonify(body)
    response.headers['Cache-Control'] = ERROR_CACHE_CONTROL
    if isinstance(error, RateLimited):
        response.headers['Retry-After'] = str(error.retry_after_s)
    return response, error_status(error)


class HTTPServer:
    """HTTP surface for the listening service: top tracks, now playing, recent plays."""

    def __init__(self, service: ListeningService, host: str = 'localhost',
                 port: int = 3000, debug: bool = False):
        """Initialize HTTP server."""
        self.service = service
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logger
        self.version = VERSION

        # Every origin may read every endpoint.
        CORS(self.app)

        self._setup_request_hooks()
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_request_hooks(self) -> None:
        """Attach request correlation and access logging."""

        @self.app.before_request
        def start_request():
            g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex
            g.started = time.perf_counter()
            g.correlation = CorrelationContext(request_id=g.request_id, endpoint=request.path)
            g.correlation.__enter__()

        @self.app.after_request
        def finish_request(response):
            response.headers['X-Request-ID'] = g.get('request_id', '')
            started = g.get('started')
            duration_ms = int((time.perf_counter() - started) * 1000) if started else 0
            log_with_fields(self.logger, 'INFO', 'Request handled', {
                'method': request.method,
                'path': request.path,
                'status': response.status_code,
                'duration_ms': duration_ms,
            })
            return response

        @self.app.teardown_request
        def reset_correlation(exc):
            correlation = g.pop('correlation', None)
            if correlation is not None:
                correlation.__exit__(None, None, None)

    def _setup_error_handlers(self) -> None:

        @self.app.errorhandler(ServiceError)
        def handle_service_error(error: ServiceError):
            if isinstance(error, InvariantViolation):
                log_error(self.logger, 'Invariant violated', error, level='CRITICAL')
            elif isinstance(error, UpstreamError):
                log_error(self.logger, 'Upstream call failed', error, level='WARNING',
                          upstream_status=error.status)
            else:
                log_error(self.logger, 'Service error', error)
            return error_response(error)

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/', methods=['GET'])
        def top_tracks():
            """Top tracks for the short, medium and long windows."""
            snapshot = self.service.top_tracks()
            response = jsonify(snapshot.to_dict())
            response.headers['Cache-Control'] = TOP_TRACKS_CACHE_CONTROL
            return response

        @self.app.route('/playing', methods=['GET'])
        def playing():
            """Current playback, or null when nothing is playing."""
            state = self.service.now_playing()
            response = jsonify(state.to_dict() if state else None)
            response.headers['Cache-Control'] = PLAYING_CACHE_CONTROL
            return response

        @self.app.route('/recent', methods=['GET'])
        def recent():
            """Recently played tracks, newest first."""
            entries = self.service.recent()
            response = jsonify([entry.to_dict() for entry in entries])
            response.headers['Cache-Control'] = RECENT_CACHE_CONTROL
            return response

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            response = jsonify({
                'status': 'healthy',
                'version': self.version,
                'timestamp': datetime.now(timezone.utc).isoformat()
            })
            response.headers['Cache-Control'] = PLAYING_CACHE_CONTROL
            return response

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting nowplaying HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug,
            threaded=True
        )


def create_app(service: ListeningService) -> Flask:
    """Create Flask app around an already authenticated service."""
    server = HTTPServer(service)
    return server.app
