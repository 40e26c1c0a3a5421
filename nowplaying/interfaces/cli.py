import argparse
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from nowplaying.application.service import ListeningService
from nowplaying.crosscutting.config import LOG_LEVELS, Settings, load_settings
from nowplaying.crosscutting.logging import log_error, setup_logging
from nowplaying.domain.errors import ConfigError, ServiceError
from nowplaying.infrastructure.providers.spotify import SpotifyProvider
from nowplaying.interfaces.http import HTTPServer

logger = logging.getLogger(__name__)


class CLI:
    """Command Line Interface for nowplaying."""

    def __init__(self, load_env: bool = True):
        """Initialize CLI.

        Args:
            load_env: load a ``.env`` file before reading settings; tests pass False
        """
        self.load_env = load_env
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='nowplaying',
            description="Serve a Spotify user's listening data over HTTP"
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        serve_parser = subparsers.add_parser('serve', help='Run the HTTP server')
        serve_parser.add_argument('--host', help='Bind address (default: NOWPLAYING_HOST or 0.0.0.0)')
        serve_parser.add_argument('--port', type=int, help='Port (default: NOWPLAYING_PORT or 3000)')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        show_parser = subparsers.add_parser('show', help='Print what an endpoint would serve')
        show_parser.add_argument(
            'what',
            choices=['top', 'playing', 'recent'],
            help='Which listening data to print'
        )

        subparsers.add_parser('config', help='Print the configuration summary (secrets masked)')

        for sub in (serve_parser, show_parser, subparsers.choices['config']):
            sub.add_argument(
                '--log-level',
                choices=LOG_LEVELS,
                default=None,
                help='Set logging level (default: LOG_LEVEL or INFO)'
            )

        return parser

    def _load_settings(self) -> Settings:
        if self.load_env:
            load_dotenv()
        return load_settings()

    def _create_service(self, settings: Settings) -> ListeningService:
        """Build the provider, refresh its token and wrap it in the service."""
        provider = SpotifyProvider.from_settings(settings)
        provider.authenticate()
        return ListeningService(provider)

    def _serve(self, args: argparse.Namespace, settings: Settings) -> int:
        service = self._create_service(settings)
        server = HTTPServer(
            service,
            host=args.host or settings.host,
            port=args.port or settings.port,
            debug=args.debug
        )
        server.run()
        return 0

    def _show(self, args: argparse.Namespace, settings: Settings) -> int:
        service = self._create_service(settings)
        if args.what == 'top':
            payload = service.top_tracks().to_dict()
        elif args.what == 'playing':
            state = service.now_playing()
            payload = state.to_dict() if state else None
        else:
            payload = [entry.to_dict() for entry in service.recent()]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    def _config(self, settings: Settings) -> int:
        print(json.dumps(settings.summary(), indent=2))
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        try:
            settings = self._load_settings()
        except ConfigError as e:
            setup_logging(args.log_level or 'INFO')
            log_error(logger, 'Configuration error', e)
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1

        setup_logging(args.log_level or settings.log_level, log_file=settings.log_file)

        try:
            if args.command == 'serve':
                return self._serve(args, settings)
            if args.command == 'show':
                return self._show(args, settings)
            return self._config(settings)
        except KeyboardInterrupt:
            logger.warning("Interrupted, shutting down")
            return 130
        except ConfigError as e:
            log_error(logger, 'Startup failed', e)
            print(f"Startup failed: {e}", file=sys.stderr)
            return 1
        except ServiceError as e:
            log_error(logger, f"{args.command} failed", e)
            print(f"{args.command} failed: {e}", file=sys.stderr)
            return 1


def main():
    """Main entry point."""
    sys.exit(CLI().run())


if __name__ == '__main__':
    main()
