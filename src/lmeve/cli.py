"""Command-line interface entry points for LMeve."""

import argparse
import logging


def run_web() -> None:
    """Entry point for the lmeve-web server command."""
    parser = argparse.ArgumentParser(
        description="Serve the LMeve EVE SSO sign-in and corporation admin API"
    )
    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="JSON settings file with the ESI client id and callback URL (default: %(default)s)"
    )
    parser.add_argument(
        "-d", "--database",
        default="lmeve.db",
        help="SQLite file for accounts and corporation registrations (default: %(default)s)"
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=8080,
        help="TCP port for the API (default: %(default)s)"
    )
    parser.add_argument(
        "-H", "--host",
        default="127.0.0.1",
        help="Interface to listen on (default: %(default)s)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log SSO and ESI traffic at DEBUG level"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the installed LMeve version"
    )

    args = parser.parse_args()

    if args.version:
        from . import __version__
        print(f"lmeve version {__version__}")
        return

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Import here to speed up --help
    from .web.server import run_server

    run_server(
        config_path=args.config,
        db_path=args.database,
        host=args.host,
        port=args.port,
    )


def main() -> None:
    """Main entry point that shows usage if called directly."""
    print("LMeve - EVE Online corporation management")
    print()
    print("Available commands:")
    print("  lmeve-web  - Run the web server")
    print()
    print("Use --help for more options.")


if __name__ == "__main__":
    main()
