# Main Entry Point
#
# Serves the vault API on localhost. Prints the session token the UI must
# send in the X-Session-Token header.

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .core import (
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
    load_settings,
)


def main():
    """Main entry point for keysafe."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="keysafe - local encrypted password vault",
    )

    parser.add_argument(
        "--host",
        default=settings.api_host,
        help=f"API host (default: {settings.api_host})"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.api_port,
        help=f"API port (default: {settings.api_port})"
    )

    parser.add_argument(
        "--db",
        default=str(settings.db_path),
        help=f"Vault database path (default: {settings.db_path})"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"keysafe v{__version__}"
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    configure_audit_logger(settings.audit_log_dir)

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="keysafe starting",
        details={"version": __version__, "host": args.host, "port": args.port}
    )

    from .api.main import start_api_server
    from .api.security import initialize_session_token
    from .api.vault_routes import set_vault_manager
    from .vault import VaultManager

    settings.db_path = Path(args.db)
    set_vault_manager(VaultManager(settings.db_path, settings=settings))
    try:
        token = initialize_session_token(settings.api_token)
    except ValueError as e:
        parser.error(f"KEYSAFE_API_TOKEN: {e}")

    print(f"keysafe API on http://{args.host}:{args.port}/api/vault")
    print(f"X-Session-Token: {token}")

    try:
        start_api_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\n\nShutting down backend...")
    except Exception as e:
        print(f"\n\nError: {str(e)}")
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.CRITICAL,
            message=f"keysafe backend crashed: {str(e)}"
        )
        sys.exit(1)

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_STOP,
        severity=EventSeverity.INFO,
        message="keysafe backend stopped"
    )


if __name__ == "__main__":
    main()
