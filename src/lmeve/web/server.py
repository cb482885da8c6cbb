"""Litestar web server for LMeve."""

import logging

from litestar import Litestar

from ..auth.provider import AuthProvider
from ..config import AppConfig
from ..database import Database
from ..esi.auth import ESIAuth
from ..esi.client import ESIClient

logger = logging.getLogger(__name__)


def create_app(
    config_path: str = "config.json",
    db_path: str = "lmeve.db",
    provider: AuthProvider | None = None,
) -> Litestar:
    """
    Create the Litestar application.

    Args:
        config_path: Path to config file
        db_path: Path to database
        provider: Pre-built provider (tests); built from config/db otherwise

    Returns:
        Configured Litestar app
    """
    if provider is None:
        config = AppConfig.load(config_path)
        db = Database(db_path)
        esi_auth = ESIAuth(config.esi)
        provider = AuthProvider(config, db, esi_auth, ESIClient(config.esi, esi_auth))

    provider.ensure_default_admin()

    # Import routes here to avoid circular imports
    from .admin_routes import create_admin_routes
    from .auth_routes import create_auth_routes

    route_handlers = create_auth_routes(provider.config, provider)
    route_handlers.extend(create_admin_routes(provider))

    if provider.config.esi.is_configured:
        logger.info("ESI login enabled for client_id=%s...", provider.config.esi.client_id[:8])
    else:
        logger.warning("ESI_CLIENT_ID not set, only manual login is available")

    async def close_clients() -> None:
        await provider.flow.client.close()
        await provider.auth.close()

    app = Litestar(
        route_handlers=route_handlers,
        on_shutdown=[close_clients],
    )

    logger.info("Created Litestar app with %d routes", len(route_handlers))
    return app


def run_server(
    config_path: str = "config.json",
    db_path: str = "lmeve.db",
    host: str = "127.0.0.1",
    port: int = 8080,
) -> None:
    """
    Run the web server.

    Args:
        config_path: Path to config file
        db_path: Path to database
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    logger.info("Starting web server on http://%s:%d", host, port)
    print("\nLMeve")
    print(f"Open http://{host}:{port} in your browser")
    print("Press Ctrl+C to stop\n")

    app = create_app(config_path=config_path, db_path=db_path)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )
