"""Main entry point for the RPC provider server."""

import logging
import sys
import uvicorn

from rpc_provider.api import ProcedureRouter, create_app
from rpc_provider.config import Settings


def setup_logging(log_level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main():
    """Main entry point."""
    # Load settings
    settings = Settings()

    # Setup logging
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("RPC Provider Starting")
    logger.info("=" * 60)
    logger.info(f"App URL: {settings.app_url or '(not set)'}")
    logger.info(f"Server: {settings.server_host}:{settings.server_port}")
    logger.info(f"Batch limits: items={settings.max_batch_items}, url_length={settings.max_url_length}")
    logger.info("=" * 60)

    # Create FastAPI app (procedures are registered by the embedding application)
    app = create_app(settings, ProcedureRouter())
    logger.info("FastAPI application created")

    # Run server
    logger.info(f"Starting server on {settings.server_host}:{settings.server_port}")

    try:
        uvicorn.run(
            app,
            host=settings.server_host,
            port=settings.server_port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
