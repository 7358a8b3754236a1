"""
Pathway Progression - Bootstrap Entry Point
===========================================

Brings the progression backend to a ready state:

- Config validation
- Logging setup
- Database initialization and schema creation
- Default level thresholds and points tables (idempotent)
- Service container health check
- Graceful shutdown

Run with ``python -m src.main``.
"""

import asyncio
import sys

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import EventBus
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components and seed defaults."""
    logger.info("========== PATHWAY INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    config_manager = ConfigManager.from_directory()
    logger.info("✓ Config manager loaded")

    event_bus = EventBus(config_manager)

    container = ServiceContainer(
        database=DatabaseService.from_config(),
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("src.core.services.container"),
    )
    try:
        await container.initialize(create_schema=True, seed_defaults=True)
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


async def main() -> None:
    setup_logging()
    container: ServiceContainer | None = None

    try:
        container = await _startup()
        health = await container.health_check()
        logger.info("Health check", extra=health)
        if not health["database"]:
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Manual shutdown via keyboard interrupt.")

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)

    finally:
        if container is not None:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        shutdown_logging()


if __name__ == "__main__":
    asyncio.run(main())
