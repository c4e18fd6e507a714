"""Process lifespan: startup and shutdown.

Single place for all startup/shutdown logic (SRP). The embedding process
(HTTP layer, worker, CLI) enters create_lifespan() once; no business logic
here, only wiring of infrastructure (logging, telemetry, DB engine dispose).
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from taskpool.core.config import get_settings
from taskpool.infrastructure.persistence.database import dispose_engine, get_engine
from taskpool.shared.telemetry.logging import setup_logging
from taskpool.shared.telemetry.telemetry import (
    TelemetryConfig,
    get_telemetry,
    set_telemetry,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan() -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: logging, telemetry (if enabled) with SQLAlchemy and
    logging instrumentation. Shutdown order: telemetry shutdown, SQL
    engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    setup_logging()

    if settings.telemetry_enabled:
        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=True,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        engine = get_engine()
        if engine is not None:
            telemetry.instrument_sqlalchemy(engine)
        telemetry.instrument_logging()
        logger.info("Telemetry initialized")

    try:
        yield
    finally:
        # ---- Shutdown ----
        telemetry_instance = get_telemetry()
        if telemetry_instance is not None:
            telemetry_instance.shutdown()
            set_telemetry(None)

        await dispose_engine()
