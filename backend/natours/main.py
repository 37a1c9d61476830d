"""
Natours Backend — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app(settings, database) returns a configured
       FastAPI instance. Nothing here opens connections or sockets; the
       process supervisor (natours/server.py) owns the Database and the
       uvicorn Server and hands them in.
Who:   Called by the supervisor at startup and by the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Pipeline (natours/middleware, runs top to bottom):          │
    │    cors → security_headers → access_logging → rate_limit     │
    │    → body → cookies → injection_sanitization                 │
    │    → script_sanitization → parameter_pollution               │
    │    → compression → request_time                              │
    │                                                              │
    │  Router (natours/routes, longest prefix first):              │
    │    /webhook-checkout  /api/v1/{bookings,reviews,tours,users} │
    │    /  (views)         catch-all → 404                        │
    │                                                              │
    │  Global error handler (natours/errors.py)                    │
    └──────────────────────────────────────────────────────────────┘

app.state carries what handlers need: settings, database, templates,
payments, and the installed stage names (`pipeline`).
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.templating import Jinja2Templates

from natours import __version__
from natours.config import Settings
from natours.database import Database
from natours.errors import register_exception_handlers
from natours.middleware import install_pipeline
from natours.middleware.security_headers import is_permissive_policy
from natours.routes import mount_route_groups
from natours.services.payment_gateway import PaymentAdapter, SignedPaymentGateway

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the entire process.

    When:    Called once by the supervisor before anything else logs.
    Format:  %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # The pipeline's access logger replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: announce the mode and stages, warn about a permissive CSP.
    Shutdown: nothing to release here; the supervisor disposes the database
    after the server has drained.
    """
    settings: Settings = app.state.settings
    logger.info("Natours %s starting in %s mode", __version__, settings.app_env)
    logger.info("Pipeline: %s", " → ".join(app.state.pipeline))
    if is_permissive_policy(settings.content_security_policy):
        logger.warning(
            "CONTENT_SECURITY_POLICY allows any source; set a restrictive policy "
            "for production deployments"
        )

    yield

    logger.info("Natours application shut down.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    payments: Optional[PaymentAdapter] = None,
) -> FastAPI:
    """
    Assemble the application: state, pipeline, error handler, routes.

    Args:
        settings:  configuration (read from the environment if None)
        database:  the Database the handlers use (built from settings if None;
                   building it does no I/O)
        payments:  payment adapter (the HMAC gateway from settings if None)
    """
    settings = settings or Settings()
    database = database or Database.from_settings(settings)

    app = FastAPI(
        title="Natours API",
        description="Tour booking API with server-rendered views.",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    app.state.payments = payments or SignedPaymentGateway.from_settings(settings)

    # ── Pipeline (executes in list order) ─────────────────────────────────
    app.state.pipeline = install_pipeline(app, settings)

    # ── Global Error Handler ──────────────────────────────────────────────
    register_exception_handlers(app)

    # ── Routes (longest prefix first, catch-all last) ─────────────────────
    app.state.route_groups = mount_route_groups(app)

    return app
