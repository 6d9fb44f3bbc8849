from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.routing import Mount

from consultq.config import get_settings
from consultq.dependencies.services import get_store_client_cached
from consultq.health import router as health_router
from consultq.mcp_server import mcp
from consultq.tools.appointments import router as appointments_router
from consultq.tools.consultation import router as consultation_router
from consultq.tools.sessions import router as sessions_router
from consultq.tools.status import router as status_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)


configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    settings_snapshot = settings.model_dump(
        exclude={"store_service_token", "api_key"},
    )
    logger.info("Application settings on startup: %s", settings_snapshot)

    has_mcp = any(isinstance(r, Mount) and r.path == "/mcp" for r in app.routes)
    logger.debug("MCP mount present: %s", has_mcp)

    client = get_store_client_cached()
    logger.info("Application startup complete.")

    # The streamable HTTP transport needs its task group running.
    async with mcp.session_manager.run():
        try:
            yield
        finally:
            logger.info("Closing store service connection.")
            await client.close()
            logger.info("Application shutdown complete.")


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(consultation_router, prefix="/doctor/consultation")
app.include_router(status_router, prefix="/doctor/status")
app.include_router(sessions_router, prefix="/doctor/session")
app.include_router(appointments_router, prefix="/doctor/appointments")
app.include_router(health_router)

app.mount("/mcp", mcp.streamable_http_app())
