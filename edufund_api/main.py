import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse


# Load environment variables from .env file
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"
load_dotenv(ENV_FILE)

from edufund_api.chain.ledger_provider import BlockfrostLedgerProvider
from edufund_api.config import settings
from edufund_api.database.connection import DatabaseManager
from edufund_api.dependencies.services import build_donation_service, build_receipt_service
from edufund_api.routers.api_v1.api import api_router


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Connects MongoDB and the ledger provider, wires the donation service and
    runs the periodic settlement sweep.
    """
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")
    logger.info(f"Environment: {settings.environment}, network: {settings.network}")
    logger.info(f"Operator API key configured: {'Yes' if settings.operator_api_key else 'No'}")

    db_manager = DatabaseManager(settings.mongodb_uri, settings.mongodb_database)
    try:
        await db_manager.initialize()
    except Exception as e:
        logger.error(f"MongoDB initialization failed: {str(e)}")
        raise  # Fail fast if MongoDB is not available

    ledger = BlockfrostLedgerProvider(
        network=settings.network,
        blockfrost_project_id=settings.blockfrost_project_id,
        minting_skey_path=settings.minting_skey_path,
        policy_path=settings.nft_policy_path,
        policy_ttl_slots=settings.nft_policy_ttl_slots,
    )
    await ledger.initialize()

    service = build_donation_service(ledger, db_manager.database)
    app.state.db_manager = db_manager
    app.state.ledger = ledger
    app.state.donation_service = service
    app.state.receipt_service = build_receipt_service(ledger, db_manager.database)

    sweep_interval_minutes = settings.mint_sweep_interval_minutes

    async def periodic_settlement_sweep():
        """Resume unfinished project credits and receipt mints periodically."""
        while True:
            try:
                await asyncio.sleep(sweep_interval_minutes * 60)
                await service.sweep()
            except asyncio.CancelledError:
                logger.info("Settlement sweep task cancelled")
                break
            except Exception as e:
                logger.error(f"Settlement sweep error: {str(e)}")

    sweep_task = asyncio.create_task(periodic_settlement_sweep())
    logger.info(f"Settlement sweep task started (runs every {sweep_interval_minutes} minutes)")

    yield  # Application runs here

    logger.info("Shutting down API")

    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass

    await ledger.close()
    await db_manager.close()
    logger.info("MongoDB connections closed")


app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    contact=settings.contact,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request-shape violations are 400s, rejected before any blockchain call."""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.get("/")
async def root():
    """Basic HTML response."""
    body = (
        "<html>"
        "<body style='padding: 10px;'>"
        "<h1>Welcome to the EduFund Donations API</h1>"
        "<div>"
        "Check the docs: <a href='/docs'>here</a>"
        "</div>"
        "</body>"
        "</html>"
    )

    return HTMLResponse(content=body)


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint that tests MongoDB connectivity and ledger readiness.

    Returns:
        - status: "healthy" if MongoDB answers and the ledger provider is ready
        - database: MongoDB connection status
        - ledger: Ledger provider readiness and network
    """
    db_manager: DatabaseManager | None = getattr(request.app.state, "db_manager", None)
    ledger = getattr(request.app.state, "ledger", None)

    database_connected = await db_manager.ping() if db_manager else False
    ledger_ready = bool(ledger and ledger.is_ready)

    health_status = {
        "status": "healthy" if database_connected and ledger_ready else "unhealthy",
        "api_version": settings.api_version,
        "environment": settings.environment,
        "database": {"type": "MongoDB", "connected": database_connected},
        "ledger": {"ready": ledger_ready, "network": settings.network},
    }
    return JSONResponse(content=health_status, status_code=200 if health_status["status"] == "healthy" else 503)


app.include_router(api_router, prefix=settings.API_V1_STR)
