"""
IBRL Backend: autonomous SOL/USDC proposal engine.

ARCHITECTURE:
- FastAPI Backend: intent parsing, Policy Gate, proposal store, automations
- Proposal Engine: periodic tick over tracked wallets (signals + automations)
- Collaborators: Pyth Hermes (price), Jupiter (quote/build), Solana RPC (balances/simulate)
- SQLite DB: Source of truth for proposals, automations and price samples
- Wallet UI: Owner approval interface (signs and sends in-wallet)

SAFETY MODEL:
- Every swap goes through Propose -> Approve (wallet signature) -> Record
- The engine can CREATE proposals, never sign or send them
- LLM used only for intent parsing, not decision making

No autonomous execution. Human-in-the-loop always.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ibrl.agent.engine import ProposalEngine
from ibrl.agent.proactive_scheduler import ProactiveScheduler
from ibrl.api.routes import activity, automations, autonomy, intent, proposals
from ibrl.core.audit import AuditLog
from ibrl.core.config import Settings
from ibrl.core.exceptions import BusinessError, IBRLError, NotFoundError
from ibrl.core.rate_limiter import RateLimitMiddleware
from ibrl.db.init_db import init_db
from ibrl.db.session import Database
from ibrl.services.jupiter_client import JupiterSwapRouter
from ibrl.services.pyth_client import CachedPriceOracle, PythHermesOracle
from ibrl.services.solana_rpc import SolanaRpcClient
from ibrl_ai import GroqClient, IntentExtractor

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = None,
    *,
    database: Database = None,
    oracle=None,
    chain=None,
    router=None,
    extractor: IntentExtractor = None,
) -> FastAPI:
    """
    Build the app. Collaborators default to the live Pyth / Solana / Jupiter
    clients; tests pass stubs.
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
        1. Open the database and create tables
        2. Wire oracle, chain, router and intent extractor into the engine
        3. Start the proactive scheduler (if AUTONOMY_ENABLED)

        Shutdown:
        1. Stop the scheduler
        2. Dispose the database engine
        """
        db = database or Database(settings.DATABASE_URL)
        init_db(db)
        logger.info("[OK] Database initialized")

        price_oracle = oracle or CachedPriceOracle(
            PythHermesOracle(
                settings.PYTH_HERMES_URL,
                settings.PYTH_SOL_USD_FEED_ID,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
                max_retries=settings.HTTP_MAX_RETRIES,
            ),
            ttl_seconds=settings.PRICE_CACHE_SECONDS,
        )
        rpc = chain or SolanaRpcClient(
            settings.SOLANA_RPC_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            max_retries=settings.HTTP_MAX_RETRIES,
        )
        swap_router = router or JupiterSwapRouter(
            settings.JUPITER_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            max_retries=settings.HTTP_MAX_RETRIES,
        )

        app.state.settings = settings
        app.state.database = db
        app.state.extractor = extractor or IntentExtractor(GroqClient(settings.GROQ_API_KEY))
        app.state.engine = ProposalEngine(db, price_oracle, rpc, swap_router, settings)
        app.state.scheduler = None

        if settings.AUTONOMY_ENABLED:
            scheduler = ProactiveScheduler(
                app.state.engine,
                interval_seconds=settings.TICK_INTERVAL_SECONDS,
                initial_delay_seconds=settings.TICK_INITIAL_DELAY_SECONDS,
            )
            scheduler.start()
            app.state.scheduler = scheduler
        else:
            logger.warning("[WARN] Autonomy disabled; ticks run only via POST /autonomy/tick")

        yield

        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        db.dispose()
        logger.info("[OK] Shutdown complete")

    app = FastAPI(
        title="IBRL Proposal Engine API",
        description="Autonomous SOL/USDC proposals. Propose -> Approve -> Record.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # SECURITY: Restrict CORS to specific methods and headers (not wildcards)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin"],
        max_age=600,  # Cache preflight for 10 minutes
        expose_headers=["Content-Type"],
    )

    # SECURITY: Rate limiting; every intent can fan out into RPC and router calls
    app.add_middleware(
        RateLimitMiddleware,
        requests=settings.RATE_LIMIT_REQUESTS,
        window=settings.RATE_LIMIT_WINDOW_SECONDS,
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"  # Prevent MIME sniffing
        response.headers["X-Frame-Options"] = "DENY"  # Prevent clickjacking
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.method != "GET":
            AuditLog.log_api_call(
                request.url.path,
                request.method,
                request.query_params.get("owner"),
                request.client.host if request.client else None,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        return response

    @app.exception_handler(IBRLError)
    async def domain_error_handler(request: Request, exc: IBRLError):
        if isinstance(exc, NotFoundError):
            AuditLog.log_access_denied(
                request.method, exc.resource.lower(), exc.resource_id,
                request.query_params.get("owner") or "", exc.reason,
            )
        http_exc = BusinessError.from_domain(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    app.include_router(intent.router, prefix="/intent", tags=["intent"])
    app.include_router(automations.router, prefix="/automations", tags=["automations"])
    app.include_router(proposals.router, prefix="/proposals", tags=["proposals"])
    app.include_router(autonomy.router, tags=["autonomy"])
    app.include_router(activity.router, tags=["activity"])

    @app.get("/health")
    def health():
        return {"status": "ok", "autonomy": "enabled" if settings.AUTONOMY_ENABLED else "disabled"}

    return app


app = create_app()
