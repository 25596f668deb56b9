from dataclasses import replace
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import get_settings, resolve_oracle_params
from database import Base, SessionLocal, engine
from api import accounts, raffle, upkeep, vrf
from core.round_coordinator import RoundCoordinator
from services.oracle_service import MockVRFCoordinator, RemoteVRFCoordinator

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


def build_coordinator(settings) -> RoundCoordinator:
    """
    依網路建立 oracle 與 RoundCoordinator

    - 開發鏈（hardhat / localhost）：MockVRFCoordinator，自動建立並儲值 subscription，
      並把 Raffle 加入 consumer
    - 其他鏈：RemoteVRFCoordinator，需要 vrf_coordinator_url、subscription_id 與 vrf_callback_secret
    """
    params = resolve_oracle_params(settings)

    if params.is_development:
        logger.info("Local network detected! Using mock VRF coordinator")
        oracle = MockVRFCoordinator()
        subscription_id = oracle.create_subscription()
        oracle.fund_subscription(subscription_id, settings.vrf_subscription_fund)
        oracle.add_consumer(subscription_id, params.consumer)
        params = replace(params, subscription_id=subscription_id)
    else:
        if not settings.vrf_coordinator_url or params.subscription_id is None or not settings.vrf_callback_secret:
            raise RuntimeError(
                f"Network {params.network_name} requires vrf_coordinator_url, subscription_id "
                f"and vrf_callback_secret"
            )
        oracle = RemoteVRFCoordinator(settings.vrf_coordinator_url)

    return RoundCoordinator(oracle, params)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表、oracle 與 Raffle
    Base.metadata.create_all(bind=engine)

    coordinator = build_coordinator(settings)
    db = SessionLocal()
    try:
        coordinator.bootstrap(db, settings.entrance_fee, settings.lottery_interval)
    finally:
        db.close()

    app.state.coordinator = coordinator
    app.state.vrf_callback_secret = settings.vrf_callback_secret
    if not settings.vrf_callback_secret:
        logger.warning("vrf_callback_secret is not set; oracle callbacks will be rejected")
    yield


app = FastAPI(
    title="Raffle Keeper API",
    description="Time-windowed single-winner raffle driven by a keeper and a VRF oracle",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(raffle.router)
app.include_router(upkeep.router)
app.include_router(vrf.router)
app.include_router(accounts.router)


@app.get("/")
def root():
    return {"message": "Raffle Keeper API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
