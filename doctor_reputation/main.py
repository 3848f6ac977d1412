from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doctor_reputation.api.deps import get_lookup_service
from doctor_reputation.api.routes import doctors
from doctor_reputation.config import settings
from doctor_reputation.services.cache import close_redis_client
from doctor_reputation.services.lookup import LookupService


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    yield
    # Shutdown
    await close_redis_client()


app = FastAPI(
    title="Doctor Reputation",
    description="Doctor search and reputation reports aggregated from public review sites",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(doctors.router)


@app.get("/api/health")
async def health(service: LookupService = Depends(get_lookup_service)):
    return {
        "status": "ok",
        "service": "doctor_reputation",
        "cache": await service.cache.health(),
    }
