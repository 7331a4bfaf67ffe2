"""
FastAPI server for the CEP lookup race.

Each request runs its own race with its own deadline; losing providers are
cancelled as soon as the race resolves, so a long-lived process does not
accumulate in-flight requests.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Path as PathParam, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from cep_lookup.config import Config, load_env_file
from cep_lookup.race import RaceCoordinator

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the coordinator on startup unless one was injected already."""
    if getattr(app.state, "coordinator", None) is None:
        load_env_file(Path(__file__).parent / ".env")
        config = Config.from_env()
        app.state.coordinator = RaceCoordinator.from_config(config)
        logger.info(
            f"Coordinator ready: providers={config.providers}, "
            f"timeout={config.timeout}s, mode={config.race_mode}"
        )
    yield
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="CEP Lookup API",
    description="Look up a Brazilian postal code by racing several providers.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------
class AddressResponse(BaseModel):
    postal_code: str
    street: str
    neighborhood: str
    city: str
    state: str


class LookupResponse(BaseModel):
    cep: str
    provider: str
    address: AddressResponse
    elapsed_ms: int
    errors: Dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    providers: list
    timeout: float
    uptime_seconds: float


_start_time = time.time()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/health", response_model=HealthResponse)
def health(request: Request):
    coordinator = request.app.state.coordinator
    return HealthResponse(
        status="ok",
        providers=[p.label for p in coordinator.providers],
        timeout=coordinator.timeout,
        uptime_seconds=round(time.time() - _start_time, 1),
    )


@app.get("/cep/{cep}", response_model=LookupResponse)
def lookup(
    request: Request,
    cep: str = PathParam(..., min_length=1, max_length=16, description="CEP to look up"),
    timeout: Optional[float] = Query(None, gt=0, le=10, description="Deadline override in seconds"),
):
    """
    Race every configured provider for ``cep``.

    502 when every provider failed, 504 when none answered in time.
    """
    outcome = request.app.state.coordinator.lookup(cep, timeout=timeout)
    errors = {label: err.message for label, err in outcome.errors.items()}

    if outcome.is_timeout:
        raise HTTPException(status_code=504, detail={
            "message": "No provider answered in time.",
            "elapsed_ms": outcome.elapsed_ms,
            "errors": errors,
        })
    if outcome.is_failure:
        raise HTTPException(status_code=502, detail={
            "message": "Provider lookup failed.",
            "elapsed_ms": outcome.elapsed_ms,
            "errors": errors,
        })

    return LookupResponse(
        cep=cep,
        provider=outcome.provider,
        address=AddressResponse(**outcome.address.to_dict()),
        elapsed_ms=outcome.elapsed_ms,
        errors=errors,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("APP_HOST", "0.0.0.0"), port=int(os.getenv("APP_PORT", "8000")))
