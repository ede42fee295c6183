"""FastAPI server — HTTP access to fleet generation.

Run with:
    uvicorn evi_fleetgen.api.server:app --reload --port 8000

Or:
    python -m evi_fleetgen.api.server

Endpoints:
    GET  /vocabulary       — allowed labels for every categorical column
    GET  /schema           — JSON Schema for FleetRequest
    POST /fleet/generate   — generate a fleet from a request + source records
"""

from __future__ import annotations

import json
import logging
from typing import Any

import pandas as pd
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from evi_fleetgen import __version__
from evi_fleetgen.config.generation import FleetRequest
from evi_fleetgen.config.vocabulary import vocabulary
from evi_fleetgen.engine.orchestrator import FleetResult, generate_fleet
from evi_fleetgen.errors import ConfigurationError

_log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# App setup
# ═══════════════════════════════════════════════════════════════════════════

app = FastAPI(
    title="EVI Fleet Generator API",
    version=__version__,
    description=(
        "Synthesize an EV charging fleet whose composition matches target weights "
        "by drawing vehicles from a pool of simulated charging records."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ═══════════════════════════════════════════════════════════════════════════
# Request / response models
# ═══════════════════════════════════════════════════════════════════════════

class GenerateRequest(BaseModel):
    """Request body for /fleet/generate."""
    request: FleetRequest
    source: list[dict[str, Any]] = Field(
        description="Source pool rows: stratifying columns, source_vehicle_id, session fields.",
    )


class GenerateResponse(BaseModel):
    """Response from /fleet/generate."""
    fleet_size: int
    fleet_activity: list[dict[str, Any]]
    fleet_stats: dict[str, Any]
    reconciliation: list[dict[str, Any]]
    sparse_match: dict[str, Any] | None
    warnings: list[str]


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame → JSON-safe records (numpy scalars and timestamps converted)."""
    return json.loads(df.to_json(orient="records", date_format="iso"))


def _warnings(result: FleetResult) -> list[str]:
    messages = [
        f"{r.day_of_week}: size error {r.relative_error:.4%} corrected "
        f"(+{r.rows_added}/-{r.rows_removed} rows)"
        for r in result.reconciliation
        if r.corrected
    ]
    if result.sparse_match and result.sparse_match.members_dropped:
        messages.append(f"{result.sparse_match.members_dropped} fleet members dropped: no matching source vehicle")
    return messages


# ═══════════════════════════════════════════════════════════════════════════
# Endpoints
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/vocabulary")
def get_vocabulary() -> dict[str, list[str]]:
    """Allowed labels for each categorical column."""
    return vocabulary()


@app.get("/schema")
def get_schema() -> dict[str, Any]:
    """JSON Schema for the ``request`` part of /fleet/generate."""
    return FleetRequest.model_json_schema()


@app.post("/fleet/generate", response_model=GenerateResponse)
def fleet_generate(req: GenerateRequest) -> GenerateResponse:
    """Generate a fleet and return its activity rows, stats, and warnings."""
    source = pd.DataFrame.from_records(req.source)
    result = generate_fleet(req.request, source, logger=_log)
    return GenerateResponse(
        fleet_size=result.fleet_size,
        fleet_activity=_records(result.fleet_activity),
        fleet_stats=result.fleet_stats.model_dump(),
        reconciliation=[r.model_dump() for r in result.reconciliation],
        sparse_match=result.sparse_match.model_dump() if result.sparse_match else None,
        warnings=_warnings(result),
    )


# ═══════════════════════════════════════════════════════════════════════════
# CLI entry point
# ═══════════════════════════════════════════════════════════════════════════

def main():
    """Run the API server."""
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "evi_fleetgen.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
