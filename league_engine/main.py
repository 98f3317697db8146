"""
League Engine - FastAPI Application

Provides a REST API over the standings and season-transition engine.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from fastapi import FastAPI, Query, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
from pathlib import Path
import logging
import threading

from .services.exceptions import EngineError
from .services.league_setup import initialize_league_system
from .services.report import SeasonReportService
from .services.transition import SeasonTransitionOrchestrator
from . import config

logging.basicConfig(level=config.LOG_LEVEL)

# Ensure data directory exists
Path(config.DATA_DIR).mkdir(parents=True, exist_ok=True)
print(f"[*] Using data directory: {config.DATA_DIR}")

# Services resolve the database lazily on first use
engine = SeasonTransitionOrchestrator()
report_service = SeasonReportService()


# ============================================================================
# RATE LIMITING
# ============================================================================

class RateLimiter:
    """Simple rate limiter for the manual trigger endpoint."""

    def __init__(self, cooldown_seconds: int = 60):
        """
        Initialize rate limiter.

        Args:
            cooldown_seconds: Minimum seconds between allowed requests (default 1 min)
        """
        self.cooldown_seconds = cooldown_seconds
        self._last_request: Optional[datetime] = None
        self._lock = threading.Lock()

    def try_acquire(self) -> tuple[bool, int]:
        """
        Try to acquire rate limit.

        Returns:
            Tuple of (allowed: bool, wait_seconds: int)
            - If allowed, wait_seconds is 0
            - If not allowed, wait_seconds is how long to wait
        """
        with self._lock:
            now = datetime.now()

            if self._last_request is None:
                self._last_request = now
                return True, 0

            elapsed = (now - self._last_request).total_seconds()

            if elapsed >= self.cooldown_seconds:
                self._last_request = now
                return True, 0

            return False, max(int(self.cooldown_seconds - elapsed), 1)

    def reset(self) -> None:
        """Reset the rate limiter (for testing)."""
        with self._lock:
            self._last_request = None


# Rate limiter for trigger endpoint
trigger_rate_limiter = RateLimiter(cooldown_seconds=config.TRIGGER_COOLDOWN_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    print("[*] Initializing league structure...")
    divisions = initialize_league_system(engine.db)
    print(f"[+] {len(divisions)} divisions ready")

    season = engine.db.get_active_season()
    if season is None:
        print("[*] No active season. Create one and seed teams before triggering.")
    else:
        print(f"[+] Active season: {season.name}")

    print("[*] App is ready.")

    yield

    print("[*] Shutting down...")


app = FastAPI(
    title="League Engine",
    description="Standings, playoffs and season transitions for a multi-division league",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_season(season_id: Optional[int]) -> int:
    """Explicit season id, or the active season's id."""
    if season_id is not None:
        return season_id
    season = engine.db.get_active_season()
    if season is None:
        raise HTTPException(status_code=404, detail="No active season")
    return season.id


@app.get("/health")
async def health():
    """Database health check."""
    try:
        healthy = engine.db.health_check()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok" if healthy else "degraded", "database": healthy}


@app.get("/api/divisions")
async def get_divisions():
    """List divisions with their groups."""
    try:
        return [
            {
                **division.model_dump(mode='json'),
                "groups": [g.model_dump(mode='json') for g in engine.db.get_groups(division.id)],
            }
            for division in engine.db.get_divisions()
        ]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/seasons/active")
async def get_active_season():
    """Get the active season."""
    season = engine.db.get_active_season()
    if season is None:
        raise HTTPException(status_code=404, detail="No active season")
    return season.model_dump(mode='json')


@app.get("/api/standings/{group_id}")
async def get_standings(group_id: int, season_id: Optional[int] = Query(None)):
    """Live standings of a group, with each position's consequence."""
    season_id = _require_season(season_id)
    if engine.db.get_group(group_id) is None:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    try:
        standings = engine.standings.get_standings_with_consequences(season_id, group_id)
        return [s.model_dump(mode='json') for s in standings]
    except EngineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/standings/{group_id}/recalculate")
async def recalculate_standings(group_id: int, season_id: Optional[int] = Query(None)):
    """Recompute and persist a group's standings and flags."""
    season_id = _require_season(season_id)
    group = engine.db.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Group {group_id} not found")
    try:
        division = engine.db.get_division(group.division_id)
        phase = engine.get_phase(division.id, season_id)
        apply = not phase.classification_frozen
        standings = engine.standings.recalculate(
            season_id, group_id,
            apply_consequences=apply,
            reset_promotion=apply and not engine.bracket.is_playoff_active(division, season_id),
        )
        return [s.model_dump(mode='json') for s in standings]
    except EngineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/trigger")
async def trigger(season_id: Optional[int] = Query(None)):
    """
    Run the engine for a season (the active one by default).

    Rate limited to prevent overlapping manual runs.
    """
    try:
        allowed, wait_seconds = trigger_rate_limiter.try_acquire()
        if not allowed:
            return {
                "status": "rate_limited",
                "message": f"Please wait {wait_seconds} seconds before triggering again",
                "retry_after": wait_seconds
            }

        season_id = _require_season(season_id)
        result = engine.run(season_id)
        return {
            "status": "completed",
            "message": f"{result.created_matches} playoff fixtures created",
            "result": result.model_dump(mode='json'),
        }

    except HTTPException:
        raise
    except Exception as e:
        print(f"[API] Error in /api/trigger: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/seasons/{season_id}/report")
async def get_season_report(season_id: int):
    """Season closure report."""
    if engine.db.get_season(season_id) is None:
        raise HTTPException(status_code=404, detail=f"Season {season_id} not found")
    try:
        return report_service.generate_season_closure_report(season_id)
    except EngineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/seasons/{season_id}/playoffs/{division_id}")
async def get_playoffs(season_id: int, division_id: int):
    """Playoff bracket of a division and the teams it has promoted so far."""
    division = engine.db.get_division(division_id)
    if division is None:
        raise HTTPException(status_code=404, detail=f"Division {division_id} not found")
    try:
        bracket = engine.bracket.get_bracket(division, season_id)
        return {
            "division": division.name,
            "phase": engine.get_phase(division_id, season_id).value,
            "rounds": {
                round_.value: [m.model_dump(mode='json') for m in matches]
                for round_, matches in bracket.items()
            },
            "promoted": engine.bracket.get_playoff_winners(division, season_id),
        }
    except EngineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/seasons/{season_id}/next")
async def start_next_season(
    season_id: int,
    name: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None)
):
    """Create the next season from the transition plan and activate it."""
    try:
        season = engine.start_next_season(season_id, name=name, start_date=start_date, end_date=end_date)
        return season.model_dump(mode='json')
    except EngineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)


# Run with: uvicorn league_engine.main:app --reload
if __name__ == "__main__":
    run()
