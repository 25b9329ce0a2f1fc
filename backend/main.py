from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from dispatch_core import (
    AsyncioScheduler,
    Coordinates,
    ManualScheduler,
    OutcomeSampler,
    RoutingUnavailableError,
    SimulationConfig,
    SimulationController,
    SimulationSnapshot,
)
from dispatch_providers import (
    DEFAULT_CONTACTS,
    FixedGeolocationProvider,
    OsrmRoutingProvider,
    OverpassHospitalDirectory,
    ScenarioCatalog,
)

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

LOGGER = logging.getLogger("emergency_sim")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        repo_root / "backend/.env",
    ]
    for candidate in candidates:
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()

logging.basicConfig(
    level=os.getenv("EMERGENCY_SIM_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


class TriggerRequest(BaseModel):
    urgency: Literal["high", "medium", "low"] | None = None
    scenario_id: str | None = None


class LocationPayload(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class EmergencySimApp:
    def __init__(self) -> None:
        self.config = SimulationConfig.from_env()
        if self.config.scheduler == "manual":
            self.scheduler: AsyncioScheduler | ManualScheduler = ManualScheduler()
        else:
            if self.config.scheduler != "asyncio":
                LOGGER.warning("Unknown scheduler %r, using asyncio", self.config.scheduler)
            self.scheduler = AsyncioScheduler()

        self.geolocation = FixedGeolocationProvider(self.config.location)
        self.directory = OverpassHospitalDirectory(
            url=self.config.overpass_url,
            timeout=self.config.http_timeout_seconds,
            disable_external=self.config.disable_external,
        )
        self.routing = (
            None
            if self.config.disable_external
            else OsrmRoutingProvider(
                base_url=self.config.osrm_base_url,
                timeout=self.config.http_timeout_seconds,
            )
        )
        self.scenarios = ScenarioCatalog()
        self.contacts = list(DEFAULT_CONTACTS)
        self.controller = SimulationController(
            directory=self.directory,
            scheduler=self.scheduler,
            config=self.config,
            sampler=OutcomeSampler.seeded(self.config.seed),
            routing=self.routing,
            geolocation=self.geolocation,
        )

    def prefetch_trip(self) -> None:
        """Resolve hospitals and the nearest route into the provider caches."""
        location = self.geolocation.current_location()
        hospitals = self.directory.nearby(location)
        if self.routing is None or location is None or not hospitals:
            return
        try:
            self.routing.route(hospitals[0].coordinates, location)
        except RoutingUnavailableError as exc:
            LOGGER.info("Route prefetch failed: %s", exc)


container = EmergencySimApp()
app = FastAPI(title="Emergency Dispatch Simulation")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STREAM_TERMINAL_PHASES = {"idle", "complete"}


def _emit_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _command_result(accepted: bool) -> dict[str, Any]:
    return {"accepted": accepted, "state": container.controller.snapshot().as_dict()}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/emergency/state")
async def emergency_state() -> dict[str, Any]:
    return container.controller.snapshot().as_dict()


@app.post("/emergency/trigger")
async def emergency_trigger(payload: TriggerRequest, background_tasks: BackgroundTasks) -> dict[str, Any]:
    urgency = payload.urgency
    if payload.scenario_id:
        try:
            scenario = container.scenarios.get(payload.scenario_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        urgency = urgency or scenario.urgency_level
    accepted = container.controller.trigger(urgency or "high")
    if accepted:
        background_tasks.add_task(container.prefetch_trip)
    return _command_result(accepted)


@app.post("/emergency/cancel")
async def emergency_cancel() -> dict[str, Any]:
    return _command_result(container.controller.cancel())


@app.post("/emergency/acknowledge")
async def emergency_acknowledge() -> dict[str, Any]:
    return _command_result(container.controller.acknowledge())


@app.get("/emergency/statistics")
async def emergency_statistics() -> dict[str, Any]:
    stats = container.controller.statistics
    if stats is None:
        raise HTTPException(status_code=404, detail="No completed simulation.")
    return stats.as_dict()


@app.get("/emergency/stream")
async def emergency_stream():
    async def event_stream():
        queue: asyncio.Queue[SimulationSnapshot] = asyncio.Queue()
        unsubscribe = container.controller.subscribe(queue.put_nowait)
        try:
            snapshot = container.controller.snapshot()
            yield _emit_sse("snapshot", snapshot.as_dict())
            while snapshot.phase not in _STREAM_TERMINAL_PHASES:
                snapshot = await queue.get()
                yield _emit_sse("snapshot", snapshot.as_dict())
        finally:
            unsubscribe()

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.get("/emergency/hospitals")
def emergency_hospitals() -> dict[str, Any]:
    location = container.geolocation.current_location()
    hospitals = container.directory.nearby(location)
    return {
        "location": location.as_dict() if location else None,
        "items": [hospital.as_dict() for hospital in hospitals],
    }


@app.post("/emergency/location")
async def emergency_location(payload: LocationPayload) -> dict[str, Any]:
    if container.controller.phase != "idle":
        raise HTTPException(status_code=409, detail="Location can only change while no emergency is active.")
    location = Coordinates(lat=payload.lat, lng=payload.lng)
    container.geolocation.update(location)
    return {"location": location.as_dict()}


@app.get("/emergency/scenarios")
def emergency_scenarios() -> dict[str, Any]:
    return {"items": [scenario.as_dict() for scenario in container.scenarios.list()]}


@app.get("/emergency/scenarios/{scenario_id}")
def emergency_scenario(scenario_id: str) -> dict[str, Any]:
    try:
        return container.scenarios.get(scenario_id).as_dict()
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/emergency/contacts")
def emergency_contacts() -> dict[str, Any]:
    return {"items": [contact.as_dict() for contact in container.contacts]}
