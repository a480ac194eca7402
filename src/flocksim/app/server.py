from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from ..sim.core.config import AppConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
CONTROL_NAMES = ("set_target", "clear_target", "toggle_wall_evasion", "toggle_leader", "set_leader")
# Parse and argument errors a viewer control can raise.
_CONTROL_ERRORS = (KeyError, IndexError, TypeError, ValueError)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


def snapshot_message(world: World) -> QueuedSnapshot:
    snapshot = world.snapshot()
    message = {
        "type": "snapshot",
        "tick": snapshot.tick,
        "payload": {
            "tick": snapshot.tick,
            "metrics": asdict(snapshot.metrics),
            "agents": snapshot.agents,
            "world": asdict(snapshot.world),
            "metadata": asdict(snapshot.metadata),
            "controls": asdict(snapshot.controls),
        },
    }
    return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(message))


class SnapshotBroadcaster:
    """Snapshots waiting for viewer acknowledgement.

    Each viewer is sent every queued snapshot newer than the last one it was
    sent; an ack for tick N drops everything up to N from the queue. At most
    `backlog` snapshots are kept, so viewers that never ack only miss the
    oldest ones.
    """

    def __init__(self, backlog: int = 120) -> None:
        self._queue: Deque[QueuedSnapshot] = deque(maxlen=max(1, backlog))
        self._lock = asyncio.Lock()
        self._last_sent: Dict[WebSocket, int] = {}

    @property
    def clients(self) -> List[WebSocket]:
        return list(self._last_sent)

    async def pending_ticks(self) -> List[int]:
        async with self._lock:
            return [item.tick for item in self._queue]

    async def latest(self) -> Optional[QueuedSnapshot]:
        async with self._lock:
            return self._queue[-1] if self._queue else None

    async def register(self, client: WebSocket) -> None:
        self._last_sent[client] = -1
        await self._flush(client)

    def unregister(self, client: WebSocket) -> None:
        self._last_sent.pop(client, None)

    async def clear(self) -> None:
        async with self._lock:
            self._queue.clear()
        for client in self._last_sent:
            self._last_sent[client] = -1

    async def acknowledge(self, tick: int) -> None:
        async with self._lock:
            while self._queue and self._queue[0].tick <= tick:
                self._queue.popleft()

    async def publish(self, item: QueuedSnapshot) -> None:
        async with self._lock:
            self._queue.append(item)
        for client in self.clients:
            try:
                await self._flush(client)
            except WebSocketDisconnect:
                logger.info("Dropping disconnected viewer")
                self.unregister(client)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Dropping viewer after failed send: %r", exc)
                self.unregister(client)

    async def _flush(self, client: WebSocket) -> None:
        last_sent = self._last_sent.get(client)
        if last_sent is None:
            return
        async with self._lock:
            pending = [item for item in self._queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        if client in self._last_sent:
            self._last_sent[client] = last_sent


class SimulationController:
    def __init__(self, app_config: AppConfig):
        self.config = app_config.simulation
        self.world = World(self.config)
        self.broadcast_interval = max(1, app_config.broadcast_interval)
        self.broadcaster = SnapshotBroadcaster(app_config.snapshot_backlog)
        self.running = False
        self.speed_multiplier = 1.0
        self._lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        self.running = True

    async def shutdown(self) -> None:
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
        await self.broadcaster.clear()
        await self.broadcaster.publish(snapshot_message(self.world))

    async def step_once(self) -> None:
        async with self._lock:
            self.world.step()
            item = snapshot_message(self.world) if self.tick % self.broadcast_interval == 0 else None
        if item is not None:
            await self.broadcaster.publish(item)

    async def apply_control(self, name: str, value: Optional[Any] = None) -> None:
        """Queue a control on the world; it takes effect at the next tick.

        `value` is the target point for `set_target` and a bool for `set_leader`.
        """

        async with self._lock:
            if name == "set_target":
                if value is None:
                    raise ValueError("set_target needs a point")
                self.world.set_target((float(value[0]), float(value[1])))
            elif name == "clear_target":
                self.world.clear_target()
            elif name == "toggle_wall_evasion":
                self.world.toggle_wall_evasion()
            elif name == "toggle_leader":
                self.world.toggle_leader()
            elif name == "set_leader":
                if not isinstance(value, bool):
                    raise ValueError(f"set_leader needs true or false, got {value!r}")
                self.world.set_leader(value)
            else:
                raise ValueError(f"unknown control: {name}")
        logger.debug("Queued %s for tick %d", name, self.tick + 1)

    async def handle_message(self, text: str) -> None:
        """Apply one viewer message: an ack or a control. Anything else is ignored."""

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON viewer message")
            return
        if not isinstance(payload, dict):
            logger.debug("Ignoring viewer message that is not an object")
            return
        kind = payload.get("type")
        if kind == "ack":
            tick = payload.get("tick")
            if isinstance(tick, int) and not isinstance(tick, bool):
                await self.broadcaster.acknowledge(tick)
        elif kind == "control":
            name = payload.get("name")
            if name not in CONTROL_NAMES:
                logger.warning("Rejected unknown viewer control %r", name)
                return
            try:
                await self.apply_control(name, payload.get("value", payload.get("point")))
            except _CONTROL_ERRORS as exc:
                logger.warning("Rejected viewer control %s: %r", name, exc)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)
            if self.running:
                await self.step_once()


def create_app(app_config: AppConfig) -> FastAPI:
    controller = SimulationController(app_config)

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI):
        await controller.start()
        logger.info("Simulation loop started with %d boids", len(controller.world.agents))
        yield
        await controller.shutdown()

    app = FastAPI(title="Flocking Simulation", lifespan=lifespan)
    app.state.controller = controller
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/")
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/api/status")
    async def status() -> JSONResponse:
        snapshot = controller.world.snapshot()
        return JSONResponse(
            {
                "running": controller.running,
                "tick": controller.tick,
                "population": len(controller.world.agents),
                "metrics": asdict(snapshot.metrics),
                "controls": asdict(snapshot.controls),
            }
        )

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        controller.running = True
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        controller.running = False
        return JSONResponse({"running": False})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        speed = float(payload.get("multiplier", 1.0))
        controller.speed_multiplier = max(0.1, min(5.0, speed))
        return JSONResponse({"multiplier": controller.speed_multiplier})

    @app.post("/api/control/target")
    async def set_target(payload: dict) -> JSONResponse:
        try:
            point = (float(payload["x"]), float(payload["y"]))
            await controller.apply_control("set_target", point)
        except _CONTROL_ERRORS as exc:
            raise HTTPException(status_code=422, detail=f"invalid target: {exc}") from exc
        return JSONResponse({"queued": "set_target", "x": point[0], "y": point[1]})

    @app.delete("/api/control/target")
    async def clear_target() -> JSONResponse:
        await controller.apply_control("clear_target")
        return JSONResponse({"queued": "clear_target"})

    @app.post("/api/control/walls")
    async def toggle_walls() -> JSONResponse:
        await controller.apply_control("toggle_wall_evasion")
        return JSONResponse({"queued": "toggle_wall_evasion"})

    @app.post("/api/control/leader")
    async def toggle_leader() -> JSONResponse:
        await controller.apply_control("toggle_leader")
        return JSONResponse({"queued": "toggle_leader"})

    @app.put("/api/control/leader")
    async def set_leader(payload: dict) -> JSONResponse:
        try:
            await controller.apply_control("set_leader", payload.get("on"))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return JSONResponse({"queued": "set_leader", "on": payload["on"]})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        await controller.broadcaster.register(websocket)
        try:
            while True:
                await controller.handle_message(await websocket.receive_text())
        except WebSocketDisconnect:
            logger.info("Viewer disconnected")
        finally:
            controller.broadcaster.unregister(websocket)

    return app


app = create_app(AppConfig())


__all__ = ["app", "create_app", "SimulationController", "SnapshotBroadcaster"]
