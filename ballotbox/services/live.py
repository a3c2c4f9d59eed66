from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)


class LiveResultsHub:
    """Fan recomputed tallies out to websocket viewers of each election."""

    def __init__(self) -> None:
        self._connections: Dict[int, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def configure_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        logger.debug("LiveResultsHub bound to event loop %s", loop)

    async def connect(self, election_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[election_id].add(websocket)
        logger.debug("Viewer connected to election %s (total=%s)", election_id, len(self._connections[election_id]))

    async def disconnect(self, election_id: int, websocket: WebSocket) -> None:
        async with self._lock:
            connections = self._connections.get(election_id)
            if connections and websocket in connections:
                connections.remove(websocket)
            if connections is not None and len(connections) == 0:
                self._connections.pop(election_id, None)
        logger.debug("Viewer disconnected from election %s", election_id)

    def viewer_count(self, election_id: int) -> int:
        return len(self._connections.get(election_id, ()))

    async def _send_to_election(self, election_id: int, payload: dict) -> None:
        async with self._lock:
            connections = list(self._connections.get(election_id, set()))
        for websocket in connections:
            if websocket.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await websocket.send_json(payload)
            except RuntimeError:
                # Connection closed between selection and send
                continue
            except Exception:  # pragma: no cover
                logger.exception("Failed to push results to a viewer of election %s", election_id)

    def _ensure_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if not self._loop or self._loop.is_closed():
            logger.debug("LiveResultsHub loop not configured; skipping dispatch.")
            return None
        return self._loop

    def dispatch_results(self, election_id: int, tally_payload: dict) -> None:
        loop = self._ensure_loop()
        if not loop:
            return
        payload = {
            "type": "results.updated",
            "election_id": election_id,
            "results": tally_payload,
        }
        asyncio.run_coroutine_threadsafe(self._send_to_election(election_id, payload), loop)

    async def shutdown(self) -> None:
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()
        for election_id, websockets in connections:
            for websocket in websockets:
                if websocket.application_state == WebSocketState.CONNECTED:
                    try:
                        await websocket.close()
                    except RuntimeError:
                        continue
                    except Exception:  # pragma: no cover
                        logger.exception("Failed to close viewer socket for election %s", election_id)


live_results = LiveResultsHub()


async def live_results_websocket_handler(election_id: int, websocket: WebSocket, initial_payload: dict) -> None:
    await live_results.connect(election_id, websocket)
    try:
        await websocket.send_json({"type": "results.snapshot", "election_id": election_id, "results": initial_payload})
        while True:
            try:
                await websocket.receive_text()
            except WebSocketDisconnect:
                break
    finally:
        await live_results.disconnect(election_id, websocket)
