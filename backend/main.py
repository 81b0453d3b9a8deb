# Speed Agent Backend
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from speed_agent.core.errors import RunAlreadyActiveError
from speed_agent.core.state import AgentState
from speed_agent.graph.engine import OptimizationAgent


def serialize_state(state: AgentState, include_logs: bool = True) -> Dict[str, Any]:
    data = state.model_dump(exclude={"logs"} if not include_logs else None)
    data["is_running"] = not state.is_terminal
    return data


def create_app(agent: OptimizationAgent, allow_origins: Optional[list] = None) -> FastAPI:
    """
    HTTP/WebSocket surface over one OptimizationAgent.

    Routes:
        POST /api/sites/{site_id}/agent       start a run (409 if one is live)
        POST /api/sites/{site_id}/agent/stop  request a cooperative abort
        GET  /api/sites/{site_id}/agent       current AgentState
        WS   /ws/agent/{site_id}              live run events
    """
    app = FastAPI(title="Speed Agent API")

    # Enable CORS for the dashboard (Vite defaults to 5173)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins or ["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/sites/{site_id}/agent", status_code=202)
    async def start_agent(site_id: str):
        try:
            state = await agent.start(site_id)
        except RunAlreadyActiveError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"site_id": site_id, "run_id": state.run_id, "phase": state.phase}

    @app.post("/api/sites/{site_id}/agent/stop")
    async def stop_agent(site_id: str):
        if not agent.stop(site_id):
            raise HTTPException(status_code=404, detail=f"No active run for site {site_id}")
        return {"site_id": site_id, "stopping": True}

    @app.get("/api/sites/{site_id}/agent")
    async def get_agent(site_id: str, logs: bool = True):
        state = agent.get_state(site_id)
        if state is None:
            raise HTTPException(status_code=404, detail=f"No run for site {site_id}")
        return serialize_state(state, include_logs=logs)

    @app.websocket("/ws/agent/{site_id}")
    async def agent_ws(websocket: WebSocket, site_id: str):
        await websocket.accept()
        try:
            async with agent.bus.subscription(site_id) as queue:
                while True:
                    event = await queue.get()
                    await websocket.send_json(event.model_dump())
                    if event.kind == "run-complete":
                        break
            await websocket.close()
        except WebSocketDisconnect:
            print(f"WebSocket disconnected for site {site_id}")

    return app
