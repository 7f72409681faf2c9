from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from resolver import ResolutionPipeline
from resolver.config import load_config, section
from resolver.errors import BackendError
from resolver.logger import LOGGER
from resolver.types import Resolution


class ChatRequest(BaseModel):
    message: str = ""
    modelName: Optional[str] = None


class ChatResponse(BaseModel):
    response: str
    navigationIntent: Optional[str] = None
    fromCache: bool = False


class RefreshRequest(BaseModel):
    force: bool = True


class EntryRequest(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    keywords: List[str] = []
    category: Optional[str] = None


def _to_payload(resolution: Resolution) -> Dict[str, Any]:
    return {
        "response": resolution.response,
        "navigationIntent": resolution.navigation_intent,
        "fromCache": resolution.from_cache,
    }


def probe_backend(pipeline: ResolutionPipeline) -> Optional[List[str]]:
    lister = getattr(pipeline.backend, "list_models", None)
    if lister is None:
        return None
    try:
        models = lister()
    except BackendError as exc:
        LOGGER.warning("Completion backend not reachable: %s", exc)
        return None
    LOGGER.info("Completion backend reachable, models: %s", ", ".join(models) or "-")
    return models


def create_app(
    config_path: str = "config/assistant.json",
    knowledge_dir: Optional[str] = None,
    pipeline: Optional[ResolutionPipeline] = None,
) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    if pipeline is None:
        pipeline = ResolutionPipeline.from_config(load_config(config_path), knowledge_dir)
    count = pipeline.refresh_knowledge(force=True)
    LOGGER.info("Assistant ready with %d knowledge entries", count)
    app.state.pipeline = pipeline
    app.state.backend_models = probe_backend(pipeline)

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(body: ChatRequest) -> Dict[str, Any]:
        if not body.message.strip():
            raise HTTPException(status_code=400, detail="Message is required")
        resolution = pipeline.resolve(body.message, body.modelName)
        return _to_payload(resolution)

    @app.get("/health")
    def health(recheck: bool = False) -> Dict[str, Any]:
        # backend listing from startup unless ?recheck=true
        if recheck:
            app.state.backend_models = probe_backend(pipeline)
        return {
            "status": "ok",
            "entries": len(pipeline.store.snapshot()),
            "cachedResponses": len(pipeline.cache),
            "backendModels": app.state.backend_models,
        }

    @app.post("/api/knowledge/refresh")
    def refresh(body: RefreshRequest) -> Dict[str, Any]:
        return {"count": pipeline.refresh_knowledge(force=body.force)}

    @app.post("/api/knowledge/entries")
    def add_entry(body: EntryRequest) -> Dict[str, Any]:
        try:
            count = pipeline.add_entry(body.question, body.answer, body.keywords, body.category)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"count": count}

    @app.post("/api/cache/clear")
    def clear_cache() -> Dict[str, Any]:
        return {"cleared": pipeline.clear_response_cache()}

    @app.websocket("/ws")
    async def ws_chat(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    payload = json.loads(text)
                except json.JSONDecodeError:
                    payload = {"message": text}
                if not isinstance(payload, dict):
                    payload = {"message": str(payload)}
                message = str(payload.get("message") or "").strip()
                if not message:
                    continue
                resolution = await run_in_threadpool(pipeline.resolve, message, payload.get("modelName"))
                await websocket.send_text(json.dumps(_to_payload(resolution), ensure_ascii=False))
        except WebSocketDisconnect:
            return

    return app


if __name__ == "__main__":
    import uvicorn

    cfg = load_config("config/assistant.json")
    server_cfg = section(cfg, "server")
    uvicorn.run(create_app(), host=server_cfg.get("host", "0.0.0.0"), port=int(server_cfg.get("port", 3000)))
