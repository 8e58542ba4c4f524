"""FastAPI application for the SD Img2Img Bridge.

This module exposes the img2img node to an external editor over REST.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .core.handlers import (
    ApiResponse,
    ExecuteParams,
    handle_cancel,
    handle_execute,
    handle_get_node,
    handle_get_output,
    handle_health,
)
from .core.state import state


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    await state.shutdown()


app = FastAPI(title="SD Img2Img Bridge", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ExecuteRequest(BaseModel):
    image: str  # Base64 encoded PNG
    prompt: str = ""
    negative_prompt: str = ""
    mask: Optional[str] = None  # Base64 encoded PNG
    control_net: Optional[dict] = None
    steps: Optional[int] = None
    cfg_scale: Optional[int] = None
    denoising_strength: Optional[float] = None
    seed: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


def _to_response(resp: ApiResponse):
    if resp.status >= 400:
        raise HTTPException(status_code=resp.status, detail=resp.data.get("error"))
    return JSONResponse(content=resp.data, status_code=resp.status)


@app.get("/api/health")
async def health():
    return _to_response(await handle_health())


@app.get("/api/node")
async def get_node():
    return _to_response(await handle_get_node())


@app.post("/api/node/execute")
async def execute(request: ExecuteRequest):
    params = ExecuteParams(**request.model_dump())
    return _to_response(await handle_execute(params))


@app.get("/api/node/outputs/{port}")
async def get_output(port: str):
    return _to_response(await handle_get_output(port))


@app.post("/api/node/cancel")
async def cancel():
    return _to_response(await handle_cancel())
