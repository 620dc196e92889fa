# main.py - FastAPI entry point for the modification pipeline

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Dict
import importlib.util
import inspect
import json
import os
import sys
import traceback
import atexit
from pathlib import Path

import uvicorn

# --- Project Paths ---
ROOT = Path(__file__).parent.resolve()
ROUTES_DIR = ROOT / "routes"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from routes.database import init_database, close_connection  # noqa: E402
from routes.result_cache import pattern_cache  # noqa: E402


# --- Module Importer ---
def import_module_from_path(module_name: str, file_path: Path):
    try:
        spec = importlib.util.spec_from_file_location(module_name, str(file_path))
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import {module_name} from {file_path}")
        mod = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = mod
        spec.loader.exec_module(mod)
        return mod
    except Exception as e:
        print(f"[main] Error importing {module_name}: {e}")
        traceback.print_exc()
        return None


# --- Load All Route Modules ---
MODULES: Dict[str, Any] = {}


def _load_all():
    module_specs = [
        ("unified_modify", "unified_modify.py"),
        ("analyze_intent", "analyze_intent.py"),
        ("preview_modifications", "preview_modifications.py"),
        ("apply_modifications", "apply_modifications.py"),
        ("memory", "memory.py"),
    ]
    for alias, fname in module_specs:
        module_path = ROUTES_DIR / fname
        if module_path.exists():
            module = import_module_from_path(alias, module_path)
            if module:
                MODULES[alias] = module
                print(f"[main] Successfully loaded {alias}")
        else:
            print(f"[main] Module file not found: {fname}")


_load_all()


async def maybe_await(value: Any) -> Any:
    return await value if inspect.isawaitable(value) else value


# --- FastAPI Lifespan & App Initialization ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    print("[main] Backend starting...")
    init_database()
    yield
    print("[main] Backend shutting down...")
    close_connection()

atexit.register(close_connection)

app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Utility Functions ---
def create_error_response(message: str, status: int = 500) -> JSONResponse:
    print(f"[main] Error Response: {message}")
    return JSONResponse(content={"success": False, "error": message}, status_code=status)


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, bytes):
            return obj.decode('utf-8', errors='replace')
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        return super().default(obj)


class CustomJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content, ensure_ascii=False, allow_nan=False, indent=None,
            separators=(",", ":"), cls=CustomJSONEncoder
        ).encode("utf-8")


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


# --- API Endpoints ---
@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "modules_loaded": list(MODULES.keys()),
        "cache": pattern_cache.stats(),
    }


@app.post("/api/unified-modify")
async def api_unified_modify(request: Request):
    mod = MODULES.get("unified_modify")
    if not mod: return create_error_response("Unified modify module not loaded")
    body = await _json_body(request)
    if not isinstance(body, dict):
        return create_error_response("Request body must be a JSON object", 400)
    return await maybe_await(mod.POST(body))


@app.post("/api/analyze-intent")
async def api_analyze_intent(request: Request):
    mod = MODULES.get("analyze_intent")
    if not mod: return create_error_response("Analyze intent module not loaded")
    body = await _json_body(request)
    result = await maybe_await(mod.POST(body if isinstance(body, dict) else {}))
    return CustomJSONResponse(result, status_code=200 if result.get("success") else 400)


@app.post("/api/preview-modifications")
async def api_preview_modifications(request: Request):
    mod = MODULES.get("preview_modifications")
    if not mod: return create_error_response("Preview module not loaded")
    body = await _json_body(request)
    result = await maybe_await(mod.POST(body if isinstance(body, dict) else {}))
    return CustomJSONResponse(result)


@app.post("/api/apply-modifications")
async def api_apply_modifications(request: Request):
    mod = MODULES.get("apply_modifications")
    if not mod: return create_error_response("Apply modifications module not loaded")
    body = await _json_body(request)
    result = await maybe_await(mod.POST(body if isinstance(body, dict) else {}))
    return CustomJSONResponse(result)


# --- Session Memory ---
@app.api_route("/api/memory", methods=["GET", "POST", "DELETE"])
async def api_memory(request: Request):
    mod = MODULES.get("memory")
    if not mod: return create_error_response("Memory module not loaded")
    if request.method == "GET":
        result = await maybe_await(mod.GET(request.query_params.get("sessionId")))
    elif request.method == "DELETE":
        result = await maybe_await(mod.DELETE(request.query_params.get("sessionId")))
    else:
        body = await _json_body(request)
        result = await maybe_await(mod.POST(body if isinstance(body, dict) else {}))
    return CustomJSONResponse(content=result)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=os.environ.get("RELOAD") == "1")
