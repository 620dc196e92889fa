# routes/unified_modify.py - Streaming modification pipeline: analyze -> context -> generate -> validate -> apply
from __future__ import annotations

import asyncio
import json
import time
import traceback
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, TypedDict

from fastapi.responses import JSONResponse, StreamingResponse
from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, Field, ValidationError, field_validator

from routes import memory as session_memory
from routes.apply_edits import apply_directives
from routes.context_optimizer import build_conversation_context, build_memory_context, optimize_context
from routes.dependency_graph import DependencyGraph, select_relevant_files
from routes.directives import AnalysisResult, ApplyResult, directive_to_dict
from routes.edit_generator import (
    GenerationOutput, ParsedResponse,
    build_system_prompt, generate_with_streaming, parse_edit_response, select_profile,
)
from routes.intent_analyzer import analyze_intent
from routes.preview import generate_previews, summarize_directive
from routes.result_cache import cache_key, pattern_cache
from routes.suggestions import generate_suggestions
from routes.validate_edits import FixOutcome, validate_and_fix

NO_MODIFICATIONS = "No modifications generated"
VALIDATION_FAILED = "Validation failed after auto-fix"


class ModifyRequest(BaseModel):
    message: str
    projectFiles: Dict[str, str]
    sessionId: str
    memory: Optional[Dict[str, Any]] = None
    conversationHistory: Optional[List[Dict[str, Any]]] = None
    preview: bool = True
    suggestions: bool = True

    @field_validator('message', 'sessionId')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError('must not be empty')
        return value

    @field_validator('projectFiles')
    @classmethod
    def _has_files(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError('must contain at least one file')
        return value


class PipelineError(Exception):
    """An upstream failure (model service, memory store) tagged with the phase it happened in."""

    def __init__(self, phase: str, message: str):
        super().__init__(message)
        self.phase = phase


class PipelineState(TypedDict, total=False):
    request: ModifyRequest
    progress_callbacks: List[Callable[[Dict[str, Any]], None]]
    started_at: float
    halted: bool
    analysis: AnalysisResult
    cache_key: Optional[str]
    system_prompt: str
    generation: GenerationOutput
    parsed: ParsedResponse
    fix: FixOutcome
    apply_result: ApplyResult
    previews: List[Dict[str, Any]]
    suggestions: List[Dict[str, Any]]


# -------------------------------------------------------------------
# Event helpers
# -------------------------------------------------------------------
def _emit(state: PipelineState, event: Dict[str, Any]) -> None:
    for cb in state.get("progress_callbacks", []):
        cb(event)


def generation_event(phase: str, status: str, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    event = {"type": "generation_event", "phase": phase, "status": status, "message": message}
    if data is not None:
        event["data"] = data
    return event


def message_event(kind: str, content: str) -> Dict[str, Any]:
    return {"type": "message", "kind": kind, "content": content}


def error_event(message: str, detail: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    event = {"type": "error", "message": message}
    if detail:
        event["detail"] = detail
    event.update(extra)
    return event


def _elapsed_ms(state: PipelineState) -> int:
    return int((time.monotonic() - state["started_at"]) * 1000)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


# -------------------------------------------------------------------
# Graph nodes
# -------------------------------------------------------------------
async def analyze_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    _emit(state, generation_event("analyze", "starting", f"Analyzing request ({len(request.projectFiles)} files)"))

    analysis = analyze_intent(request.message, request.projectFiles, request.conversationHistory)
    _emit(state, generation_event("analyze", "complete", f"Complexity: {analysis.complexity}", analysis.summary()))

    key = None
    if pattern_cache.cacheable(analysis.complexity):
        key = cache_key(request.message, request.projectFiles)
        cached = pattern_cache.get(key)
        if cached is not None:
            print(f"[unified-modify] Cache hit for {analysis.complexity} request")
            cached["cached"] = True
            _emit(state, {"type": "complete", **cached})
            return {"analysis": analysis, "cache_key": key, "halted": True}

    return {"analysis": analysis, "cache_key": key}


async def context_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    analysis = state["analysis"]
    _emit(state, generation_event("context", "starting", "Selecting relevant files"))

    graph = DependencyGraph.build(request.projectFiles)
    selected = select_relevant_files(request.message, request.projectFiles, analysis.complexity, graph)
    optimized = optimize_context({p: request.projectFiles[p] for p in selected}, analysis.complexity)

    memory = request.memory
    if memory is None:
        try:
            stored = session_memory.load_memory(request.sessionId)
        except Exception as e:
            raise PipelineError("context", f"Could not load session memory: {e}") from e
        memory = stored.model_dump() if stored else None

    system_prompt = build_system_prompt(
        analysis.complexity,
        optimized.files,
        build_memory_context(memory),
        build_conversation_context(request.conversationHistory),
    )
    _emit(state, generation_event("context", "complete", f"{_plural(len(selected), 'file')} selected", {
        "files": selected,
        "truncated": optimized.truncated,
        "totalLines": optimized.total_lines,
        "optimizedLines": optimized.optimized_lines,
    }))
    return {"system_prompt": system_prompt}


async def generate_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    profile = select_profile(state["analysis"].complexity)
    _emit(state, generation_event("generate", "starting", "Generating modifications", {"model": profile.model}))

    def on_progress(data: Dict[str, Any]) -> None:
        _emit(state, generation_event("generate", data.get("stage", "receiving"), "Receiving modifications"))

    user_message = f"{request.message}\n\nReturn the modifications as JSON only."
    try:
        output = await generate_with_streaming(profile, state["system_prompt"], user_message, on_progress)
    except Exception as e:
        raise PipelineError("generate", f"Generation failed: {e}") from e

    _emit(state, {
        "type": "tokens",
        "input_tokens": output.input_tokens,
        "output_tokens": output.output_tokens,
        "total_tokens": output.total_tokens,
    })

    parsed = parse_edit_response(output.text)
    if parsed.error or not parsed.modifications:
        message = parsed.error or NO_MODIFICATIONS
        print(f"[unified-modify] {message} (complexity: {state['analysis'].complexity}, stage: {parsed.stage})")
        _emit(state, error_event(message, duration=_elapsed_ms(state)))
        return {"generation": output, "parsed": parsed, "halted": True}

    if parsed.intent:
        _emit(state, message_event("intent", parsed.intent))
    if parsed.summary:
        _emit(state, message_event("detail", parsed.summary))
    _emit(state, generation_event("generate", "complete", f"{_plural(len(parsed.modifications), 'modification')} parsed",
                                  {"stage": parsed.stage}))
    return {"generation": output, "parsed": parsed}


async def validate_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    _emit(state, generation_event("validate", "starting", "Validating modifications"))

    fix = validate_and_fix(state["parsed"].modifications, request.projectFiles)
    if not fix.directives:
        print(f"[unified-modify] {VALIDATION_FAILED}: {len(fix.rejected)} rejected")
        _emit(state, error_event(VALIDATION_FAILED, errors=fix.rejected, duration=_elapsed_ms(state)))
        return {"fix": fix, "halted": True}

    _emit(state, generation_event("validate", "complete", f"{_plural(len(fix.directives), 'modification')} valid", {
        "valid": len(fix.directives),
        "rejected": len(fix.rejected),
        "fixed": fix.fixed,
        "warnings": fix.warnings,
    }))
    return {"fix": fix}


async def apply_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    _emit(state, generation_event("apply", "starting", "Applying modifications"))
    result = apply_directives(request.projectFiles, state["fix"].directives)
    _emit(state, generation_event("apply", "complete", f"{_plural(len(result.modified_files), 'file')} modified", {
        "applied": len(result.applied),
        "errors": result.errors,
    }))
    return {"apply_result": result}


async def preview_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    if not request.preview:
        return {"previews": []}
    result = state["apply_result"]
    previews = generate_previews(state["fix"].directives, request.projectFiles, result.updated_files)
    _emit(state, generation_event("preview", "complete", f"{_plural(len(previews), 'preview')} ready"))
    return {"previews": [p.model_dump() for p in previews]}


async def suggest_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    if not request.suggestions:
        return {"suggestions": []}
    result = state["apply_result"]
    suggestions = generate_suggestions(result.applied, result.updated_files)
    _emit(state, generation_event("suggest", "complete", f"{_plural(len(suggestions), 'suggestion')}"))
    return {"suggestions": [s.model_dump() for s in suggestions]}


def _files_affected(result: ApplyResult, directives) -> List[Dict[str, Any]]:
    affected = []
    for path in result.modified_files:
        summaries = [summarize_directive(d) for d in directives if d.path == path]
        affected.append({"path": path, "action": "modified", "description": ", ".join(summaries)})
    return affected


async def finalize_node(state: PipelineState) -> PipelineState:
    request = state["request"]
    analysis = state["analysis"]
    parsed = state["parsed"]
    fix = state["fix"]
    result = state["apply_result"]
    generation = state["generation"]

    if result.success:
        completion = f"{_plural(len(result.applied), 'modification')} applied"
        message = parsed.summary or parsed.intent or completion
        _emit(state, message_event("completion", parsed.summary or completion))
    else:
        completion = message = "No modification could be applied"
        _emit(state, message_event("completion", completion))

    payload = {
        "success": result.success,
        "modifications": result.applied,
        "updatedFiles": {p: result.updated_files[p] for p in result.modified_files},
        "message": message,
        "filesAffected": _files_affected(result, fix.directives),
        "tokens": {
            "input": generation.input_tokens,
            "output": generation.output_tokens,
            "total": generation.total_tokens,
        },
        "duration": _elapsed_ms(state),
        "analysis": analysis.summary(),
        "errors": result.errors,
        "rejected": fix.rejected,
        "warnings": fix.warnings,
        "previews": state.get("previews", []),
        "suggestions": state.get("suggestions", []),
        "cached": False,
    }

    try:
        if result.success:
            session_memory.record_change(
                request.sessionId,
                payload["message"],
                result.modified_files,
                session_memory.extract_lessons(result.modified_files, result.errors),
            )
        if result.errors:
            session_memory.record_issues(request.sessionId, result.errors)
    except Exception as e:
        raise PipelineError("finalize", f"Could not update session memory: {e}") from e

    if result.success and state.get("cache_key"):
        pattern_cache.set(state["cache_key"], payload)

    _emit(state, generation_event("complete", "complete", completion, {"duration": payload["duration"]}))
    _emit(state, {"type": "complete", **payload})
    print(f"[unified-modify] Done in {payload['duration']}ms: {completion} "
          f"({len(result.errors)} errors, {len(fix.rejected)} rejected)")
    return {}


# -------------------------------------------------------------------
# Graph
# -------------------------------------------------------------------
def _continue_unless_halted(next_node: str):
    def _route(state: PipelineState) -> str:
        return "halt" if state.get("halted") else next_node
    return _route


def build_pipeline():
    graph = StateGraph(PipelineState)
    graph.add_node("analyze", analyze_node)
    graph.add_node("context", context_node)
    graph.add_node("generate", generate_node)
    graph.add_node("validate", validate_node)
    graph.add_node("apply", apply_node)
    graph.add_node("preview", preview_node)
    graph.add_node("suggest", suggest_node)
    graph.add_node("finalize", finalize_node)

    graph.add_edge(START, "analyze")
    graph.add_conditional_edges("analyze", _continue_unless_halted("context"), {
        "context": "context",
        "halt": END,
    })
    graph.add_edge("context", "generate")
    graph.add_conditional_edges("generate", _continue_unless_halted("validate"), {
        "validate": "validate",
        "halt": END,
    })
    graph.add_conditional_edges("validate", _continue_unless_halted("apply"), {
        "apply": "apply",
        "halt": END,
    })
    graph.add_edge("apply", "preview")
    graph.add_edge("apply", "suggest")
    graph.add_edge(["preview", "suggest"], "finalize")
    graph.add_edge("finalize", END)
    return graph.compile()


pipeline = build_pipeline()


async def stream_unified_modify(request: ModifyRequest) -> AsyncGenerator[Dict[str, Any], None]:
    """
    An async generator that yields pipeline events until the terminal
    `complete` or `error` event. Closing it cancels the running pipeline.
    """
    print(f"[unified-modify] Request: {len(request.message)} chars, {len(request.projectFiles)} files, "
          f"session {request.sessionId}")

    progress_queue: asyncio.Queue = asyncio.Queue()

    def progress_callback(data: Dict[str, Any]) -> None:
        progress_queue.put_nowait(data)

    initial_state = PipelineState(
        request=request,
        progress_callbacks=[progress_callback],
        started_at=time.monotonic(),
        halted=False,
    )

    async def run_agent():
        try:
            await pipeline.ainvoke(initial_state)
        except PipelineError as e:
            print(f"[unified-modify] {e.phase} failed: {e}")
            await progress_queue.put(error_event(str(e), traceback.format_exc(), phase=e.phase))
        except Exception as e:
            print(f"[unified-modify] Pipeline error: {e}")
            traceback.print_exc()
            await progress_queue.put(error_event(str(e) or type(e).__name__, traceback.format_exc()))
        finally:
            await progress_queue.put(None)

    agent_task = asyncio.create_task(run_agent())
    try:
        while True:
            chunk = await progress_queue.get()
            if chunk is None:
                break
            yield chunk
        await agent_task
    finally:
        if not agent_task.done():
            print("[unified-modify] Client went away, cancelling pipeline")
            agent_task.cancel()
            try:
                await agent_task
            except asyncio.CancelledError:
                pass


def parse_request(body: Dict[str, Any]) -> ModifyRequest:
    return ModifyRequest.model_validate(body or {})


def validation_message(error: ValidationError) -> str:
    fields = sorted({str(e["loc"][0]) for e in error.errors() if e.get("loc")})
    return f"Invalid request: {', '.join(fields)} required" if fields else "Invalid request"


def POST(body: Dict[str, Any]):
    try:
        request = parse_request(body)
    except ValidationError as e:
        print(f"[unified-modify] Rejected request: {e.errors()}")
        return JSONResponse({"success": False, "error": validation_message(e)}, status_code=400)

    async def stream_generator():
        async for event in stream_unified_modify(request):
            yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"

    return StreamingResponse(
        stream_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
