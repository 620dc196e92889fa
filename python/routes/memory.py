from typing import TypedDict, Dict, Any, Optional, List, Iterable
from datetime import datetime, timezone

from langgraph.graph import StateGraph, END
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel, Field

from config.app_config import appConfig
from routes import database


class Architecture(BaseModel):
    framework: str = 'react'
    patterns: List[str] = Field(default_factory=lambda: ['component-based', 'hooks'])
    conventions: Dict[str, str] = Field(default_factory=lambda: {
        'naming': 'PascalCase for components, camelCase for functions',
        'imports': 'Absolute imports with @ alias',
        'styling': 'Tailwind CSS utility classes',
    })


class ChangeRecord(BaseModel):
    timestamp: str
    description: str
    filesAffected: List[str] = Field(default_factory=list)
    lessons: List[str] = Field(default_factory=list)


class KnownIssue(BaseModel):
    issue: str
    solution: str = ''
    frequency: int = 1


class UserPreferences(BaseModel):
    codingStyle: str = 'modern'
    preferredLibraries: List[str] = Field(default_factory=lambda: ['react', 'tailwindcss', 'typescript'])
    avoidances: List[str] = Field(default_factory=list)


class SessionMemory(BaseModel):
    sessionId: str
    architecture: Architecture = Field(default_factory=Architecture)
    recentChanges: List[ChangeRecord] = Field(default_factory=list)
    knownIssues: List[KnownIssue] = Field(default_factory=list)
    userPreferences: UserPreferences = Field(default_factory=UserPreferences)


# error fragment -> suggested fix, first match wins
SOLUTIONS = [
    ('file not found', 'Reference files by their exact project path.'),
    ('not found', 'Use the selector or component name exactly as it appears in the file.'),
    ('no closing tag', 'Target an element with explicit open and close tags, or set an attribute instead.'),
    ('empty value', 'Always provide a value for stylesheet properties.'),
    ('import', 'Check import paths and make sure the imported file exists.'),
]
DEFAULT_SOLUTION = 'Review the directive target and the file content before retrying.'


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def solution_for(error: str) -> str:
    lowered = error.lower()
    for fragment, solution in SOLUTIONS:
        if fragment in lowered:
            return solution
    return DEFAULT_SOLUTION


def extract_lessons(files_affected: List[str], errors: List[str]) -> List[str]:
    lessons: List[str] = []
    if errors:
        lessons.append(f"Encountered {len(errors)} error(s) - check targets before applying changes")
        if any('not found' in e.lower() for e in errors):
            lessons.append('Some targets were not found by pattern matching')
    if len(files_affected) > 5:
        lessons.append('Large change set - consider splitting into smaller requests')
    if any('components/' in f for f in files_affected):
        lessons.append('Component changes may require checking prop usage')
    return lessons


def append_change(
    memory: SessionMemory,
    description: str,
    files_affected: Iterable[str],
    lessons: Iterable[str] = (),
) -> SessionMemory:
    """New memory with one more change entry; only the newest entries are kept."""
    updated = memory.model_copy(deep=True)
    updated.recentChanges.append(ChangeRecord(
        timestamp=_now_iso(),
        description=description,
        filesAffected=list(files_affected),
        lessons=list(lessons),
    ))
    updated.recentChanges = updated.recentChanges[-appConfig.memory.maxRecentChanges:]
    return updated


def add_issues(memory: SessionMemory, errors: Iterable[str]) -> SessionMemory:
    updated = memory.model_copy(deep=True)
    for error in errors:
        existing = next((i for i in updated.knownIssues if i.issue == error), None)
        if existing:
            existing.frequency += 1
        else:
            updated.knownIssues.append(KnownIssue(issue=error, solution=solution_for(error)))
    return updated


def load_memory(session_id: str) -> Optional[SessionMemory]:
    data = database.get_session_memory(session_id)
    if data is None:
        return None
    data.setdefault('sessionId', session_id)
    return SessionMemory.model_validate(data)


def init_memory(session_id: str) -> SessionMemory:
    memory = SessionMemory(sessionId=session_id)
    database.upsert_session_memory(session_id, memory.model_dump())
    print(f"[memory] Initialized memory for session {session_id}")
    return memory


def load_or_init(session_id: str) -> SessionMemory:
    return load_memory(session_id) or init_memory(session_id)


def record_change(
    session_id: str,
    description: str,
    files_affected: List[str],
    lessons: Iterable[str] = (),
) -> SessionMemory:
    """Read-modify-write. Concurrent writers for one session: last write wins."""
    memory = append_change(load_or_init(session_id), description, files_affected, lessons)
    database.upsert_session_memory(session_id, memory.model_dump())
    print(f"[memory] Recorded change for {session_id}: {description} ({len(files_affected)} files)")
    return memory


def record_issues(session_id: str, errors: Iterable[str]) -> SessionMemory:
    errors = [e for e in errors if e]
    memory = load_or_init(session_id)
    if not errors:
        return memory
    memory = add_issues(memory, errors)
    database.upsert_session_memory(session_id, memory.model_dump())
    print(f"[memory] Recorded {len(errors)} issues for {session_id}")
    return memory


def summarize_changes(changes: List[Dict[str, Any]]) -> str:
    counts: Dict[str, int] = {}
    for change in changes:
        kind = change.get('type', 'modify')
        counts[kind] = counts.get(kind, 0) + 1
    labels = {'create': 'Created', 'modify': 'Modified', 'delete': 'Deleted'}
    parts = [f"{labels.get(k, k.capitalize())} {n} file(s)" for k, n in counts.items()]
    return ', '.join(parts) or 'No changes'


# -------------------------------------------------------------------
# Route handlers
# -------------------------------------------------------------------
class GraphState(TypedDict, total=False):
    payload: Dict[str, Any]
    response: Dict[str, Any]


def _get_compute(payload: Dict[str, Any]) -> Dict[str, Any]:
    session_id = payload.get("sessionId")
    if not session_id:
        return {"success": False, "error": "sessionId is required"}
    try:
        memory = load_memory(session_id)
        return {"success": True, "memory": memory.model_dump() if memory else None}
    except Exception as e:
        print("[memory] Error loading memory:", e)
        return {"success": False, "error": str(e)}


def _post_compute(payload: Dict[str, Any]) -> Dict[str, Any]:
    action = payload.get("action")
    session_id = payload.get("sessionId")
    if not session_id:
        return {"success": False, "error": "sessionId is required"}
    try:
        if action == "load":
            memory = load_or_init(session_id)
            return {"success": True, "memory": memory.model_dump()}
        if action in ("init", "reset"):
            memory = init_memory(session_id)
            return {"success": True, "memory": memory.model_dump(), "message": f"Memory {action} done"}
        if action == "update":
            changes = payload.get("changes") or []
            errors = [e.get("message", str(e)) if isinstance(e, dict) else str(e)
                      for e in (payload.get("errors") or [])]
            description = payload.get("description") or summarize_changes(changes)
            files = [c.get("path") for c in changes if c.get("path")]
            record_change(session_id, description, files, extract_lessons(files, errors))
            memory = record_issues(session_id, errors)
            return {"success": True, "memory": memory.model_dump(), "updated": True}
        return {"success": False, "error": 'Invalid action. Use "load", "init", "update" or "reset"'}
    except Exception as e:
        print("[memory] Error:", e)
        return {"success": False, "error": str(e)}


def _delete_compute(payload: Dict[str, Any]) -> Dict[str, Any]:
    session_id = payload.get("sessionId")
    if not session_id:
        return {"success": False, "error": "sessionId is required"}
    try:
        deleted = database.delete_session_memory(session_id)
        print(f"[memory] Cleared memory for {session_id}")
        return {"success": True, "deleted": deleted}
    except Exception as e:
        print("[memory] Error clearing memory:", e)
        return {"success": False, "error": str(e)}


def _node_factory(processor: RunnableLambda):
    def _node(state: GraphState) -> GraphState:
        resp = processor.invoke(state.get("payload", {}))
        return {"response": resp}
    return _node


def _single_step_graph(compute):
    sg = StateGraph(GraphState)
    sg.add_node("process", _node_factory(RunnableLambda(compute)))
    sg.set_entry_point("process")
    sg.add_edge("process", END)
    return sg.compile()


_get_graph = _single_step_graph(_get_compute)
_post_graph = _single_step_graph(_post_compute)
_delete_graph = _single_step_graph(_delete_compute)


def GET(session_id: Optional[str]) -> Dict[str, Any]:
    return _get_graph.invoke({"payload": {"sessionId": session_id}})["response"]


def POST(body: Dict[str, Any]) -> Dict[str, Any]:
    return _post_graph.invoke({"payload": body or {}})["response"]


def DELETE(session_id: Optional[str]) -> Dict[str, Any]:
    return _delete_graph.invoke({"payload": {"sessionId": session_id}})["response"]
