# routes/context_optimizer.py - Line budgets, memory and conversation summaries for the prompt
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from config.app_config import appConfig

OMITTED_MARKER = '... [{count} lines omitted] ...'


class OptimizedContext(BaseModel):
    files: Dict[str, str] = Field(default_factory=dict)
    truncated: List[str] = Field(default_factory=list)
    total_lines: int = 0
    optimized_lines: int = 0


def line_ceiling(complexity: str) -> int:
    ceilings = appConfig.context.maxLines
    return ceilings.get(complexity, ceilings['complex'])


def truncate_content(content: str, ceiling: int) -> Optional[str]:
    """Head + marker + tail for an oversized file, None when it already fits."""
    lines = content.split('\n')
    if len(lines) <= ceiling:
        return None
    keep = math.floor(ceiling * appConfig.context.keepRatio)
    omitted = len(lines) - 2 * keep
    kept = lines[:keep] + [OMITTED_MARKER.format(count=omitted)]
    if keep:
        kept += lines[-keep:]
    return '\n'.join(kept)


def optimize_context(files: Dict[str, str], complexity: str) -> OptimizedContext:
    ceiling = line_ceiling(complexity)
    result = OptimizedContext()
    for path, content in files.items():
        content = content or ''
        line_count = len(content.split('\n'))
        result.total_lines += line_count
        shortened = truncate_content(content, ceiling)
        if shortened is None:
            result.files[path] = content
            result.optimized_lines += line_count
        else:
            result.files[path] = shortened
            result.truncated.append(path)
            result.optimized_lines += len(shortened.split('\n'))

    if result.truncated:
        print(f"[context-optimizer] Truncated {len(result.truncated)} files "
              f"({result.total_lines} -> {result.optimized_lines} lines, ceiling {ceiling})")
    return result


def render_context(files: Dict[str, str]) -> str:
    blocks = []
    for path, content in files.items():
        blocks.append(f"=== FILE: {path} ===\n{content}\n=== END FILE ===")
    return '\n\n'.join(blocks)


def build_memory_context(memory: Optional[Dict[str, Any]]) -> str:
    if not memory:
        return ''
    cfg = appConfig.context
    parts = ['# PROJECT MEMORY']

    arch = memory.get('architecture') or {}
    if arch:
        parts.append('## Architecture')
        parts.append(f"Framework: {arch.get('framework') or 'unknown'}")
        if arch.get('patterns'):
            parts.append(f"Patterns: {', '.join(arch['patterns'])}")
        conventions = arch.get('conventions')
        if isinstance(conventions, dict):
            for name, rule in conventions.items():
                parts.append(f"- {name}: {rule}")
        elif conventions:
            parts.append(f"Conventions: {', '.join(conventions)}")

    changes = memory.get('recentChanges') or []
    if changes:
        parts.append('## Recent Changes')
        for change in changes[-cfg.memoryChanges:]:
            files = ', '.join(change.get('filesAffected') or [])
            parts.append(f"- {change.get('description', '')} (files: {files})")

    issues = memory.get('knownIssues') or []
    if issues:
        parts.append('## Known Issues')
        for issue in issues[-cfg.memoryIssues:]:
            parts.append(f"- {issue.get('issue', '')}: {issue.get('solution', '')}")

    prefs = memory.get('userPreferences') or {}
    if any(prefs.values()):
        parts.append('## User Preferences')
        if prefs.get('codingStyle'):
            parts.append(f"Coding style: {prefs['codingStyle']}")
        if prefs.get('preferredLibraries'):
            parts.append(f"Preferred libraries: {', '.join(prefs['preferredLibraries'])}")
        if prefs.get('avoidances'):
            parts.append(f"Avoid: {', '.join(prefs['avoidances'])}")

    if len(parts) == 1:
        return ''
    return '\n'.join(parts) + '\n'


def _turn_files(turn: Dict[str, Any]) -> List[str]:
    meta = turn.get('metadata') or {}
    files = meta.get('filesAffected') or meta.get('files') or []
    names = []
    for f in files:
        if isinstance(f, dict):
            f = f.get('path')
        if f:
            names.append(str(f))
    return names


def build_conversation_context(history: Optional[List[Dict[str, Any]]], limit: Optional[int] = None) -> str:
    """Last N turns, each annotated with the files it touched."""
    if not history:
        return ''
    limit = limit or appConfig.context.conversationTurns
    lines = ['# RECENT CONVERSATION']
    for turn in history[-limit:]:
        role = turn.get('role', 'user')
        content = (turn.get('content') or '').strip().replace('\n', ' ')
        if len(content) > 300:
            content = content[:300] + '...'
        entry = f"[{role}] {content}"
        touched = _turn_files(turn)
        if touched:
            entry += f" (files: {', '.join(touched)})"
        lines.append(entry)
    return '\n'.join(lines) + '\n'
