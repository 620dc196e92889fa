# routes/preview.py - LCS line diffs and per-file modification previews
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from config.app_config import appConfig
from routes.directives import (
    COMPONENT, MARKUP, STYLESHEET,
    DiffLine, EditDirective, FileDiff, ModificationPreview, directive_to_dict,
)
from routes.format_editors import apply_edit

EXCERPT_CHARS = 500
ELISION = '...'

DirectiveLike = Union[EditDirective, Dict[str, Any]]


def compute_lcs(a: Sequence[str], b: Sequence[str]) -> List[str]:
    """Longest common subsequence of two line lists (O(n*m) table on the differing middle)."""
    prefix = 0
    while prefix < len(a) and prefix < len(b) and a[prefix] == b[prefix]:
        prefix += 1
    suffix = 0
    while (suffix < len(a) - prefix and suffix < len(b) - prefix
           and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]):
        suffix += 1

    mid_a = a[prefix:len(a) - suffix]
    mid_b = b[prefix:len(b) - suffix]
    m, n = len(mid_a), len(mid_b)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        row, prev = dp[i], dp[i - 1]
        ai = mid_a[i - 1]
        for j in range(1, n + 1):
            if ai == mid_b[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = prev[j] if prev[j] >= row[j - 1] else row[j - 1]

    middle: List[str] = []
    i, j = m, n
    while i > 0 and j > 0:
        if mid_a[i - 1] == mid_b[j - 1]:
            middle.append(mid_a[i - 1])
            i -= 1
            j -= 1
        elif dp[i - 1][j] > dp[i][j - 1]:
            i -= 1
        else:
            j -= 1
    middle.reverse()

    return list(a[:prefix]) + middle + list(a[len(a) - suffix:])


def _walk(before: List[str], after: List[str], lcs: List[str]) -> List[DiffLine]:
    lines: List[DiffLine] = []
    bi = ai = li = 0
    while bi < len(before) or ai < len(after):
        common = lcs[li] if li < len(lcs) else None
        if common is not None and bi < len(before) and ai < len(after) \
                and before[bi] == common and after[ai] == common:
            lines.append(DiffLine(type='unchanged', content=before[bi],
                                  line_number=ai + 1, original_line_number=bi + 1))
            bi += 1
            ai += 1
            li += 1
        elif bi < len(before) and (common is None or before[bi] != common):
            lines.append(DiffLine(type='remove', content=before[bi],
                                  line_number=bi + 1, original_line_number=bi + 1))
            bi += 1
        else:
            lines.append(DiffLine(type='add', content=after[ai], line_number=ai + 1))
            ai += 1
    return lines


def _with_context(lines: List[DiffLine], context_lines: int) -> List[DiffLine]:
    changed = [i for i, line in enumerate(lines) if line.type in ('add', 'remove')]
    if not changed:
        return []
    keep = set()
    for idx in changed:
        keep.update(range(max(0, idx - context_lines), min(len(lines), idx + context_lines + 1)))

    result: List[DiffLine] = []
    last = None
    for idx in sorted(keep):
        if last is not None and idx > last + 1:
            result.append(DiffLine(type='context', content=ELISION, line_number=-1))
        line = lines[idx]
        result.append(line.model_copy(update={'type': 'context'}) if line.type == 'unchanged' else line)
        last = idx
    return result


def generate_diff(before: str, after: str, context_lines: Optional[int] = None) -> List[DiffLine]:
    """Changed lines with surrounding context; [] when nothing was added or removed."""
    if context_lines is None:
        context_lines = appConfig.preview.contextLines
    before_lines = before.split('\n')
    after_lines = after.split('\n')
    lcs = compute_lcs(before_lines, after_lines)
    return _with_context(_walk(before_lines, after_lines, lcs), context_lines)


def diff_stats(lines: List[DiffLine]) -> Dict[str, int]:
    added = sum(1 for line in lines if line.type == 'add')
    removed = sum(1 for line in lines if line.type == 'remove')
    return {'added': added, 'removed': removed, 'changed': added + removed}


def _as_dict(directive: DirectiveLike) -> Dict[str, Any]:
    return directive if isinstance(directive, dict) else directive_to_dict(directive)


def is_auto_approvable(directive: DirectiveLike) -> bool:
    mod = _as_dict(directive)
    if mod.get('type') == STYLESHEET and mod.get('property'):
        return mod['property'] in appConfig.preview.cosmeticProperties
    if mod.get('type') == COMPONENT and isinstance(mod.get('changes'), dict):
        return list(mod['changes']) == ['className'] and not mod.get('value')
    return False


def summarize_directive(directive: DirectiveLike) -> str:
    mod = _as_dict(directive)
    kind = mod.get('type')
    if kind == STYLESHEET:
        return f"{mod.get('property')}: {mod.get('value')}"
    if kind == COMPONENT:
        keys = list((mod.get('changes') or {}).keys())
        if mod.get('value'):
            keys.append('content')
        if len(keys) == 1:
            return f"{keys[0]} updated"
        return f"{len(keys)} attributes updated"
    if kind == MARKUP:
        if mod.get('attribute'):
            return f'{mod["attribute"]} = "{mod.get("value", "")}"'
        return 'Content updated'
    return 'Modification'


def generate_previews(
    directives: List[EditDirective],
    original_files: Dict[str, str],
    updated_files: Optional[Dict[str, str]] = None,
) -> List[ModificationPreview]:
    """One preview per touched file. Without `updated_files` the directives are applied to a scratch copy."""
    by_file: Dict[str, List[EditDirective]] = {}
    for directive in directives:
        by_file.setdefault(directive.path, []).append(directive)

    previews: List[ModificationPreview] = []
    for path, batch in by_file.items():
        original = original_files.get(path)
        if original is None:
            continue
        if updated_files is not None and path in updated_files:
            modified = updated_files[path]
        else:
            modified = original
            for directive in batch:
                modified = apply_edit(modified, directive).content

        lines = generate_diff(original, modified)
        stats = diff_stats(lines)
        previews.append(ModificationPreview(
            file=path,
            diff=FileDiff(
                before=original[:EXCERPT_CHARS],
                after=modified[:EXCERPT_CHARS],
                lines=lines,
                added_lines=stats['added'],
                removed_lines=stats['removed'],
            ),
            auto_approved=all(is_auto_approvable(d) for d in batch),
            modification_type=batch[0].type,
            summary=', '.join(summarize_directive(d) for d in batch),
        ))
    print(f"[preview] Generated {len(previews)} previews")
    return previews


def format_diff_for_display(preview: ModificationPreview) -> str:
    out = [f"{preview.file}", f"   {preview.summary}", '']
    for line in preview.diff.lines:
        prefix = '+' if line.type == 'add' else '-' if line.type == 'remove' else ' '
        number = f"{line.line_number}:" if line.line_number > 0 else '  '
        out.append(f"{prefix} {number} {line.content}")
    return '\n'.join(out)
