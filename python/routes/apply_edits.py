# routes/apply_edits.py - Apply validated directives to a copy of the project files
from __future__ import annotations

from typing import Dict, List

from routes.directives import ApplyResult, EditDirective, directive_to_dict
from routes.format_editors import apply_edit


def apply_directives(files: Dict[str, str], directives: List[EditDirective]) -> ApplyResult:
    """Group by file, apply in generation order; misses are reported, never rolled back."""
    updated = dict(files)
    by_file: Dict[str, List[EditDirective]] = {}
    for directive in directives:
        by_file.setdefault(directive.path, []).append(directive)

    result = ApplyResult(success=False)
    for path, batch in by_file.items():
        if path not in updated:
            result.errors.extend(f"{path}: file not found ({d.target})" for d in batch)
            continue
        content = updated[path]
        for directive in batch:
            try:
                outcome = apply_edit(content, directive)
            except Exception as e:
                print(f"[apply-edits] Editor crashed on {path}: {e} ({directive_to_dict(directive)})")
                result.errors.append(f"{path}: {e}")
                continue
            if outcome.error:
                print(f"[apply-edits] Soft failure on {path}: {outcome.error} ({directive_to_dict(directive)})")
                result.errors.append(f"{path}: {outcome.error}")
            if outcome.changed or not outcome.error:
                result.applied.append(directive_to_dict(directive))
            content = outcome.content
        if content != files[path]:
            updated[path] = content
            result.modified_files.append(path)

    result.updated_files = updated
    result.success = bool(result.applied)
    print(f"[apply-edits] Applied {len(result.applied)}/{len(directives)} directives "
          f"across {len(result.modified_files)} files ({len(result.errors)} errors)")
    return result
