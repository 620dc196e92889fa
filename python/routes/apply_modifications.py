# routes/apply_modifications.py - Apply a confirmed directive list (e.g. an accepted suggestion)
from typing import Any, Dict, List

from routes.apply_edits import apply_directives
from routes.preview import generate_previews
from routes.validate_edits import validate_and_fix


def _collect(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Accepts either `modifications: [...]` or a single suggestion's `modification`."""
    if isinstance(body.get('modifications'), list):
        return body['modifications']
    suggestion = body.get('suggestion') or {}
    single = body.get('modification') or suggestion.get('modification')
    return [single] if isinstance(single, dict) else []


def POST(body: Dict[str, Any]) -> Dict[str, Any]:
    body = body or {}
    project_files = body.get('projectFiles')
    modifications = _collect(body)
    if not modifications or not isinstance(project_files, dict):
        return {'success': False, 'error': 'modifications and projectFiles are required'}

    fix = validate_and_fix(modifications, project_files)
    if not fix.directives:
        return {'success': False, 'error': 'Validation failed after auto-fix', 'rejected': fix.rejected}

    result = apply_directives(project_files, fix.directives)
    previews = generate_previews(fix.directives, project_files, result.updated_files)
    print(f"[apply-modifications] {len(result.applied)} applied, {len(result.errors)} errors")
    return {
        'success': result.success,
        'modifications': result.applied,
        'updatedFiles': {p: result.updated_files[p] for p in result.modified_files},
        'errors': result.errors,
        'rejected': fix.rejected,
        'warnings': fix.warnings,
        'previews': [p.model_dump() for p in previews],
    }
