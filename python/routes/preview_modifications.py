# routes/preview_modifications.py - Diff previews for a directive list without keeping the result
from typing import Any, Dict

from routes.preview import format_diff_for_display, generate_previews
from routes.validate_edits import validate_and_fix


def POST(body: Dict[str, Any]) -> Dict[str, Any]:
    body = body or {}
    modifications = body.get('modifications')
    project_files = body.get('projectFiles')
    if not isinstance(modifications, list) or not isinstance(project_files, dict):
        return {'success': False, 'error': 'modifications and projectFiles are required'}

    fix = validate_and_fix(modifications, project_files)
    previews = generate_previews(fix.directives, project_files)
    return {
        'success': bool(previews),
        'previews': [p.model_dump() for p in previews],
        'display': '\n\n'.join(format_diff_for_display(p) for p in previews),
        'rejected': fix.rejected,
        'warnings': fix.warnings,
    }
