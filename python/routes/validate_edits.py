# routes/validate_edits.py - Structural validation and deterministic repair of edit directives
from __future__ import annotations

import difflib
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from config.app_config import appConfig
from routes.dependency_graph import file_format, resolve_import
from routes.directives import (
    COMPONENT, DIRECTIVE_KINDS, MARKUP, STYLESHEET,
    EditDirective, ValidationIssue, ValidationResult, to_directive,
)

REQUIRED_FIELDS = {
    STYLESHEET: ('target', 'property'),
    MARKUP: ('target',),
    COMPONENT: ('target', 'changes'),
}

_FORMAT_KINDS = {
    'stylesheet': STYLESHEET,
    'markup': MARKUP,
    'component-script': COMPONENT,
}

_RELATIVE_IMPORT = re.compile(r"""(?:from\s+|import\s*\(\s*|require\(\s*)['"](\.{1,2}/[^'"]+)['"]""")


class FixOutcome(BaseModel):
    directives: List[EditDirective] = Field(default_factory=list)
    rejected: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    fixed: bool = False


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _known_file(path: Any, files: Dict[str, str]) -> bool:
    return isinstance(path, str) and not _missing(path) and path in files


def validate_directives(raw: List[Dict[str, Any]], files: Dict[str, str]) -> ValidationResult:
    result = ValidationResult()
    for index, directive in enumerate(raw):
        if not isinstance(directive, dict):
            result.errors.append(ValidationIssue(index=index, directive={}, message='Directive is not an object'))
            continue
        path = directive.get('path')

        # 1. target file exists
        if not _known_file(path, files):
            result.errors.append(ValidationIssue(
                index=index, directive=directive, message=f"File not found: {path}"))
            continue

        # 2. required fields for the kind
        kind = directive.get('type')
        if kind not in DIRECTIVE_KINDS:
            result.errors.append(ValidationIssue(
                index=index, directive=directive, message=f"Unknown directive type: {kind}"))
            continue
        missing = [f for f in REQUIRED_FIELDS[kind] if _missing(directive.get(f))]
        if kind == COMPONENT and not isinstance(directive.get('changes'), dict) and 'changes' not in missing:
            missing.append('changes')
        if missing:
            result.errors.append(ValidationIssue(
                index=index, directive=directive,
                message=f"Missing required fields for {kind}: {', '.join(missing)}"))
            continue

        # 3. imports embedded in component changes
        if kind == COMPONENT:
            for spec in _embedded_imports(directive):
                if resolve_import(spec, path, files) is None:
                    result.warnings.append(f"{path}: import '{spec}' does not resolve to a project file")

    if result.errors:
        print(f"[validate-edits] {len(result.errors)} invalid directives out of {len(raw)}")
    return result


def _embedded_imports(directive: Dict[str, Any]) -> List[str]:
    blob = json.dumps(directive.get('changes') or {}) + ' ' + str(directive.get('value') or '')
    blob = blob.replace('\\"', '"')
    return list(dict.fromkeys(_RELATIVE_IMPORT.findall(blob)))


def find_similar_file(path: Any, files: Dict[str, str]) -> Optional[str]:
    """Exact basename, then stem, then containment, then a close stem match."""
    if not isinstance(path, str) or _missing(path):
        return None
    wanted = re.sub(r'^(?:\./|/)+', '', path.strip())
    if wanted in files:
        return wanted
    base = wanted.rsplit('/', 1)[-1].lower()
    stem = base.split('.', 1)[0]
    paths = list(files)

    for p in paths:
        if p.rsplit('/', 1)[-1].lower() == base:
            return p
    for p in paths:
        if p.rsplit('/', 1)[-1].lower().split('.', 1)[0] == stem:
            return p
    for p in paths:
        p_stem = p.rsplit('/', 1)[-1].lower().split('.', 1)[0]
        if stem and p_stem and (stem in p.lower() or p_stem in stem):
            return p

    stems = {p.rsplit('/', 1)[-1].lower().split('.', 1)[0]: p for p in paths}
    close = difflib.get_close_matches(stem, list(stems), n=1, cutoff=appConfig.validation.similarityCutoff)
    if close:
        return stems[close[0]]
    return None


def _fix_one(directive: Any, files: Dict[str, str]) -> Optional[Dict[str, Any]]:
    if not isinstance(directive, dict):
        return None
    directive = dict(directive)

    path = directive.get('path')
    if not _known_file(path, files):
        similar = find_similar_file(path, files)
        if similar is None:
            print(f"[validate-edits] Dropping directive for unknown file {path!r}: {directive}")
            return None
        print(f"[validate-edits] Retargeting {path!r} -> {similar!r}")
        directive['path'] = similar

    if directive.get('type') not in DIRECTIVE_KINDS:
        inferred = _FORMAT_KINDS.get(file_format(directive['path']))
        if inferred is None:
            print(f"[validate-edits] Cannot infer directive type for {directive['path']}")
            return None
        directive['type'] = inferred

    if directive.get('value') is None and directive['type'] != COMPONENT:
        directive['value'] = ''
    if directive['type'] == COMPONENT and not isinstance(directive.get('changes'), dict):
        directive['changes'] = {}
    return directive


def auto_fix_directives(
    raw: List[Dict[str, Any]],
    validation: ValidationResult,
    files: Dict[str, str],
    rejected: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Repair the invalid directives in place.

    Anything unrepairable is dropped, and recorded in `rejected` when given.
    """
    invalid = validation.invalid_indexes()
    fixed: List[Dict[str, Any]] = []
    for index, directive in enumerate(raw):
        if index not in invalid:
            fixed.append(directive)
            continue
        repaired = _fix_one(directive, files)
        if repaired is not None:
            fixed.append(repaired)
        elif rejected is not None:
            rejected.append({
                'directive': directive if isinstance(directive, dict) else {},
                'error': 'Could not be repaired: ' + next(
                    i.message for i in validation.errors if i.index == index),
            })
    return fixed


def validate_and_fix(raw: List[Dict[str, Any]], files: Dict[str, str]) -> FixOutcome:
    outcome = FixOutcome()
    validation = validate_directives(raw, files)
    candidates = list(raw)

    if not validation.all_valid:
        outcome.fixed = True
        candidates = auto_fix_directives(raw, validation, files, outcome.rejected)
        validation = validate_directives(candidates, files)

    outcome.warnings = list(validation.warnings)
    invalid = validation.invalid_indexes()
    for issue in validation.errors:
        outcome.rejected.append({'directive': issue.directive, 'error': issue.message})

    for index, directive in enumerate(candidates):
        if index in invalid:
            continue
        try:
            outcome.directives.append(to_directive(directive))
        except ValidationError as e:
            outcome.rejected.append({'directive': directive, 'error': str(e)})

    print(f"[validate-edits] {len(outcome.directives)} valid, {len(outcome.rejected)} rejected, "
          f"{len(outcome.warnings)} warnings")
    return outcome
