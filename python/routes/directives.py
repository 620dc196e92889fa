# routes/directives.py - Edit directive and pipeline result models
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Complexity = Literal['trivial', 'simple', 'moderate', 'complex']
IntentType = Literal['quick-modification', 'full-generation']

STYLESHEET = 'css-change'
MARKUP = 'html-change'
COMPONENT = 'jsx-change'
DIRECTIVE_KINDS = (STYLESHEET, MARKUP, COMPONENT)


class AnalysisResult(BaseModel):
    """Outcome of classifying a change request. Frozen once built."""
    model_config = ConfigDict(frozen=True)

    complexity: Complexity
    score: int
    patterns: List[str] = Field(default_factory=list)
    intent_type: IntentType
    confidence: float
    mentioned_files: List[str] = Field(default_factory=list)
    reasoning: str = ''

    def summary(self) -> Dict[str, Any]:
        return {
            'complexity': self.complexity,
            'intentType': self.intent_type,
            'confidence': self.confidence,
            'score': self.score,
            'explanation': self.reasoning,
        }


# -------------------------------------------------------------------
# Edit directives, one case per file format
# -------------------------------------------------------------------
class StylesheetEdit(BaseModel):
    type: Literal['css-change'] = STYLESHEET
    path: str
    target: str
    property: str
    value: str = ''


class MarkupEdit(BaseModel):
    type: Literal['html-change'] = MARKUP
    path: str
    target: str
    attribute: Optional[str] = None
    value: str = ''


class ComponentEdit(BaseModel):
    type: Literal['jsx-change'] = COMPONENT
    path: str
    target: str
    changes: Dict[str, Any] = Field(default_factory=dict)
    value: Optional[str] = None


EditDirective = Annotated[
    Union[StylesheetEdit, MarkupEdit, ComponentEdit],
    Field(discriminator='type'),
]

_directive_adapter = TypeAdapter(EditDirective)


def to_directive(raw: Dict[str, Any]) -> EditDirective:
    """Build a typed directive from a validated raw dict (raises ValidationError)."""
    data = dict(raw)
    if data.get('value') is not None and not isinstance(data['value'], str):
        data['value'] = str(data['value'])
    return _directive_adapter.validate_python(data)


def directive_to_dict(directive: EditDirective) -> Dict[str, Any]:
    return directive.model_dump(exclude_none=True)


# -------------------------------------------------------------------
# Validation / apply results
# -------------------------------------------------------------------
class ValidationIssue(BaseModel):
    index: int
    directive: Dict[str, Any]
    message: str


class ValidationResult(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def all_valid(self) -> bool:
        return not self.errors

    def invalid_indexes(self) -> set:
        return {issue.index for issue in self.errors}


class ApplyResult(BaseModel):
    success: bool
    updated_files: Dict[str, str] = Field(default_factory=dict)
    modified_files: List[str] = Field(default_factory=list)
    applied: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


# -------------------------------------------------------------------
# Preview / suggestions
# -------------------------------------------------------------------
class DiffLine(BaseModel):
    type: Literal['add', 'remove', 'unchanged', 'context']
    content: str
    line_number: int
    original_line_number: Optional[int] = None


class FileDiff(BaseModel):
    before: str
    after: str
    lines: List[DiffLine] = Field(default_factory=list)
    added_lines: int = 0
    removed_lines: int = 0


class ModificationPreview(BaseModel):
    file: str
    diff: FileDiff
    auto_approved: bool
    modification_type: str
    summary: str


class ProactiveSuggestion(BaseModel):
    type: Literal['improvement', 'consistency', 'accessibility', 'performance', 'best-practice']
    message: str
    message_en: str
    priority: Literal['low', 'medium', 'high']
    auto_applicable: bool
    modification: Optional[Dict[str, Any]] = None
