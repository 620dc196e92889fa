# routes/edit_generator.py - Prompt building, streamed model call and tolerant response parsing
from __future__ import annotations

import json
import os
import re
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from langchain_core.messages import HumanMessage, SystemMessage

# LLM Providers
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from config.app_config import appConfig
from routes.context_optimizer import render_context

load_dotenv()

# Env-driven defaults
ANTHROPIC_MODEL_DEFAULT = os.environ.get("ANTHROPIC_MODEL", "claude-sonnet-4-5")
OPENAI_MODEL_DEFAULT = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
GROQ_MODEL_DEFAULT = os.environ.get("GROQ_MODEL", "moonshotai/kimi-k2-instruct")
GOOGLE_MODEL_DEFAULT = os.environ.get("GOOGLE_MODEL", "gemini-1.5-pro")

INTENT_PLACEHOLDER = "Applying the requested changes"
SUMMARY_PLACEHOLDER = "Changes applied"
PARSE_FAILURE = "No modifications generated: the model response could not be parsed"


class GenerationProfile(BaseModel):
    model: str
    max_tokens: int
    temperature: float


class GenerationOutput(BaseModel):
    text: str = ''
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ParsedResponse(BaseModel):
    intent: str = ''
    summary: str = ''
    affected_files: List[Any] = Field(default_factory=list)
    modifications: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    stage: str = 'direct'  # direct | repaired | fallback | failed


# -------------------------------------------------------------------
# Model selection
# -------------------------------------------------------------------
def select_profile(complexity: str) -> GenerationProfile:
    cfg = appConfig.generation
    profile = cfg.profiles.get(complexity, cfg.profiles['complex'])
    model = cfg.fastModel if profile.model == 'fast' else cfg.standardModel
    return GenerationProfile(model=model, max_tokens=profile.maxTokens, temperature=profile.temperature)


def _clean_base_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return url[:-3] if url.endswith("/v1") else url


def _build_anthropic(model_name: Optional[str], max_tokens: int, temperature: float) -> ChatAnthropic:
    base_url = _clean_base_url(os.environ.get("ANTHROPIC_BASE_URL"))
    kwargs: Dict[str, Any] = {}
    if base_url:
        kwargs["base_url"] = base_url
    return ChatAnthropic(
        api_key=os.environ.get("ANTHROPIC_API_KEY"),
        model=model_name or ANTHROPIC_MODEL_DEFAULT,
        max_tokens=max_tokens,
        temperature=temperature,
        streaming=True,
        **kwargs,
    )


def _build_openai(model_name: Optional[str], max_tokens: int, temperature: float) -> ChatOpenAI:
    base_url = os.environ.get("OPENAI_BASE_URL")
    kwargs: Dict[str, Any] = {}
    if base_url:
        kwargs["base_url"] = base_url
    return ChatOpenAI(
        api_key=os.environ.get("OPENAI_API_KEY"),
        model=model_name or OPENAI_MODEL_DEFAULT,
        max_tokens=max_tokens,
        temperature=temperature,
        streaming=True,
        stream_usage=True,
        **kwargs,
    )


def _build_groq(model_name: Optional[str], max_tokens: int, temperature: float) -> ChatGroq:
    return ChatGroq(
        api_key=os.environ.get("GROQ_API_KEY"),
        model=model_name or GROQ_MODEL_DEFAULT,
        max_tokens=max_tokens,
        temperature=temperature,
        streaming=True,
    )


def _build_google(model_name: Optional[str], max_tokens: int, temperature: float) -> ChatGoogleGenerativeAI:
    return ChatGoogleGenerativeAI(
        api_key=os.environ.get("GOOGLE_API_KEY"),
        model=model_name or GOOGLE_MODEL_DEFAULT,
        max_tokens=max_tokens,
        temperature=temperature,
    )


def _select_model(model_str: str, max_tokens: int = 4000, temperature: float = 0.3):
    """Resolve a provider-prefixed model string to a streaming chat model"""
    if "/" in model_str:
        provider, name = model_str.split("/", 1)
        provider = provider.lower()
        if provider == "anthropic":
            return _build_anthropic(name, max_tokens, temperature)
        if provider == "openai":
            return _build_openai(name, max_tokens, temperature)
        if provider == "google":
            return _build_google(name, max_tokens, temperature)
        if provider == "groq":
            return _build_groq(name, max_tokens, temperature)

    # Fallback heuristics
    ms = model_str.lower()
    if ms.startswith("claude"):
        return _build_anthropic(model_str, max_tokens, temperature)
    if ms.startswith("gpt"):
        return _build_openai(model_str, max_tokens, temperature)
    if "gemini" in ms:
        return _build_google(model_str, max_tokens, temperature)

    return _build_anthropic(model_str or None, max_tokens, temperature)


# -------------------------------------------------------------------
# Prompt
# -------------------------------------------------------------------
RESPONSE_CONTRACT = """RESPONSE FORMAT (MANDATORY):
Reply with ONE JSON object and nothing else: no prose before or after it, no markdown code fences.

{
  "intent": "One short sentence describing exactly what you are about to change",
  "summary": "One or two sentences describing what was changed once applied",
  "affectedFiles": [
    {"path": "styles.css", "description": "Button color updated", "changeType": "modified"}
  ],
  "modifications": [
    {"type": "css-change", "path": "styles.css", "target": ".button", "property": "color", "value": "#03A5C0"},
    {"type": "html-change", "path": "index.html", "target": "h1", "value": "New title"},
    {"type": "html-change", "path": "index.html", "target": "#hero-image", "attribute": "alt", "value": "Team photo"},
    {"type": "jsx-change", "path": "src/components/Button.tsx", "target": "button", "changes": {"className": "btn btn-primary"}},
    {"type": "jsx-change", "path": "src/App.tsx", "target": "h1", "changes": {}, "value": "Welcome"}
  ]
}

DIRECTIVE RULES:
- "css-change" needs "target" (the selector exactly as written in the file), "property" and "value".
- "html-change" needs "target" (.class, #id or tag). Give "attribute" to set an attribute, omit it to replace the element text.
- "jsx-change" needs "target" (component or element name, .class or #id) and "changes" (className, style object, props, or other attributes). Use "value" to replace the element's inner content.
- "path" must be one of the files listed below, spelled exactly.
- The "intent" field must be specific. Generic messages such as "I will modify the code" are not allowed.
- Change only what was requested and leave everything else untouched.
- "modifications" must never be empty."""


def build_system_prompt(
    complexity: str,
    optimized_files: Dict[str, str],
    memory_context: str = '',
    conversation_context: str = '',
) -> str:
    guidance = appConfig.generation.directiveGuidance.get(complexity, '1-3 modifications')
    sections = [
        "You are a fast and precise web code modification assistant. "
        "You express every change as structured edit directives instead of rewriting files.",
        f"REQUEST COMPLEXITY: {complexity}",
    ]
    if memory_context:
        sections.append(memory_context.strip())
    if conversation_context:
        sections.append(conversation_context.strip())
    sections.append("# PROJECT FILES\n" + render_context(optimized_files))
    sections.append(RESPONSE_CONTRACT)
    sections.append(f"GUIDANCE: this is a {complexity} request; expect roughly {guidance}.")
    return '\n\n'.join(sections)


# -------------------------------------------------------------------
# Streaming call
# -------------------------------------------------------------------
def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get('type', 'text') == 'text':
                parts.append(block.get('text', ''))
        return ''.join(parts)
    return ''


async def generate_with_streaming(
    profile: GenerationProfile,
    system_prompt: str,
    user_message: str,
    on_progress: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> GenerationOutput:
    """Consume the model stream into one buffer. Chunks never leave this function."""
    llm = _select_model(profile.model, profile.max_tokens, profile.temperature)
    output = GenerationOutput()
    buffer: List[str] = []
    body_started = False

    print(f"[edit-generator] Streaming from {profile.model} (max_tokens={profile.max_tokens}, temperature={profile.temperature})")
    async for chunk in llm.astream([SystemMessage(content=system_prompt), HumanMessage(content=user_message)]):
        text = _chunk_text(getattr(chunk, 'content', ''))
        if text:
            buffer.append(text)
            if not body_started and '{' in text:
                body_started = True
                if on_progress:
                    on_progress({'stage': 'receiving'})
        usage = getattr(chunk, 'usage_metadata', None)
        if usage:
            output.input_tokens += int(usage.get('input_tokens') or 0)
            output.output_tokens += int(usage.get('output_tokens') or 0)

    output.text = ''.join(buffer)
    print(f"[edit-generator] Received {len(output.text)} chars ({output.input_tokens} in / {output.output_tokens} out)")
    return output


# -------------------------------------------------------------------
# Parsing
# -------------------------------------------------------------------
_FENCE = re.compile(r'```[\w-]*[ \t]*\r?\n?')
_CLOSERS = {'{': '}', '[': ']'}


def strip_code_fences(text: str) -> str:
    return _FENCE.sub('', text or '').strip()


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index one past the bracket closing text[start], skipping string contents."""
    stack: List[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ('}', ']'):
            if not stack or stack[-1] != ch:
                return None
            stack.pop()
            if not stack:
                return i + 1
    return None


def extract_json_object(text: str) -> Optional[str]:
    """First balanced {...} region holding "modifications", else the unterminated tail."""
    pos = text.find('{')
    while pos != -1:
        end = _balanced_end(text, pos)
        if end is None:
            tail = text[pos:]
            return tail if '"modifications"' in tail else None
        region = text[pos:end]
        if '"modifications"' in region:
            return region
        pos = text.find('{', end)
    return None


_DANGLING_COMMA = re.compile(r',\s*[}\]]')


def repair_json(text: str) -> str:
    """Drop trailing commas and close whatever is still open, innermost first."""
    source = text.strip()
    out: List[str] = []
    stack: List[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(source):
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == ',' and _DANGLING_COMMA.match(source, i):
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ('}', ']') and stack and stack[-1] == ch:
            stack.pop()
        out.append(ch)
    repaired = ''.join(out)
    if in_string:
        repaired += '"'
    repaired = repaired.rstrip()
    while repaired.endswith((',', ':')):
        repaired = repaired[:-1].rstrip()
    return repaired + ''.join(reversed(stack))


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


_FILE_TYPE_KINDS = {
    'css': 'css-change', 'scss': 'css-change',
    'html': 'html-change',
    'js': 'jsx-change', 'jsx': 'jsx-change', 'ts': 'jsx-change', 'tsx': 'jsx-change',
}


def normalize_modification(mod: Any) -> Optional[Dict[str, Any]]:
    """Flatten the nested {"target": {"selector", "property"}} shape some models emit."""
    if not isinstance(mod, dict):
        return None
    mod = dict(mod)
    target = mod.get('target')
    if isinstance(target, dict):
        selector = target.get('selector') or target.get('component') or target.get('element') or target.get('identifier')
        for key in ('property', 'attribute'):
            if target.get(key) and not mod.get(key):
                mod[key] = target[key]
        mod['target'] = selector
    file_type = str(mod.pop('fileType', '') or '').lower()
    if mod.get('type') not in _FILE_TYPE_KINDS.values() and file_type in _FILE_TYPE_KINDS:
        mod['type'] = _FILE_TYPE_KINDS[file_type]
    return mod


def _from_object(data: Dict[str, Any], stage: str) -> ParsedResponse:
    mods = data.get('modifications') or []
    if not isinstance(mods, list):
        mods = []
    return ParsedResponse(
        intent=str(data.get('intent') or data.get('message') or ''),
        summary=str(data.get('summary') or ''),
        affected_files=data.get('affectedFiles') or [],
        modifications=[m for m in (normalize_modification(x) for x in mods) if m],
        stage=stage,
    )


def _fallback_modifications(text: str) -> Optional[List[Any]]:
    match = re.search(r'"modifications"\s*:\s*\[', text)
    if not match:
        return None
    start = match.end() - 1
    end = _balanced_end(text, start)
    candidate = text[start:end] if end else repair_json(text[start:])
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        try:
            data = json.loads(repair_json(candidate))
        except (json.JSONDecodeError, ValueError):
            return None
    return data if isinstance(data, list) else None


def parse_edit_response(text: str) -> ParsedResponse:
    cleaned = strip_code_fences(text)
    candidate = extract_json_object(cleaned)

    if candidate is not None:
        data = _loads_object(candidate)
        if data is not None:
            return _from_object(data, 'direct')
        data = _loads_object(repair_json(candidate))
        if data is not None:
            print("[edit-generator] Response repaired before parsing")
            return _from_object(data, 'repaired')

    mods = _fallback_modifications(cleaned)
    if mods is not None:
        print("[edit-generator] Falling back to the bare modifications array")
        return ParsedResponse(
            intent=INTENT_PLACEHOLDER,
            summary=SUMMARY_PLACEHOLDER,
            modifications=[m for m in (normalize_modification(x) for x in mods) if m],
            stage='fallback',
        )

    print(f"[edit-generator] Could not parse response: {cleaned[:200]!r}")
    return ParsedResponse(error=PARSE_FAILURE, stage='failed')
