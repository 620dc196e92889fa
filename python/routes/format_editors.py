# routes/format_editors.py - Pattern-based editors for stylesheet, markup and component files
#
# Every editor has the same shape: apply_edit(content, directive) -> EditOutcome.
# None of them parse their format; they rewrite raw text around regex and tag scans,
# so specificity, media-query scoping and deep nesting are invisible to them.
from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel

from routes.directives import COMPONENT, MARKUP, STYLESHEET, ComponentEdit, MarkupEdit, StylesheetEdit

VOID_ELEMENTS = {
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'param', 'source', 'track', 'wbr',
}
CONTENT_KEYS = ('children', 'text', 'content', 'textContent', 'innerText')
CLASS_KEYS = ('className', 'class')


class EditOutcome(BaseModel):
    content: str
    changed: bool = False
    error: Optional[str] = None


# -------------------------------------------------------------------
# Stylesheets
# -------------------------------------------------------------------
def _rule_pattern(selector: str) -> re.Pattern:
    # selector must start the rule or follow a separator, and be the last one before "{"
    return re.compile(r'(?<![^\s{};,/])' + re.escape(selector.strip()) + r'\s*\{([^}]*)\}')


def _selector_list(content: str, match: re.Match) -> List[str]:
    """Every selector in the prelude of the rule `match` landed in."""
    before = match.start()
    start = max(content.rfind(sep, 0, before) for sep in '{};') + 1
    comment_end = content.rfind('*/', 0, before)
    if comment_end != -1:
        start = max(start, comment_end + 2)
    prelude = content[start:match.start(1) - 1]
    return [' '.join(part.split()) for part in prelude.split(',')]


def find_rules(content: str, selector: str) -> List[re.Match]:
    """Rules for `selector`, keeping only those that name it exactly when any do.

    `.button` also matches the tail of `.card .button`; that descendant rule is
    only used when the stylesheet has no rule for `.button` itself.
    """
    wanted = ' '.join(selector.split())
    matches = list(_rule_pattern(selector).finditer(content))
    exact = [m for m in matches if wanted in _selector_list(content, m)]
    return exact or matches


def _property_pattern(prop: str) -> re.Pattern:
    return re.compile(r'(?<![\w-])(' + re.escape(prop) + r')(\s*:\s*)([^;}]*?)(\s*)(?=;|\}|$)')


def _inject_property(body: str, prop: str, value: str) -> str:
    stripped = body.rstrip()
    trailing = body[len(stripped):]
    if stripped.strip() and not stripped.endswith((';', '{')):
        stripped += ';'
    if '\n' in body:
        indent_match = re.search(r'\n([ \t]+)\S', body)
        indent = indent_match.group(1) if indent_match else '  '
        return f"{stripped}\n{indent}{prop}: {value};{trailing or chr(10)}"
    if not stripped.strip():
        return f" {prop}: {value}; "
    return f"{stripped} {prop}: {value};{trailing or ' '}"


def apply_stylesheet_edit(content: str, directive: StylesheetEdit) -> EditOutcome:
    selector = directive.target.strip()
    prop = directive.property.strip()
    value = (directive.value or '').strip().rstrip(';').strip()
    if not value:
        return EditOutcome(content=content, error=f"Empty value for {selector} {{ {prop} }}")

    prop_re = _property_pattern(prop)
    matches = find_rules(content, selector)

    if matches:
        # prefer a block that already declares the property
        target = next((m for m in matches if prop_re.search(m.group(1))), matches[0])
        body = target.group(1)
        if prop_re.search(body):
            new_body = prop_re.sub(lambda m: f"{m.group(1)}{m.group(2)}{value}{m.group(4)}", body, count=1)
        else:
            new_body = _inject_property(body, prop, value)
        start, end = target.span(1)
        updated = content[:start] + new_body + content[end:]
        return EditOutcome(content=updated, changed=updated != content)

    # no rule for the selector yet
    base = content.rstrip('\n')
    separator = '\n\n' if base else ''
    updated = f"{base}{separator}{selector} {{\n  {prop}: {value};\n}}\n"
    return EditOutcome(content=updated, changed=True)


# -------------------------------------------------------------------
# Tag scanning shared by markup and component editors
# -------------------------------------------------------------------
class Attr(NamedTuple):
    name: str
    start: int
    end: int
    value_start: Optional[int]
    value_end: Optional[int]


class Tag(NamedTuple):
    name: str
    start: int
    name_end: int
    end: int  # index after ">"
    self_closing: bool
    attrs: List[Attr]


_TAG_OPEN = re.compile(r'<([A-Za-z][\w.:-]*)')
_ATTR_NAME = re.compile(r'[^\s=/>{}"\']+')
_BARE_VALUE = re.compile(r'[^\s>]+')


def _match_brace(content: str, start: int) -> int:
    """Index after the "}" matching content[start] == "{" (end of text when unbalanced)."""
    depth = 0
    quote = None
    i = start
    while i < len(content):
        ch = content[i]
        if quote:
            if ch == '\\':
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in '"\'`':
            quote = ch
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(content)


def _scan_tag_end(content: str, pos: int) -> Optional[int]:
    depth = 0
    quote = None
    i = pos
    while i < len(content):
        ch = content[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in '"\'' and depth == 0:
            quote = ch
        elif ch == '{':
            i = _match_brace(content, i)
            continue
        elif ch == '>':
            return i + 1
        elif ch == '<':
            return None
        i += 1
    return None


def _parse_attributes(content: str, start: int, end: int) -> List[Attr]:
    attrs: List[Attr] = []
    i = start
    while i < end:
        ch = content[i]
        if ch.isspace() or ch == '/':
            i += 1
            continue
        if ch == '{':  # spread props
            i = _match_brace(content, i)
            continue
        m = _ATTR_NAME.match(content, i)
        if not m:
            i += 1
            continue
        name_end = m.end()
        k = name_end
        while k < end and content[k].isspace():
            k += 1
        if k < end and content[k] == '=':
            k += 1
            while k < end and content[k].isspace():
                k += 1
            if k < end and content[k] in '"\'':
                close = content.find(content[k], k + 1)
                v_end = close + 1 if close != -1 else end
            elif k < end and content[k] == '{':
                v_end = _match_brace(content, k)
            else:
                bare = _BARE_VALUE.match(content, k)
                v_end = bare.end() if bare else k
            attrs.append(Attr(m.group(0), i, v_end, k, v_end))
            i = v_end
        else:
            attrs.append(Attr(m.group(0), i, name_end, None, None))
            i = name_end
    return attrs


def parse_tag_at(content: str, start: int) -> Optional[Tag]:
    m = _TAG_OPEN.match(content, start)
    if not m:
        return None
    end = _scan_tag_end(content, m.end())
    if end is None:
        return None
    self_closing = content[end - 2] == '/'
    attr_end = end - 2 if self_closing else end - 1
    return Tag(m.group(1), start, m.end(), end, self_closing, _parse_attributes(content, m.end(), attr_end))


def iter_tags(content: str):
    for m in _TAG_OPEN.finditer(content):
        tag = parse_tag_at(content, m.start())
        if tag is not None:
            yield tag


def attr_value(content: str, attr: Attr) -> Optional[str]:
    if attr.value_start is None:
        return None
    raw = content[attr.value_start:attr.value_end]
    if raw[:1] in '"\'' and raw[-1:] == raw[:1] and len(raw) >= 2:
        return raw[1:-1]
    return raw


def _class_tokens(content: str, tag: Tag) -> List[str]:
    tokens: List[str] = []
    for attr in tag.attrs:
        if attr.name not in CLASS_KEYS:
            continue
        raw = attr_value(content, attr) or ''
        if raw.startswith('{'):
            raw = ' '.join(re.findall(r'["\'`]([^"\'`]*)["\'`]', raw))
        tokens.extend(raw.split())
    return tokens


class SimpleSelector(NamedTuple):
    tag: Optional[str]
    classes: List[str]
    id: Optional[str]


_SELECTOR = re.compile(r'^([A-Za-z][\w:-]*(?:\.[A-Z]\w*)*)?((?:[.#][\w-]+)*)$')


def parse_selector(selector: str) -> Optional[SimpleSelector]:
    """Last compound of a selector: tag, .class, #id or a combination."""
    parts = re.split(r'[\s>+~]+', selector.strip())
    last = re.sub(r'::?[\w-]+(\([^)]*\))?$', '', parts[-1] if parts else '')
    m = _SELECTOR.match(last)
    if not last or not m:
        return None
    classes = re.findall(r'\.([\w-]+)', m.group(2) or '')
    ids = re.findall(r'#([\w-]+)', m.group(2) or '')
    return SimpleSelector(m.group(1), classes, ids[0] if ids else None)


def _tag_matches(content: str, tag: Tag, sel: SimpleSelector, case_sensitive: bool) -> bool:
    if sel.tag:
        same = tag.name == sel.tag if case_sensitive else tag.name.lower() == sel.tag.lower()
        if not same:
            return False
    if sel.classes:
        tokens = _class_tokens(content, tag)
        if not all(c in tokens for c in sel.classes):
            return False
    if sel.id:
        ids = [attr_value(content, a) for a in tag.attrs if a.name == 'id']
        if sel.id not in [(v or '').strip('{}"\'') for v in ids]:
            return False
    return True


def find_tag(content: str, selector: str, case_sensitive: bool = False) -> Optional[Tag]:
    sel = parse_selector(selector)
    if sel is None:
        return None
    for tag in iter_tags(content):
        if _tag_matches(content, tag, sel, case_sensitive):
            return tag
    return None


def find_close(content: str, tag: Tag, case_sensitive: bool = False) -> Optional[Tuple[int, int]]:
    """(start, end) of the closing tag paired with `tag`, honouring nesting of the same name."""
    if tag.self_closing or (not case_sensitive and tag.name.lower() in VOID_ELEMENTS):
        return None
    flags = 0 if case_sensitive else re.I
    pattern = re.compile(r'<(/?)' + re.escape(tag.name) + r'(?=[\s/>])', flags)
    depth = 1
    pos = tag.end
    for m in pattern.finditer(content, tag.end):
        if m.start() < pos:
            continue
        if m.group(1):
            depth -= 1
            if depth == 0:
                close_end = content.find('>', m.end())
                return m.start(), (close_end + 1 if close_end != -1 else len(content))
        else:
            inner = parse_tag_at(content, m.start())
            if inner is None:
                continue
            if not inner.self_closing:
                depth += 1
            pos = inner.end
    return None


def set_attribute(content: str, tag: Tag, name: str, rendered: str) -> str:
    """Replace or inject `name=<rendered>` on the tag; `rendered` is already quoted."""
    for attr in tag.attrs:
        if attr.name == name:
            return content[:attr.start] + f"{name}={rendered}" + content[attr.end:]
    close_at = tag.end - 2 if tag.self_closing else tag.end - 1
    insert_at = close_at
    while insert_at > tag.name_end and content[insert_at - 1].isspace():
        insert_at -= 1
    return content[:insert_at] + f" {name}={rendered}" + content[insert_at:]


def replace_inner(content: str, tag: Tag, value: str, case_sensitive: bool = False) -> Optional[str]:
    close = find_close(content, tag, case_sensitive)
    if close is None:
        return None
    return content[:tag.end] + value + content[close[0]:]


# -------------------------------------------------------------------
# Markup
# -------------------------------------------------------------------
def _html_quote(value: str) -> str:
    return '"' + value.replace('&', '&amp;').replace('"', '&quot;') + '"'


def apply_markup_edit(content: str, directive: MarkupEdit) -> EditOutcome:
    tag = find_tag(content, directive.target)
    if tag is None:
        return EditOutcome(content=content, error=f"Target {directive.target!r} not found in {directive.path}")

    if directive.attribute:
        updated = set_attribute(content, tag, directive.attribute, _html_quote(directive.value or ''))
        return EditOutcome(content=updated, changed=updated != content)

    updated = replace_inner(content, tag, directive.value or '')
    if updated is None:
        return EditOutcome(
            content=content,
            error=f"Cannot replace content of <{tag.name}> ({directive.target}) in {directive.path}: no closing tag",
        )
    return EditOutcome(content=updated, changed=updated != content)


# -------------------------------------------------------------------
# Component scripts
# -------------------------------------------------------------------
def _camel(prop: str) -> str:
    if prop.startswith('--'):
        return f"'{prop}'"
    head, *rest = prop.split('-')
    return head + ''.join(p[:1].upper() + p[1:] for p in rest)


def _js_literal(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return "'" + str(value).replace('\\', '\\\\').replace("'", "\\'") + "'"


def _style_to_dict(style: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for decl in style.split(';'):
        if ':' in decl:
            key, val = decl.split(':', 1)
            if key.strip():
                result[key.strip()] = val.strip()
    return result


def render_style(style: Any) -> str:
    if isinstance(style, str):
        text = style.strip()
        if text.startswith('{'):
            return text if text.startswith('{{') else '{' + text + '}'
        style = _style_to_dict(text)
    if not isinstance(style, dict):
        return render_jsx_value(style)
    items = ', '.join(f"{_camel(str(k))}: {_js_literal(v)}" for k, v in style.items())
    return '{{ ' + items + ' }}'


def render_jsx_value(value: Any) -> str:
    if isinstance(value, str):
        text = value.strip()
        if text.startswith('{') and text.endswith('}'):
            return text
        if '"' in value:
            return '{' + json.dumps(value) + '}'
        return f'"{value}"'
    if isinstance(value, bool) or value is None:
        return '{' + json.dumps(value) + '}'
    if isinstance(value, (int, float)):
        return '{' + str(value) + '}'
    return '{' + json.dumps(value) + '}'


def _find_component_tag(content: str, target: str) -> Optional[Tag]:
    tag = find_tag(content, target, case_sensitive=True)
    if tag is None and re.match(r'^[A-Z]\w*$', target.strip()):
        # component file addressed by name: fall back to its rendered element
        tag = find_tag(content, target.strip().lower(), case_sensitive=True)
    return tag


def apply_component_edit(content: str, directive: ComponentEdit) -> EditOutcome:
    tag = _find_component_tag(content, directive.target)
    if tag is None:
        return EditOutcome(content=content, error=f"Component {directive.target!r} not found in {directive.path}")

    updated = content
    errors: List[str] = []
    start = tag.start

    def current() -> Tag:
        return parse_tag_at(updated, start)

    attributes: List[Tuple[str, str]] = []
    inner_value: Optional[str] = None
    for key, value in (directive.changes or {}).items():
        if key in CLASS_KEYS:
            attributes.append(('className', render_jsx_value(str(value))))
        elif key == 'style':
            attributes.append(('style', render_style(value)))
        elif key == 'props' and isinstance(value, dict):
            for prop, prop_value in value.items():
                if prop == 'style':
                    attributes.append(('style', render_style(prop_value)))
                else:
                    attributes.append((prop, render_jsx_value(prop_value)))
        elif key in CONTENT_KEYS:
            inner_value = str(value)
        else:
            attributes.append((key, render_jsx_value(value)))
    if directive.value is not None and directive.value != '':
        inner_value = directive.value

    for name, rendered in attributes:
        tag_now = current()
        if tag_now is None:
            errors.append(f"Lost track of <{tag.name}> in {directive.path}")
            break
        updated = set_attribute(updated, tag_now, name, rendered)

    if inner_value is not None:
        tag_now = current()
        replaced = replace_inner(updated, tag_now, inner_value, case_sensitive=True) if tag_now else None
        if replaced is None:
            errors.append(f"Cannot replace content of <{tag.name}> in {directive.path}: no closing tag")
        else:
            updated = replaced

    if not attributes and inner_value is None:
        errors.append(f"No changes given for {directive.target!r} in {directive.path}")

    return EditOutcome(content=updated, changed=updated != content, error='; '.join(errors) or None)


EDITORS: Dict[str, Callable[[str, Any], EditOutcome]] = {
    STYLESHEET: apply_stylesheet_edit,
    MARKUP: apply_markup_edit,
    COMPONENT: apply_component_edit,
}


def apply_edit(content: str, directive) -> EditOutcome:
    editor = EDITORS.get(directive.type)
    if editor is None:
        return EditOutcome(content=content, error=f"No editor for {directive.type}")
    return editor(content, directive)
