# routes/suggestions.py - Follow-up suggestions for an applied batch of directives
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from config.app_config import appConfig
from routes.directives import COMPONENT, MARKUP, STYLESHEET, ProactiveSuggestion
from routes.format_editors import find_rules

NAMED_COLORS = {
    'white': (255, 255, 255),
    'black': (0, 0, 0),
    'red': (255, 0, 0),
    'blue': (0, 0, 255),
    'green': (0, 128, 0),
    'yellow': (255, 255, 0),
    'orange': (255, 165, 0),
    'purple': (128, 0, 128),
    'gray': (128, 128, 128),
    'grey': (128, 128, 128),
}

HOVER_PROPERTIES = ('color', 'background-color', 'background')
ANIMATABLE_PROPERTIES = ('color', 'background-color', 'background', 'transform', 'opacity', 'box-shadow', 'border-color')
INTERACTIVE_HINTS = ('button', 'btn', 'input', 'link', 'cta', 'select', 'textarea', 'a:', 'nav a')
LIGHT_VALUES = ('white', '#fff', '#ffffff', 'rgb(255', '#fafafa', '#f5f5f5', '#eee', '#eeeeee')

PRIORITY_WEIGHT = {'high': 3, 'medium': 2, 'low': 1}

_HEX = re.compile(r'^#([0-9a-f]{3}|[0-9a-f]{6})$', re.I)
_RGB = re.compile(r'^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)', re.I)


def darken_color(color: str, amount: Optional[float] = None) -> str:
    amount = appConfig.suggestions.darkenAmount if amount is None else amount
    value = (color or '').strip()
    factor = 1 - amount

    rgb = None
    hex_match = _HEX.match(value)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) == 3:
            digits = ''.join(d * 2 for d in digits)
        rgb = tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))
    elif value.lower() in NAMED_COLORS:
        rgb = NAMED_COLORS[value.lower()]
    else:
        rgb_match = _RGB.match(value)
        if rgb_match:
            rgb = tuple(min(255, int(c)) for c in rgb_match.groups())

    if rgb is None:
        return f"color-mix(in srgb, {value} {round(factor * 100)}%, black)"
    return '#' + ''.join(f"{max(0, int(c * factor)):02x}" for c in rgb)


def _css_block(css: str, selector: str) -> Optional[str]:
    rules = find_rules(css, selector)
    return rules[0].group(1) if rules else None


def _is_pseudo(target: str) -> bool:
    return bool(re.search(r':(hover|focus|active|focus-visible)\b', target))


def _hover_suggestion(mod: Dict[str, Any], files: Dict[str, str]) -> Optional[ProactiveSuggestion]:
    target = mod.get('target', '')
    if _is_pseudo(target):
        return None
    hover_selector = f"{target}:hover"
    if hover_selector in files.get(mod['path'], ''):
        return None
    return ProactiveSuggestion(
        type='improvement',
        message=f"Ajouter un état :hover pour {target} ?",
        message_en=f"Add a :hover state for {target}?",
        priority='medium',
        auto_applicable=True,
        modification={
            'type': STYLESHEET, 'path': mod['path'], 'target': hover_selector,
            'property': mod['property'], 'value': darken_color(mod.get('value', '')),
        },
    )


def _contrast_suggestion(mod: Dict[str, Any]) -> Optional[ProactiveSuggestion]:
    value = str(mod.get('value', '')).lower()
    if mod.get('property') != 'color' or not any(v in value for v in LIGHT_VALUES):
        return None
    return ProactiveSuggestion(
        type='accessibility',
        message="Le texte clair peut avoir un contraste insuffisant. Vérifiez le fond.",
        message_en="Light text may have insufficient contrast. Check the background.",
        priority='high',
        auto_applicable=False,
    )


def _transition_suggestion(mod: Dict[str, Any], files: Dict[str, str]) -> Optional[ProactiveSuggestion]:
    target = mod.get('target', '')
    if _is_pseudo(target):
        return None
    block = _css_block(files.get(mod['path'], ''), target)
    if block and 'transition' in block:
        return None
    prop = mod['property']
    return ProactiveSuggestion(
        type='improvement',
        message=f"Ajouter une transition fluide pour {prop} ?",
        message_en=f"Add a smooth transition for {prop}?",
        priority='low',
        auto_applicable=True,
        modification={
            'type': STYLESHEET, 'path': mod['path'], 'target': target,
            'property': 'transition', 'value': f"{prop} {appConfig.suggestions.transitionDuration}",
        },
    )


def _focus_suggestion(mod: Dict[str, Any], files: Dict[str, str]) -> Optional[ProactiveSuggestion]:
    target = mod.get('target', '')
    if ':focus' in target or not any(h in target.lower() for h in INTERACTIVE_HINTS):
        return None
    focus_selector = f"{target}:focus"
    if focus_selector in files.get(mod['path'], ''):
        return None
    return ProactiveSuggestion(
        type='accessibility',
        message="Ajouter un état :focus pour l'accessibilité clavier ?",
        message_en="Add a :focus state for keyboard accessibility?",
        priority='high',
        auto_applicable=True,
        modification={
            'type': STYLESHEET, 'path': mod['path'], 'target': focus_selector,
            'property': 'outline', 'value': appConfig.suggestions.focusOutline,
        },
    )


def _aria_suggestion(mod: Dict[str, Any]) -> Optional[ProactiveSuggestion]:
    target = str(mod.get('target', '')).lower()
    if 'button' not in target and 'btn' not in target:
        return None
    changes = mod.get('changes') or {}
    has_text = any(changes.get(k) for k in ('children', 'content', 'text', 'aria-label')) or mod.get('value')
    if has_text:
        return None
    return ProactiveSuggestion(
        type='accessibility',
        message="Ajouter un aria-label pour les lecteurs d'écran ?",
        message_en="Add an aria-label for screen readers?",
        priority='medium',
        auto_applicable=False,
    )


def _alt_suggestion(mod: Dict[str, Any]) -> Optional[ProactiveSuggestion]:
    target = str(mod.get('target', '')).lower()
    if not re.match(r'^img\b', target):
        return None
    if mod.get('type') == COMPONENT and (mod.get('changes') or {}).get('alt'):
        return None
    if mod.get('type') == MARKUP and mod.get('attribute') == 'alt':
        return None
    return ProactiveSuggestion(
        type='accessibility',
        message="Ajouter un attribut alt pour l'accessibilité ?",
        message_en="Add an alt attribute for accessibility?",
        priority='high',
        auto_applicable=False,
    )


def generate_suggestions(applied: List[Dict[str, Any]], files: Dict[str, str]) -> List[ProactiveSuggestion]:
    """`applied` are directive dicts that were applied; `files` is the post-edit project."""
    found: List[Optional[ProactiveSuggestion]] = []
    for mod in applied:
        kind = mod.get('type')
        if kind == STYLESHEET:
            prop = mod.get('property')
            if prop in HOVER_PROPERTIES:
                found.append(_hover_suggestion(mod, files))
                found.append(_contrast_suggestion(mod))
            if prop in ANIMATABLE_PROPERTIES:
                found.append(_transition_suggestion(mod, files))
            found.append(_focus_suggestion(mod, files))
        elif kind in (COMPONENT, MARKUP):
            found.append(_aria_suggestion(mod) if kind == COMPONENT else None)
            found.append(_alt_suggestion(mod))

    unique: List[ProactiveSuggestion] = []
    seen = set()
    for suggestion in found:
        if suggestion is None:
            continue
        mod = suggestion.modification or {}
        key = (suggestion.type, suggestion.message_en, mod.get('path'), mod.get('target'), mod.get('property'))
        if key in seen:
            continue
        seen.add(key)
        unique.append(suggestion)

    unique.sort(key=lambda s: -PRIORITY_WEIGHT[s.priority])
    result = unique[:appConfig.suggestions.maxSuggestions]
    if result:
        print(f"[suggestions] {len(result)} suggestions (from {len(unique)} candidates)")
    return result


def format_suggestions_for_display(suggestions: List[ProactiveSuggestion], french: bool = True) -> str:
    if not suggestions:
        return ''
    header = 'Suggestions :' if french else 'Suggestions:'
    lines = []
    for s in suggestions:
        message = s.message if french else s.message_en
        lines.append(f"- {message}{' [Auto]' if s.auto_applicable else ''}")
    return header + '\n' + '\n'.join(lines)
