# routes/intent_analyzer.py - Lexical complexity classification of change requests
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from config.app_config import appConfig
from routes.directives import AnalysisResult

# (label, pattern). Every request is checked against both lists, English and French.
SIMPLE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ('color change', re.compile(r'\b(colou?rs?|couleurs?|rouge|bleu|vert|jaune|red|blue|green|yellow)\b', re.I)),
    ('hex value', re.compile(r'#[0-9a-f]{3,8}\b', re.I)),
    ('background', re.compile(r'\b(background|fond|arri[eè]re-plan)\b', re.I)),
    ('font', re.compile(r'\b(font|fonts|police|font-size|font-weight|bold|gras|italic|italique)\b', re.I)),
    ('text change', re.compile(r'\b(text|texte|title|titre|heading|label|wording|libell[eé]|prix|price)\b', re.I)),
    ('spacing', re.compile(r'\b(padding|margin|margins|spacing|espacement|marges?|gap)\b', re.I)),
    ('border', re.compile(r'\b(border|bordure|radius|rounded|arrondis?)\b', re.I)),
    ('size', re.compile(r'\b(bigger|smaller|larger|plus grand|plus petit|taille|size|width|height|largeur|hauteur)\b', re.I)),
    ('typo', re.compile(r'\b(typos?|spelling|orthographe|fautes?)\b', re.I)),
    ('visibility', re.compile(r'\b(hide|show|cache[rz]?|masque[rz]?|affiche[rz]?|enl[eè]ve[rz]?|retire[rz]?)\b', re.I)),
    ('alignment', re.compile(r'\b(align|alignment|center|centre[rz]?|aligne[rz]?)\b', re.I)),
    ('text replacement', re.compile(r'\b(rename|replace|remplace[rz]?|renomme[rz]?)\b', re.I)),
]

COMPLEX_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ('architecture', re.compile(r'\b(architecture|refactor\w*|restructur\w*|rewrite|r[eé][eé]cri\w*)\b', re.I)),
    ('new feature', re.compile(
        r'\b(new (feature|page|screen)s?|nouvelles? (fonctionnalit[eé]s?|pages?)|'
        r'add (a |an )?(new )?(feature|page|screen)s?|ajoute\w* (une |un )?(nouvelle |nouveau )?(page|fonctionnalit[eé]))\b', re.I)),
    ('persistence', re.compile(r'\b(database|base de donn[eé]es|persist\w*|supabase|sql|storage)\b', re.I)),
    ('authentication', re.compile(r'\b(auth|authentication|authentification|login|log in|sign ?up|sign ?in|connexion|inscription)\b', re.I)),
    ('routing', re.compile(r'\b(routing|router|routes|multi-?page|navigation entre)\b', re.I)),
    ('state management', re.compile(r'\b(state management|redux|zustand|context api|global state|[eé]tat global)\b', re.I)),
    ('redesign', re.compile(r'\b(redesign|from scratch|start over|rebuild|recreate|refais|tout (changer|modifier|refaire)|change everything)\b', re.I)),
    ('api integration', re.compile(r'\b(api|apis|backend|webhooks?|int[eé]gration)\b', re.I)),
]

FOLLOW_UP_PATTERN = re.compile(r'\b(again|also|too|as well|encore|aussi|pareil|same)\b', re.I)

_FILE_TOKEN = re.compile(r'(?<![\w/.-])[\w/-]+\.(?:css|scss|sass|less|html?|tsx|ts|jsx|js|mjs|cjs|json|md|svg)\b', re.I)


def extract_explicit_files(message: str, project_files: Dict[str, str]) -> List[str]:
    """Project files whose path or basename appears in the request, in project order."""
    lowered = message.lower()
    found: List[str] = []
    for path in project_files:
        p = path.lower()
        base = p.rsplit('/', 1)[-1]
        if p in lowered:
            found.append(path)
            continue
        if re.search(r'(?<![\w.-])' + re.escape(base) + r'(?![\w-])', lowered):
            found.append(path)
    return found


def _count_file_mentions(message: str, mentioned: List[str]) -> int:
    names = {p.lower().rsplit('/', 1)[-1] for p in mentioned}
    for token in _FILE_TOKEN.findall(message):
        names.add(token.lower().rsplit('/', 1)[-1])
    return len(names)


def _tier_for(score: int) -> str:
    for threshold, tier in appConfig.intent.tiers:
        if score >= threshold:
            return tier
    return 'complex'


def analyze_intent(
    message: str,
    project_files: Dict[str, str],
    conversation_history: Optional[List[Dict[str, Any]]] = None,
) -> AnalysisResult:
    cfg = appConfig.intent

    if not project_files:
        print("[intent] No project files - full generation required")
        return AnalysisResult(
            complexity='complex',
            score=cfg.minScore,
            patterns=['empty project'],
            intent_type='full-generation',
            confidence=1.0,
            reasoning='No existing files; the project must be generated first',
        )

    score = cfg.baseScore
    labels: List[str] = []

    simple_bonus = 0
    for label, pattern in SIMPLE_PATTERNS:
        if pattern.search(message):
            simple_bonus += cfg.simpleIncrement
            labels.append(label)
    score += min(simple_bonus, cfg.simpleBonusCap)

    for label, pattern in COMPLEX_PATTERNS:
        if pattern.search(message):
            score -= cfg.complexDecrement
            labels.append(label)

    mentioned = extract_explicit_files(message, project_files)
    mention_count = _count_file_mentions(message, mentioned)
    if mention_count > cfg.manyFilesThreshold:
        score -= cfg.manyFilesPenalty
        labels.append(f'{mention_count} files named')
    elif mention_count > cfg.severalFilesThreshold:
        score -= cfg.severalFilesPenalty
        labels.append(f'{mention_count} files named')

    word_count = len(message.split())
    if word_count > cfg.longRequestWords:
        score -= cfg.longRequestPenalty
        labels.append('long request')
    elif word_count < cfg.shortRequestWords:
        score += cfg.shortRequestBonus
        labels.append('short request')

    if conversation_history and FOLLOW_UP_PATTERN.search(message):
        score += cfg.followUpBonus
        labels.append('follow-up')

    score = max(cfg.minScore, min(cfg.maxScore, score))
    complexity = _tier_for(score)
    intent_type = 'quick-modification' if complexity in ('trivial', 'simple') else 'full-generation'
    confidence = round(abs(score) / float(cfg.maxScore), 2)
    reasoning = ', '.join(labels[:3]) if labels else 'Standard heuristic analysis'

    print(f"[intent] {intent_type} (score: {score}, confidence: {confidence}, complexity: {complexity})")

    return AnalysisResult(
        complexity=complexity,
        score=score,
        patterns=labels,
        intent_type=intent_type,
        confidence=confidence,
        mentioned_files=mentioned,
        reasoning=reasoning,
    )
