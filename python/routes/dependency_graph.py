# routes/dependency_graph.py - Import graph, relevance scoring and file selection
from __future__ import annotations

import posixpath
import re
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from config.app_config import appConfig
from routes.intent_analyzer import extract_explicit_files

STYLESHEET_EXTS = ('.css', '.scss', '.sass', '.less')
MARKUP_EXTS = ('.html', '.htm')
SCRIPT_EXTS = ('.js', '.jsx', '.ts', '.tsx', '.mjs', '.cjs')

# Import extraction is line oriented; these are not parsers.
_ES_IMPORT = re.compile(r"""^\s*import\s+(?:[\w\s{},*$]+?\s+from\s+)?['"]([^'"]+)['"]""", re.M)
_ES_REEXPORT = re.compile(r"""^\s*export\s+(?:\*|\{[^}]*\})\s+from\s+['"]([^'"]+)['"]""", re.M)
_REQUIRE = re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)""")
_DYNAMIC_IMPORT = re.compile(r"""import\(\s*['"]([^'"]+)['"]\s*\)""")
_HTML_SCRIPT = re.compile(r"""<script\b[^>]*\bsrc\s*=\s*["']([^"']+)["']""", re.I)
_HTML_LINK = re.compile(r"""<link\b[^>]*\bhref\s*=\s*["']([^"']+)["']""", re.I)
_CSS_IMPORT = re.compile(r"""@import\s+(?:url\(\s*)?['"]?([^'")\s;]+)['"]?\s*\)?""", re.I)

_EXPORT_DECL = re.compile(r'export\s+(?:default\s+)?(?:async\s+)?(?:function\*?|const|let|var|class|interface|type|enum)\s+(\w+)')
_EXPORT_NAMED = re.compile(r'export\s+\{([^}]+)\}')
_EXPORT_DEFAULT = re.compile(r'export\s+default\b')

_EXTERNAL = re.compile(r'^(?:[a-z][a-z0-9+.-]*:|//)', re.I)

CRITICAL_MARKUP = ['index.html']
CRITICAL_STYLESHEETS = ['styles.css', 'style.css', 'index.css', 'main.css', 'globals.css', 'app.css']
CRITICAL_COMPONENTS = ['app.tsx', 'app.jsx', 'app.js', 'main.tsx', 'main.jsx', 'index.tsx', 'index.jsx']

# request term -> path fragments ('@<format>' matches every file of that format)
SEMANTIC_ASSOCIATIONS = [
    (r'buttons?|boutons?|btn|cta', ['button', 'btn', '@stylesheet']),
    (r'nav|navigation|menu|navbar', ['header', 'nav', 'menu']),
    (r'header|en-t[eê]te|ent[eê]te', ['header', 'nav']),
    (r'footer|pied de page', ['footer']),
    (r'hero|banner|banni[eè]re', ['hero', 'banner']),
    (r'colou?rs?|couleurs?|background|fond|font|police|styles?|th[eè]me|css', ['@stylesheet', 'theme']),
    (r'forms?|formulaire|input|contact', ['form', 'contact', 'input']),
    (r'cards?|cartes?', ['card']),
    (r'modal|dialog|popup', ['modal', 'dialog']),
    (r'images?|img|logo|photo', ['image', 'logo', 'hero', '@markup']),
    (r'title|titre|heading|text|texte', ['@markup', 'hero', 'header']),
    (r'script|click|clic|event|function|fonction', ['script', '@component-script']),
]
_SEMANTIC = [(re.compile(r'\b(?:' + terms + r')\b', re.I), frags) for terms, frags in SEMANTIC_ASSOCIATIONS]

_STOPWORDS = {
    'the', 'and', 'for', 'with', 'that', 'this', 'from', 'into', 'make', 'change', 'please', 'can', 'you',
    'les', 'des', 'une', 'pour', 'avec', 'dans', 'sur', 'est', 'mets', 'met', 'change', 'modifie', 'fais',
}
_TOKEN = re.compile(r'[a-z0-9À-ſ_-]+')


def file_format(path: str) -> str:
    p = path.lower()
    if p.endswith(STYLESHEET_EXTS):
        return 'stylesheet'
    if p.endswith(MARKUP_EXTS):
        return 'markup'
    if p.endswith(SCRIPT_EXTS):
        return 'component-script'
    return 'other'


def _file_kind(path: str) -> str:
    if '/components/' in path and '/ui/' not in path:
        return 'component'
    if '/hooks/' in path:
        return 'hook'
    if '/pages/' in path:
        return 'page'
    if any(seg in path for seg in ('/utils/', '/lib/', '/services/')):
        return 'util'
    if any(seg in path for seg in ('config', 'constants', 'types')):
        return 'config'
    return 'other'


def _stem(path: str) -> str:
    base = path.rsplit('/', 1)[-1]
    return base.split('.', 1)[0] if '.' in base else base


def normalize_path(path: str) -> str:
    parts: List[str] = []
    for part in path.split('/'):
        if part == '..':
            if parts:
                parts.pop()
        elif part not in ('.', ''):
            parts.append(part)
    return '/'.join(parts)


def resolve_import(spec: str, from_path: str, known: Iterable[str]) -> Optional[str]:
    """Resolve an import specifier against the project, or None when it points outside it."""
    spec = spec.split('?', 1)[0].split('#', 1)[0].strip()
    if not spec or _EXTERNAL.match(spec):
        return None
    from_dir = posixpath.dirname(from_path)
    if spec.startswith('@/'):
        base = 'src/' + spec[2:]
    elif spec.startswith('/'):
        base = spec[1:]
    elif spec.startswith('.'):
        base = posixpath.join(from_dir, spec)
    elif file_format(from_path) in ('markup', 'stylesheet'):
        # bare href/src in markup and stylesheets is document relative
        base = posixpath.join(from_dir, spec)
    else:
        return None  # package import
    base = normalize_path(base)
    known_set = known if isinstance(known, (set, dict)) else set(known)
    for ext in appConfig.validation.importFallbacks:
        candidate = base + ext
        if candidate in known_set:
            return candidate
    return None


class DependencyNode(BaseModel):
    path: str
    format: str
    kind: str
    imports: List[str] = Field(default_factory=list)
    exports: List[str] = Field(default_factory=list)
    used_by: List[str] = Field(default_factory=list)
    importance: int = 0


class RelevanceScore(BaseModel):
    path: str
    keyword: float = 0
    explicit: float = 0
    semantic: float = 0
    importance: float = 0
    total: float = 0


class DependencyGraph:
    def __init__(self):
        self._nodes: Dict[str, DependencyNode] = {}

    @classmethod
    def build(cls, files: Dict[str, str]) -> 'DependencyGraph':
        graph = cls()
        known = set(files)
        for path, content in files.items():
            graph._nodes[path] = DependencyNode(
                path=path,
                format=file_format(path),
                kind=_file_kind(path),
                imports=_extract_imports(path, content or '', known),
                exports=_extract_exports(path, content or ''),
            )
        graph._link_reverse_edges()
        graph._score_importance()
        print(f"[dependency-graph] Built graph with {len(graph._nodes)} nodes")
        return graph

    def _link_reverse_edges(self):
        for node in self._nodes.values():
            node.used_by = []
        for path, node in self._nodes.items():
            for target in node.imports:
                imported = self._nodes.get(target)
                if imported is not None and path not in imported.used_by:
                    imported.used_by.append(path)
        for node in self._nodes.values():
            node.used_by.sort()

    def _score_importance(self):
        cfg = appConfig.relevance
        for path, node in self._nodes.items():
            score = 10 * len(node.used_by) + 5 * len(node.exports)
            if _stem(path).lower() in cfg.entryNames:
                score += cfg.entryBonus
            node.importance = score

    def node(self, path: str) -> Optional[DependencyNode]:
        return self._nodes.get(path)

    def nodes(self) -> List[DependencyNode]:
        return list(self._nodes.values())

    def importance(self, path: str) -> int:
        node = self._nodes.get(path)
        return node.importance if node else 0

    def top_files(self, count: int = 10) -> List[DependencyNode]:
        return sorted(self._nodes.values(), key=lambda n: (-n.importance, n.path))[:count]

    def related_files(self, targets: List[str], max_files: int = 15, depth: Optional[int] = None) -> List[str]:
        """Targets plus their import/used-by neighbourhood, most important first."""
        depth = appConfig.relevance.relatedDepth if depth is None else depth
        relevant = [t for t in targets if t in self._nodes]
        seen = set(relevant)
        visited = set()

        def walk(path: str, remaining: int):
            if remaining == 0 or path in visited:
                return
            visited.add(path)
            node = self._nodes.get(path)
            if node is None:
                return
            for neighbour in node.imports + node.used_by:
                if neighbour not in seen:
                    seen.add(neighbour)
                    relevant.append(neighbour)
                walk(neighbour, remaining - 1)

        for target in list(relevant):
            walk(target, depth)

        return sorted(relevant, key=lambda p: (-self.importance(p), p))[:max_files]


def _extract_imports(path: str, content: str, known) -> List[str]:
    fmt = file_format(path)
    if fmt == 'component-script':
        patterns = (_ES_IMPORT, _ES_REEXPORT, _REQUIRE, _DYNAMIC_IMPORT)
    elif fmt == 'markup':
        patterns = (_HTML_SCRIPT, _HTML_LINK)
    elif fmt == 'stylesheet':
        patterns = (_CSS_IMPORT,)
    else:
        return []
    resolved: List[str] = []
    for pattern in patterns:
        for spec in pattern.findall(content):
            target = resolve_import(spec, path, known)
            if target and target != path and target not in resolved:
                resolved.append(target)
    return resolved


def _extract_exports(path: str, content: str) -> List[str]:
    if file_format(path) != 'component-script':
        return []
    names: List[str] = []
    names.extend(_EXPORT_DECL.findall(content))
    for group in _EXPORT_NAMED.findall(content):
        for item in group.split(','):
            name = re.split(r'\s+as\s+', item.strip())[0].strip()
            if name:
                names.append(name)
    if _EXPORT_DEFAULT.search(content):
        names.append('default')
    return list(dict.fromkeys(names))


def _request_tokens(message: str) -> List[str]:
    min_len = appConfig.relevance.minTokenLength
    tokens = [t.strip('-_') for t in _TOKEN.findall(message.lower())]
    return list(dict.fromkeys(t for t in tokens if len(t) >= min_len and t not in _STOPWORDS))


def _fragment_matches(fragment: str, path: str, fmt: str) -> bool:
    if fragment.startswith('@'):
        return fmt == fragment[1:]
    return fragment in path.lower()


def score_relevance(message: str, files: Dict[str, str], graph: Optional[DependencyGraph] = None) -> List[RelevanceScore]:
    """Score every file against the request; highest total first, ties in input order."""
    cfg = appConfig.relevance
    graph = graph or DependencyGraph.build(files)
    tokens = _request_tokens(message)
    explicit = set(extract_explicit_files(message, files))
    active_semantics = [frags for pattern, frags in _SEMANTIC if pattern.search(message)]

    scores: List[RelevanceScore] = []
    for path, content in files.items():
        path_lower = path.lower()
        content_lower = (content or '').lower()
        keyword = 0.0
        for token in tokens:
            if token in path_lower:
                keyword += cfg.pathTokenWeight
            elif token in content_lower:
                keyword += cfg.contentTokenWeight
        fmt = file_format(path)
        semantic = 0.0
        for frags in active_semantics:
            if any(_fragment_matches(f, path, fmt) for f in frags):
                semantic += cfg.semanticWeight
        score = RelevanceScore(
            path=path,
            keyword=keyword,
            explicit=cfg.explicitMentionBonus if path in explicit else 0,
            semantic=semantic,
            importance=graph.importance(path) * cfg.importanceWeight,
        )
        score.total = score.keyword + score.explicit + score.semantic + score.importance
        scores.append(score)

    order = {p: i for i, p in enumerate(files)}
    scores.sort(key=lambda s: (-s.total, order[s.path]))
    return scores


def _first_by_basename(files: Dict[str, str], names: List[str]) -> Optional[str]:
    candidates = [p for p in files if p.rsplit('/', 1)[-1].lower() in names]
    if not candidates:
        return None
    return min(candidates, key=lambda p: (p.count('/'), names.index(p.rsplit('/', 1)[-1].lower())))


def critical_files(files: Dict[str, str]) -> List[str]:
    """Entry markup, primary stylesheet and root component, when present."""
    found = []
    for names in (CRITICAL_MARKUP, CRITICAL_STYLESHEETS, CRITICAL_COMPONENTS):
        path = _first_by_basename(files, names)
        if path:
            found.append(path)
    return found


def select_relevant_files(
    message: str,
    files: Dict[str, str],
    complexity: str,
    graph: Optional[DependencyGraph] = None,
) -> List[str]:
    if not files:
        return []
    cfg = appConfig.relevance
    cap = cfg.maxFiles.get(complexity, cfg.maxFiles['complex'])
    graph = graph or DependencyGraph.build(files)

    selected: List[str] = critical_files(files)
    # ranked files always get a couple of slots beside the critical set
    limit = max(cap, len(selected) + cfg.minRankedSlots)

    def add(path: str):
        if path not in selected and len(selected) < limit:
            selected.append(path)

    explicit = extract_explicit_files(message, files)
    for path in explicit:
        add(path)
    if explicit:
        for path in graph.related_files(explicit, cap):
            add(path)

    for score in score_relevance(message, files, graph):
        if score.total <= 0:
            break
        add(score.path)

    if not selected:
        selected = list(files)[:cfg.fallbackFileCount]
        print(f"[dependency-graph] No relevant files scored, falling back to {selected}")

    print(f"[dependency-graph] Selected {len(selected)} files for {complexity} request")
    return selected
