# routes/analyze_intent.py - Classify a request and show which files would be sent to the model
from typing import Any, Dict

from routes.context_optimizer import optimize_context
from routes.dependency_graph import DependencyGraph, select_relevant_files
from routes.intent_analyzer import analyze_intent


def POST(body: Dict[str, Any]) -> Dict[str, Any]:
    message = (body or {}).get('message') or ''
    project_files = (body or {}).get('projectFiles') or {}
    if not message.strip():
        return {'success': False, 'error': 'message is required'}
    if not isinstance(project_files, dict):
        return {'success': False, 'error': 'projectFiles must be an object of path -> content'}

    try:
        analysis = analyze_intent(message, project_files, body.get('conversationHistory'))
        graph = DependencyGraph.build(project_files)
        selected = select_relevant_files(message, project_files, analysis.complexity, graph)
        optimized = optimize_context({p: project_files[p] for p in selected}, analysis.complexity)
        return {
            'success': True,
            'analysis': analysis.summary(),
            'patterns': analysis.patterns,
            'mentionedFiles': analysis.mentioned_files,
            'relevantFiles': selected,
            'truncatedFiles': optimized.truncated,
            'importance': {node.path: node.importance for node in graph.top_files(10)},
        }
    except Exception as e:
        print(f"[analyze-intent] Error: {e}")
        return {'success': False, 'error': str(e)}
