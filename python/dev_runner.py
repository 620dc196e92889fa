# dev_runner.py - tiny CLI to run the pipeline routes without a web server
from __future__ import annotations
import argparse, asyncio, json, sys
from pathlib import Path

# Ensure we run from project root
ROOT = Path(__file__).parent.resolve()
sys.path.insert(0, str(ROOT))

from pydantic import ValidationError  # noqa: E402

from routes import analyze_intent, apply_modifications, memory, preview_modifications  # noqa: E402
from routes.database import close_connection, init_database  # noqa: E402
from routes.unified_modify import parse_request, stream_unified_modify, validation_message  # noqa: E402

JSON_ROUTES = {
    ("POST", "/api/analyze-intent"): lambda body: analyze_intent.POST(body),
    ("POST", "/api/preview-modifications"): lambda body: preview_modifications.POST(body),
    ("POST", "/api/apply-modifications"): lambda body: apply_modifications.POST(body),
    ("GET", "/api/memory"): lambda body: memory.GET(body.get("sessionId")),
    ("POST", "/api/memory"): lambda body: memory.POST(body),
    ("DELETE", "/api/memory"): lambda body: memory.DELETE(body.get("sessionId")),
}


async def _stream(body: dict, events_only: bool) -> int:
    try:
        request = parse_request(body)
    except ValidationError as e:
        print(json.dumps({"success": False, "error": validation_message(e)}, indent=2))
        return 2

    status = 1
    async for event in stream_unified_modify(request):
        if events_only and event["type"] == "complete":
            summary = {k: event[k] for k in ("success", "message", "filesAffected", "errors", "duration") if k in event}
            print(json.dumps({"type": "complete", **summary}, ensure_ascii=False))
        else:
            print(json.dumps(event, ensure_ascii=False))
        sys.stdout.flush()
        if event["type"] == "complete" and event.get("success"):
            status = 0
    return status


def main():
    p = argparse.ArgumentParser(description="Call the modification routes without a web server")
    p.add_argument("method", choices=["GET", "POST", "DELETE"], help="HTTP verb")
    p.add_argument("path", help="Route path, e.g. /api/unified-modify")
    g = p.add_mutually_exclusive_group()
    g.add_argument("--json", help="Inline JSON body string")
    g.add_argument("--json-file", help="Path to a JSON file for body")
    p.add_argument("--summary", action="store_true", help="Print a short complete event instead of the full payload")
    args = p.parse_args()

    body = {}
    if args.json:
        body = json.loads(args.json)
    elif args.json_file:
        body = json.loads(Path(args.json_file).read_text(encoding="utf-8"))

    init_database()
    try:
        if (args.method, args.path) == ("POST", "/api/unified-modify"):
            sys.exit(asyncio.run(_stream(body, args.summary)))
        handler = JSON_ROUTES.get((args.method, args.path))
        if handler is None:
            p.error(f"Unknown route {args.method} {args.path}")
        print(json.dumps(handler(body), indent=2, ensure_ascii=False))
    finally:
        close_connection()


if __name__ == "__main__":
    main()
