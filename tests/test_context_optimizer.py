"""Tests for context budgeting and prompt summaries."""

from routes.context_optimizer import (
    build_conversation_context,
    build_memory_context,
    optimize_context,
    render_context,
    truncate_content,
)
from routes.memory import SessionMemory


def _lines(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(count))


class TestOptimizeContext:
    """Tests for line ceilings and truncation."""

    def test_files_under_ceiling_are_untouched(self, sample_project):
        result = optimize_context(sample_project, "trivial")

        assert result.files == sample_project
        assert result.truncated == []
        assert result.total_lines == result.optimized_lines

    def test_truncation_arithmetic(self):
        original = _lines(250)
        result = optimize_context({"big.css": original}, "trivial")

        kept = result.files["big.css"].split("\n")
        source = original.split("\n")
        # ceiling 100 -> 40 head + marker + 40 tail
        assert len(kept) == 81
        assert len(kept) <= 100 + 1
        assert kept[:40] == source[:40]
        assert kept[-40:] == source[-40:]
        assert kept[40] == "... [170 lines omitted] ..."
        assert 170 == len(source) - 40 - 40
        assert result.truncated == ["big.css"]
        assert result.total_lines == 250
        assert result.optimized_lines == 81

    def test_idempotent(self):
        once = optimize_context({"big.css": _lines(1000), "small.css": _lines(10)}, "moderate")
        twice = optimize_context(once.files, "moderate")

        assert twice.files == once.files
        assert twice.truncated == []

    def test_ceiling_per_tier(self):
        content = _lines(200)

        assert truncate_content(content, 150) is not None
        assert optimize_context({"a.tsx": content}, "moderate").files["a.tsx"] == content
        assert optimize_context({"a.tsx": content}, "simple").truncated == ["a.tsx"]

    def test_render_context(self):
        rendered = render_context({"a.css": "x", "b.html": "y"})

        assert rendered == "=== FILE: a.css ===\nx\n=== END FILE ===\n\n=== FILE: b.html ===\ny\n=== END FILE ==="


class TestMemoryContext:
    """Tests for the memory summary."""

    def test_empty(self):
        assert build_memory_context(None) == ""
        assert build_memory_context({}) == ""

    def test_default_memory(self):
        text = build_memory_context(SessionMemory(sessionId="s1").model_dump())

        assert "Framework: react" in text
        assert "- naming: PascalCase for components, camelCase for functions" in text
        assert "Preferred libraries: react, tailwindcss, typescript" in text

    def test_only_last_changes_and_issues(self):
        memory = {
            "recentChanges": [
                {"description": f"change {i}", "filesAffected": [f"f{i}.css"]} for i in range(6)
            ],
            "knownIssues": [{"issue": f"issue {i}", "solution": "fix it"} for i in range(5)],
        }

        text = build_memory_context(memory)

        assert "change 2" not in text
        assert "- change 5 (files: f5.css)" in text
        assert "issue 1" not in text
        assert "- issue 4: fix it" in text


class TestConversationContext:
    """Tests for the conversation summary."""

    def test_annotates_files(self):
        history = [
            {"role": "user", "content": "make the header blue"},
            {"role": "assistant", "content": "Done", "metadata": {"filesAffected": [{"path": "src/styles.css"}]}},
        ]

        text = build_conversation_context(history)

        assert "[user] make the header blue" in text
        assert "[assistant] Done (files: src/styles.css)" in text

    def test_keeps_last_turns(self):
        history = [{"role": "user", "content": f"turn {i}"} for i in range(15)]

        text = build_conversation_context(history)

        assert "turn 4\n" not in text
        assert "turn 5" in text
        assert "turn 14" in text

    def test_empty(self):
        assert build_conversation_context(None) == ""
