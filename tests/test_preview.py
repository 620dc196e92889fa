"""Tests for line diffs and modification previews."""

from routes.directives import ComponentEdit, StylesheetEdit
from routes.preview import (
    compute_lcs,
    diff_stats,
    format_diff_for_display,
    generate_diff,
    generate_previews,
    is_auto_approvable,
    summarize_directive,
)


class TestDiff:
    """Tests for the LCS diff."""

    def test_compute_lcs(self):
        assert compute_lcs(["a", "b", "c"], ["a", "c"]) == ["a", "c"]
        assert compute_lcs(["x", "y"], ["z"]) == []
        assert compute_lcs(["a", "b", "c", "d"], ["b", "d", "e"]) == ["b", "d"]

    def test_identical_text_has_no_diff(self, sample_project):
        content = sample_project["src/App.tsx"]

        assert generate_diff(content, content) == []

    def test_single_line_change(self):
        lines = generate_diff("a\nb\nc", "a\nx\nc")

        assert [(l.type, l.content) for l in lines] == [
            ("context", "a"), ("remove", "b"), ("add", "x"), ("context", "c"),
        ]

    def test_change_counts_are_symmetric(self):
        before, after = "a\nb\nc\nd", "a\nx\nc\nd\ne"

        forward = diff_stats(generate_diff(before, after))
        backward = diff_stats(generate_diff(after, before))

        assert forward["changed"] == backward["changed"] == 3
        assert forward["added"] == backward["removed"] == 2
        assert forward["removed"] == backward["added"] == 1

    def test_distant_changes_are_elided(self):
        before = [f"l{i}" for i in range(20)]
        after = list(before)
        after[2] = "L2"
        after[17] = "L17"

        lines = generate_diff("\n".join(before), "\n".join(after))

        elisions = [l for l in lines if l.content == "..."]
        assert len(elisions) == 1
        assert elisions[0].line_number == -1
        contents = [l.content for l in lines]
        assert "l5" in contents and "l14" in contents
        assert "l9" not in contents


class TestDirectiveHelpers:
    """Tests for auto-approval and summaries."""

    def test_auto_approvable(self):
        assert is_auto_approvable({"type": "css-change", "property": "color", "value": "red"})
        assert not is_auto_approvable({"type": "css-change", "property": "display", "value": "none"})
        assert is_auto_approvable(ComponentEdit(path="A.tsx", target="div", changes={"className": "x"}))
        assert not is_auto_approvable({"type": "jsx-change", "changes": {"className": "x", "onClick": "{go}"}})
        assert not is_auto_approvable({"type": "html-change", "target": "h1", "value": "x"})

    def test_summaries(self):
        assert summarize_directive({"type": "css-change", "property": "color", "value": "#03A5C0"}) == "color: #03A5C0"
        assert summarize_directive({"type": "jsx-change", "changes": {"className": "x"}}) == "className updated"
        assert summarize_directive({"type": "jsx-change", "changes": {"a": 1, "b": 2}}) == "2 attributes updated"
        assert summarize_directive({"type": "html-change", "attribute": "alt", "value": "Logo"}) == 'alt = "Logo"'
        assert summarize_directive({"type": "html-change", "value": "Hi"}) == "Content updated"


class TestPreviews:
    """Tests for generate_previews."""

    def test_preview_for_button_color(self, sample_project):
        directive = StylesheetEdit(path="src/styles.css", target=".button", property="color", value="#03A5C0")

        previews = generate_previews([directive], sample_project)

        assert len(previews) == 1
        preview = previews[0]
        assert preview.file == "src/styles.css"
        assert preview.diff.added_lines == 1
        assert preview.diff.removed_lines == 1
        assert preview.auto_approved is True
        assert preview.modification_type == "css-change"
        assert preview.summary == "color: #03A5C0"

    def test_uses_updated_files_when_given(self, sample_project):
        directive = StylesheetEdit(path="src/styles.css", target=".button", property="color", value="red")
        updated = dict(sample_project, **{"src/styles.css": "changed elsewhere\n"})

        preview = generate_previews([directive], sample_project, updated)[0]

        assert preview.diff.after == "changed elsewhere\n"

    def test_mixed_batch_is_not_auto_approved(self, sample_project):
        directives = [
            StylesheetEdit(path="src/styles.css", target=".button", property="color", value="red"),
            StylesheetEdit(path="src/styles.css", target=".button", property="display", value="none"),
            StylesheetEdit(path="missing.css", target=".x", property="color", value="red"),
        ]

        previews = generate_previews(directives, sample_project)

        assert [p.file for p in previews] == ["src/styles.css"]
        assert previews[0].auto_approved is False
        assert previews[0].summary == "color: red, display: none"

    def test_display(self, sample_project):
        directive = StylesheetEdit(path="src/styles.css", target=".button", property="color", value="#03A5C0")
        preview = generate_previews([directive], sample_project)[0]

        text = format_diff_for_display(preview)

        assert text.startswith("src/styles.css\n   color: #03A5C0")
        assert "- 1: .button { color: #333; }" in text
        assert "+ 1: .button { color: #03A5C0; }" in text
