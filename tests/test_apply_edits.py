"""Tests for applying directives across files."""

from routes.apply_edits import apply_directives
from routes.directives import ComponentEdit, MarkupEdit, StylesheetEdit


class TestApplyDirectives:
    """Tests for apply_directives."""

    def test_applies_and_reports_soft_errors(self, sample_project):
        snapshot = dict(sample_project)
        directives = [
            StylesheetEdit(path="src/styles.css", target=".button", property="color", value="#03A5C0"),
            ComponentEdit(path="src/App.tsx", target="Footer", changes={"title": "x"}),
        ]

        result = apply_directives(sample_project, directives)

        assert result.success is True
        assert result.modified_files == ["src/styles.css"]
        assert result.applied == [{
            "type": "css-change", "path": "src/styles.css", "target": ".button",
            "property": "color", "value": "#03A5C0",
        }]
        assert result.errors == ["src/App.tsx: Component 'Footer' not found in src/App.tsx"]
        assert result.updated_files["src/styles.css"].startswith(".button { color: #03A5C0; }")
        assert result.updated_files["src/App.tsx"] == snapshot["src/App.tsx"]
        assert sample_project == snapshot

    def test_same_file_edits_apply_in_order(self, sample_project):
        directives = [
            StylesheetEdit(path="src/styles.css", target=".button", property="color", value="red"),
            StylesheetEdit(path="src/styles.css", target=".button", property="color", value="blue"),
            StylesheetEdit(path="src/styles.css", target=".button", property="margin", value="0"),
        ]

        result = apply_directives(sample_project, directives)

        assert result.updated_files["src/styles.css"].startswith(".button { color: blue; margin: 0; }")
        assert len(result.applied) == 3
        assert result.modified_files == ["src/styles.css"]

    def test_several_files(self, sample_project):
        directives = [
            MarkupEdit(path="index.html", target="title", value="Shop"),
            StylesheetEdit(path="src/styles.css", target=".header", property="color", value="navy"),
        ]

        result = apply_directives(sample_project, directives)

        assert sorted(result.modified_files) == ["index.html", "src/styles.css"]
        assert result.errors == []

    def test_unknown_file(self, sample_project):
        result = apply_directives(sample_project, [
            StylesheetEdit(path="nope.css", target=".a", property="color", value="red"),
        ])

        assert result.success is False
        assert result.errors == ["nope.css: file not found (.a)"]
        assert result.updated_files == sample_project

    def test_nothing_applied(self, sample_project):
        result = apply_directives(sample_project, [
            MarkupEdit(path="index.html", target="#missing", value="x"),
        ])

        assert result.success is False
        assert result.applied == []
        assert result.modified_files == []
        assert len(result.errors) == 1
