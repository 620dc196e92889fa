"""Tests for directive validation and auto-fix."""

from routes.directives import ComponentEdit, StylesheetEdit
from routes.validate_edits import (
    auto_fix_directives,
    find_similar_file,
    validate_and_fix,
    validate_directives,
)


class TestValidateDirectives:
    """Tests for the three validation levels."""

    def test_valid_directives(self, sample_project):
        raw = [
            {"type": "css-change", "path": "src/styles.css", "target": ".button", "property": "color", "value": "red"},
            {"type": "html-change", "path": "index.html", "target": "title", "value": "Shop"},
            {"type": "jsx-change", "path": "src/App.tsx", "target": "Header", "changes": {}},
        ]

        result = validate_directives(raw, sample_project)

        assert result.all_valid
        assert result.warnings == []

    def test_missing_file(self, sample_project):
        result = validate_directives([{"type": "css-change", "path": "nope.css", "target": ".a", "property": "color"}],
                                     sample_project)

        assert not result.all_valid
        assert result.errors[0].message == "File not found: nope.css"

    def test_non_string_path(self, sample_project):
        raw = [{"type": "css-change", "path": {"file": "src/styles.css"}, "target": ".a", "property": "color"}]

        result = validate_directives(raw, sample_project)

        assert result.errors[0].message.startswith("File not found")
        assert find_similar_file(["src/styles.css"], sample_project) is None

    def test_unknown_kind(self, sample_project):
        result = validate_directives([{"type": "yaml-change", "path": "src/styles.css", "target": ".a"}], sample_project)

        assert result.errors[0].message == "Unknown directive type: yaml-change"

    def test_missing_required_fields(self, sample_project):
        result = validate_directives([
            {"type": "css-change", "path": "src/styles.css", "target": ".a"},
            {"type": "jsx-change", "path": "src/App.tsx", "target": "h1"},
        ], sample_project)

        assert [e.index for e in result.errors] == [0, 1]
        assert result.errors[0].message == "Missing required fields for css-change: property"
        assert result.errors[1].message == "Missing required fields for jsx-change: changes"

    def test_not_an_object(self, sample_project):
        result = validate_directives(["oops"], sample_project)

        assert result.errors[0].message == "Directive is not an object"

    def test_unresolved_import_is_only_a_warning(self, sample_project):
        raw = [{
            "type": "jsx-change", "path": "src/App.tsx", "target": "div",
            "changes": {"import": "import Footer from './components/Footer'",
                        "other": "import Header from './components/Header'"},
        }]

        result = validate_directives(raw, sample_project)

        assert result.all_valid
        assert result.warnings == ["src/App.tsx: import './components/Footer' does not resolve to a project file"]


class TestFindSimilarFile:
    """Tests for the similarity ladder."""

    def test_leading_dot_slash(self, sample_project):
        assert find_similar_file("./src/styles.css", sample_project) == "src/styles.css"

    def test_basename(self, sample_project):
        assert find_similar_file("styles.css", sample_project) == "src/styles.css"

    def test_stem(self, sample_project):
        assert find_similar_file("components/Header.jsx", sample_project) == "src/components/Header.tsx"

    def test_close_match(self, sample_project):
        assert find_similar_file("Buton.tsx", sample_project) == "src/components/Button.tsx"

    def test_nothing_similar(self, sample_project):
        assert find_similar_file("nothing.md", sample_project) is None
        assert find_similar_file("", sample_project) is None


class TestValidateAndFix:
    """Tests for the validate -> fix -> re-validate flow."""

    def test_valid_input_is_not_touched(self, sample_project):
        raw = [{"type": "css-change", "path": "src/styles.css", "target": ".button", "property": "color", "value": "red"}]

        outcome = validate_and_fix(raw, sample_project)

        assert outcome.fixed is False
        assert outcome.rejected == []
        assert outcome.directives == [StylesheetEdit(path="src/styles.css", target=".button", property="color", value="red")]

    def test_misspelled_file_is_retargeted(self, sample_project):
        raw = [{"type": "jsx-change", "path": "Buton.tsx", "target": "button", "changes": {"className": "btn"}}]

        outcome = validate_and_fix(raw, sample_project)

        assert outcome.fixed is True
        assert outcome.rejected == []
        assert outcome.directives == [ComponentEdit(
            path="src/components/Button.tsx", target="button", changes={"className": "btn"},
        )]

    def test_missing_kind_is_inferred(self, sample_project):
        raw = [{"path": "src/styles.css", "target": ".button", "property": "color", "value": "red"}]

        outcome = validate_and_fix(raw, sample_project)

        assert outcome.directives[0].type == "css-change"

    def test_missing_changes_defaults_to_empty(self, sample_project):
        raw = [{"type": "jsx-change", "path": "src/App.tsx", "target": "h1", "value": "Hi"}]

        outcome = validate_and_fix(raw, sample_project)

        assert outcome.directives == [ComponentEdit(path="src/App.tsx", target="h1", changes={}, value="Hi")]

    def test_unrepairable_are_dropped_and_reported(self, sample_project):
        raw = [
            {"type": "css-change", "path": "nothing.md", "target": ".a", "property": "color", "value": "red"},
            {"type": "css-change", "path": "src/styles.css", "target": ".a", "value": "red"},
            {"type": "css-change", "path": "src/styles.css", "target": ".b", "property": "margin", "value": 0},
        ]

        outcome = validate_and_fix(raw, sample_project)

        assert len(outcome.directives) == 1
        assert outcome.directives[0].value == "0"
        errors = sorted(r["error"] for r in outcome.rejected)
        assert errors == [
            "Could not be repaired: File not found: nothing.md",
            "Missing required fields for css-change: property",
        ]

    def test_auto_fix_keeps_valid_entries_in_place(self, sample_project):
        raw = [
            {"type": "css-change", "path": "src/styles.css", "target": ".a", "property": "color", "value": "red"},
            {"type": "css-change", "path": "styles.css", "target": ".b", "property": "color", "value": "blue"},
        ]

        fixed = auto_fix_directives(raw, validate_directives(raw, sample_project), sample_project)

        assert [d["path"] for d in fixed] == ["src/styles.css", "src/styles.css"]
        assert fixed[1]["target"] == ".b"

    def test_auto_fix_reports_what_it_drops(self, sample_project):
        raw = [
            {"type": "css-change", "path": "nothing.md", "target": ".a", "property": "color", "value": "red"},
            "not a directive",
        ]
        rejected = []

        fixed = auto_fix_directives(raw, validate_directives(raw, sample_project), sample_project, rejected)

        assert fixed == []
        assert [r["error"] for r in rejected] == [
            "Could not be repaired: File not found: nothing.md",
            "Could not be repaired: Directive is not an object",
        ]
        assert rejected[1]["directive"] == {}

    def test_non_string_path_is_rejected_not_raised(self, sample_project):
        raw = [
            {"type": "css-change", "path": ["src/styles.css"], "target": ".a", "property": "color", "value": "red"},
            {"type": "css-change", "path": "src/styles.css", "target": ".b", "property": "color", "value": "blue"},
        ]

        outcome = validate_and_fix(raw, sample_project)

        assert outcome.directives == [StylesheetEdit(path="src/styles.css", target=".b", property="color", value="blue")]
        assert len(outcome.rejected) == 1
        assert outcome.rejected[0]["error"].startswith("Could not be repaired: File not found")
