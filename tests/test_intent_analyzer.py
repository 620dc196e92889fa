"""Tests for request complexity classification."""

import pytest

from routes.intent_analyzer import analyze_intent, extract_explicit_files


class TestAnalyzeIntent:
    """Tests for analyze_intent."""

    def test_button_color_is_trivial(self, sample_project):
        result = analyze_intent("change the button color to #03A5C0", sample_project)

        assert result.complexity == "trivial"
        assert result.score == 65
        assert result.intent_type == "quick-modification"
        assert result.confidence == 0.65
        assert "color change" in result.patterns
        assert "hex value" in result.patterns

    @pytest.mark.parametrize("message", [
        "make the title bold",
        "change the background color",
        "Remplace le texte du titre",
        "mets le fond en bleu",
        "increase the padding and the border radius of the cards",
        "fix the typo in the heading",
        "center the label and make the font bigger",
    ])
    def test_simple_only_requests_stay_cheap(self, sample_project, message):
        result = analyze_intent(message, sample_project)

        assert result.complexity in ("trivial", "simple")
        assert result.intent_type == "quick-modification"

    def test_simple_bonus_is_capped(self, sample_project):
        # five cosmetic patterns, but the bonus stops at +60
        result = analyze_intent(
            "change the title text color, font, background and padding of the whole hero block",
            sample_project,
        )

        assert result.score == 60

    def test_complex_request(self, sample_project):
        result = analyze_intent("Add authentication with a database and a new page for login", sample_project)

        assert result.complexity == "complex"
        assert result.intent_type == "full-generation"
        assert "authentication" in result.patterns
        assert "persistence" in result.patterns

    def test_many_named_files_penalty(self, sample_project):
        names = " ".join(f"section{i}.css" for i in range(12))
        result = analyze_intent(f"update {names}", sample_project)

        assert result.complexity in ("moderate", "complex")
        assert result.complexity != "trivial"
        assert result.score == -100

    def test_several_named_files_penalty(self, sample_project):
        names = " ".join(f"part{i}.tsx" for i in range(6))
        result = analyze_intent(f"review {names} please and tidy them up now", sample_project)

        assert result.score == -50

    def test_score_is_clamped(self, sample_project):
        message = ("refactor the architecture, add authentication, a database, routing, redux global state, "
                   "an api backend and redesign everything from scratch " + " ".join(f"f{i}.ts" for i in range(12)))
        result = analyze_intent(message, sample_project)

        assert result.score == -100
        assert result.confidence == 1.0

    def test_empty_project_needs_full_generation(self):
        result = analyze_intent("change the button color", {})

        assert result.complexity == "complex"
        assert result.intent_type == "full-generation"

    def test_follow_up_nudge(self, sample_project):
        history = [{"role": "user", "content": "make the header blue"}]

        without = analyze_intent("make the footer blue too", sample_project)
        with_history = analyze_intent("make the footer blue too", sample_project, history)

        assert with_history.score == without.score + 5
        assert "follow-up" in with_history.patterns

    def test_result_is_frozen(self, sample_project):
        result = analyze_intent("change the button color", sample_project)

        with pytest.raises(Exception):
            result.complexity = "complex"

    def test_summary_shape(self, sample_project):
        summary = analyze_intent("change the button color", sample_project).summary()

        assert set(summary) == {"complexity", "intentType", "confidence", "score", "explanation"}


class TestExtractExplicitFiles:
    """Tests for explicit file mentions."""

    def test_basename_and_full_path(self, sample_project):
        found = extract_explicit_files("update Header.tsx and src/styles.css", sample_project)

        assert found == ["src/styles.css", "src/components/Header.tsx"]

    def test_basename_must_stand_alone(self, sample_project):
        assert extract_explicit_files("look at myapp.tsx", sample_project) == []

    def test_case_insensitive(self, sample_project):
        assert extract_explicit_files("fix BUTTON.TSX", sample_project) == ["src/components/Button.tsx"]
