"""Tests for the slide schema validator."""

from slidechain.models import Layout
from slidechain.validator import analyze_validation_errors, validate


class TestValidate:
    """Tests for validate()."""

    def test_minimal_spec_is_valid(self):
        result = validate({"title": "Quarterly Review", "layout": "title-bullets", "bullets": ["One"]})
        assert result.ok
        assert result.errors == []
        assert result.spec.layout is Layout.TITLE_BULLETS
        assert result.spec.bullets == ["One"]

    def test_snake_case_field_names_are_accepted(self):
        result = validate({"title": "Q", "layout": "title", "image_prompt": "a lake"})
        assert result.ok
        assert result.spec.image_prompt == "a lake"

    def test_non_object_is_rejected(self):
        result = validate(["not", "a", "dict"])
        assert not result.ok
        assert result.spec is None
        assert "must be an object" in result.errors[0]

    def test_blank_title_is_rejected(self):
        result = validate({"title": "   ", "layout": "title"})
        assert not result.ok
        assert result.errors[0].startswith("title:")

    def test_reports_every_violation(self):
        result = validate(
            {
                "title": "",
                "layout": "diagonal",
                "bullets": "not a list",
                "colour": "red",
            }
        )
        assert not result.ok
        joined = "\n".join(result.errors)
        assert "title:" in joined
        assert "layout must be one of:" in joined
        assert "bullets:" in joined
        assert "colour: unexpected property" in joined
        assert len(result.errors) >= 4

    def test_nested_paths_are_reported(self):
        result = validate(
            {
                "title": "Sales",
                "layout": "chart",
                "chart": {"type": "bar", "categories": ["Q1"], "series": [{"name": "Revenue", "data": ["lots"]}]},
            }
        )
        assert not result.ok
        assert any(err.startswith("chart.series[0].data[0]") for err in result.errors)

    def test_table_rows_must_match_columns(self):
        result = validate(
            {
                "title": "Compare",
                "layout": "comparison-table",
                "comparisonTable": {"columns": ["A", "B"], "rows": [["1", "2"], ["3"]]},
            }
        )
        assert not result.ok
        assert any("rows[1] has 1 cells" in err for err in result.errors)

    def test_invalid_hex_colour_is_rejected(self):
        result = validate({"title": "T", "layout": "title", "design": {"accentColor": "blue"}})
        assert not result.ok
        assert result.errors[0].startswith("design.accentColor")


class TestAnalyzeValidationErrors:
    """Tests for analyze_validation_errors()."""

    def test_layout_category(self):
        analysis = analyze_validation_errors(["layout must be one of: title"])
        assert analysis["category"] == "Invalid Layout"
        assert analysis["suggestedFix"]

    def test_title_wins_over_later_categories(self):
        analysis = analyze_validation_errors(["bullets: bad", "title: Field required"])
        assert analysis["category"] == "Missing Title"

    def test_unknown_errors_fall_back_to_general(self):
        analysis = analyze_validation_errors(["sources[0]: Input should be a valid string"])
        assert analysis["category"] == "General Validation Error"
