from __future__ import annotations

from showbook.logging_utils import LogBlock, format_value, render_fields_block, render_section_block


class TestFormatValue:
    def test_scalars(self) -> None:
        assert format_value(None) == ""
        assert format_value("  Dick's  ") == "Dick's"
        assert format_value(0.8) == "0.80"
        assert format_value(3) == "3"
        assert format_value(True) == "yes"

    def test_collections_skip_missing_entries(self) -> None:
        assert format_value(["Phish", None, "Concert"]) == "Phish, Concert"
        assert format_value(()) == ""


class TestLogBlock:
    def test_title_is_underlined(self) -> None:
        rendered = LogBlock("Show Identification", pad_top=False).render()

        assert rendered.splitlines() == ["Show Identification", "==================="]

    def test_pad_top_adds_leading_blank_line(self) -> None:
        rendered = render_fields_block("Resolved Show", {"Title": "N1 Phish"})

        assert rendered.startswith("\nResolved Show")

    def test_labels_are_aligned(self) -> None:
        rendered = render_fields_block("Resolved Show", [("Venue", "MSG"), ("Confidence", 0.9)], pad_top=False)
        lines = rendered.splitlines()

        assert lines[2] == "    Venue     : MSG"
        assert lines[3] == "    Confidence: 0.90"

    def test_skip_empty_drops_blank_values(self) -> None:
        rendered = render_fields_block(
            "Resolved Show",
            {"Title": "Phish Commerce City 8-30-2024", "Run": None, "Venue": ""},
            skip_empty=True,
        )

        assert "Title" in rendered
        assert "Run" not in rendered
        assert "Venue" not in rendered

    def test_long_values_wrap_under_the_value_column(self) -> None:
        block = LogBlock("Notes", pad_top=False, width=50)
        block.fields({"Overview": "word " * 30})
        lines = block.render().splitlines()[2:]

        assert len(lines) > 1
        assert lines[0].startswith("    Overview: word")
        assert all(line.startswith("              word") for line in lines[1:])

    def test_sections_render_bullets_and_empty_label(self) -> None:
        rendered = render_section_block(
            "Showbook",
            [("Command", ["parse"]), ("Warnings", [])],
            pad_top=False,
        )

        assert rendered.splitlines() == [
            "Showbook",
            "========",
            "",
            "Command:",
            "    - parse",
            "",
            "Warnings:",
            "    (none)",
        ]
