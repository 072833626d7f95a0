"""Tests for the static content table.

Covers:
1. Material list parsing
2. CSV loading, including blank cells and malformed rows
3. Table validation
"""

import pytest

from balance_sim.errors import ContentError
from balance_sim.models.content import (
    ContentItem,
    ContentTable,
    default_content,
    is_synthetic_prerequisite,
    load_content_csv,
    parse_material_list,
)

CSV_HEADER = "id,name,type,screen,prerequisites,energy_cost,time,materials_cost,tool_required,repeatable\n"


class TestMaterialLists:
    """Tests for "Name xN" material lists."""

    def test_parses_semicolon_list(self) -> None:
        assert parse_material_list("Stone x5;Wood x10") == {"stone": 5.0, "wood": 10.0}

    def test_multi_word_names_become_snake_case(self) -> None:
        assert parse_material_list("Iron Ore x2") == {"iron_ore": 2.0}

    def test_repeated_names_are_summed(self) -> None:
        assert parse_material_list("Wood x2; Wood x3") == {"wood": 5.0}

    def test_empty_text_is_empty(self) -> None:
        assert parse_material_list("") == {}

    def test_malformed_entry_raises(self) -> None:
        with pytest.raises(ContentError, match="Malformed material entry"):
            parse_material_list("Stone five")


class TestContentItem:
    """Tests for row-level parsing."""

    def test_prerequisites_accept_semicolon_string(self) -> None:
        item = ContentItem(id="x", type="cleanup", prerequisites="a; b;")
        assert item.prerequisites == ["a", "b"]

    def test_required_ids_include_tool(self) -> None:
        item = ContentItem(id="x", type="cleanup", prerequisites="a", tool_required="hoe")
        assert item.required_ids == ["a", "hoe"]

    def test_recipe_output(self) -> None:
        assert ContentItem(id="craft_hoe", type="recipe").recipe_output == "hoe"
        assert ContentItem(id="hoe", type="tool").recipe_output is None

    def test_effects_parse(self) -> None:
        item = ContentItem(id="tank", type="upgrade", effect="max_water:+100;max_energy:+50")
        assert item.effects() == {"max_water": 100.0, "max_energy": 50.0}

    def test_synthetic_prerequisites(self) -> None:
        assert is_synthetic_prerequisite("hero_level_3")
        assert is_synthetic_prerequisite("farm_stage_2")
        assert not is_synthetic_prerequisite("hoe")


class TestCsvLoading:
    """Tests for load_content_csv."""

    def test_loads_rows_with_blank_cells(self, tmp_path) -> None:
        (tmp_path / "farm.csv").write_text(
            CSV_HEADER
            + "turnip,Turnip,crop,farm,,,10,,,\n"
            + "clear_weeds,Clear Weeds,cleanup,farm,,15,,,,FALSE\n"
            + "clear_rocks,Clear Rocks,cleanup,farm,clear_weeds,25,,Stone x2,hoe,TRUE\n"
            + "hoe,Hoe,tool,forge,,,,,,\n"
        )
        table = load_content_csv(tmp_path)

        assert len(table) == 4
        rocks = table.require("clear_rocks")
        assert rocks.prerequisites == ["clear_weeds"]
        assert rocks.materials_cost == {"stone": 2.0}
        assert rocks.tool_required == "hoe"
        assert rocks.repeatable is True
        assert table.require("turnip").energy_cost == 0.0
        table.validate()

    def test_empty_directory_raises(self, tmp_path) -> None:
        with pytest.raises(ContentError, match="No content CSV files"):
            load_content_csv(tmp_path)

    def test_malformed_row_reports_file_and_line(self, tmp_path) -> None:
        (tmp_path / "bad.csv").write_text(CSV_HEADER + "thing,Thing,spaceship,farm,,,,,,\n")
        with pytest.raises(ContentError, match="bad.csv:2"):
            load_content_csv(tmp_path)

    def test_duplicate_ids_raise(self, tmp_path) -> None:
        (tmp_path / "a.csv").write_text(CSV_HEADER + "turnip,Turnip,crop,farm,,,10,,,\n")
        (tmp_path / "b.csv").write_text(CSV_HEADER + "turnip,Turnip,crop,farm,,,12,,,\n")
        with pytest.raises(ContentError, match="Duplicate content id"):
            load_content_csv(tmp_path)


class TestTableValidation:
    """Tests for ContentTable.validate."""

    def test_bundled_content_is_valid(self) -> None:
        default_content().validate()

    def test_empty_table_is_rejected(self) -> None:
        with pytest.raises(ContentError, match="empty"):
            ContentTable([]).validate()

    def test_missing_required_type_is_rejected(self) -> None:
        table = ContentTable([ContentItem(id="turnip", type="crop")])
        with pytest.raises(ContentError, match="cleanup"):
            table.validate()

    def test_unknown_prerequisite_is_rejected(self) -> None:
        table = ContentTable(
            [
                ContentItem(id="turnip", type="crop"),
                ContentItem(id="clear", type="cleanup", prerequisites="ghost"),
            ]
        )
        with pytest.raises(ContentError, match="ghost"):
            table.validate()

    def test_table_is_read_only(self) -> None:
        table = default_content()
        with pytest.raises(TypeError):
            table.items["new"] = ContentItem(id="new", type="crop")

    def test_by_type_keeps_table_order(self) -> None:
        crops = [item.id for item in default_content().by_type("crop")]
        assert crops == ["turnip", "beet", "carrot", "potato"]
