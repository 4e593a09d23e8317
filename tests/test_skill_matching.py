import pytest

from app.services.matching.skill_matching import (
    build_match_summary,
    calculate_match_percentage,
    check_experience_level_match,
    get_match_bg_color_class,
    get_match_border_color_for_map,
    get_match_color_class,
    get_match_color_for_map,
    get_match_marker_color,
    get_match_text_color_class,
    normalize_skill_names,
    round_half_up,
    to_canonical_skill_name,
    to_display_skill_name,
)


def test_canonical_and_display_names():
    assert to_canonical_skill_name("Sailing  Experience ") == "sailing_experience"
    assert to_canonical_skill_name(None) == ""
    assert to_display_skill_name("night_sailing") == "Night Sailing"


def test_normalize_accepts_dicts_and_json_strings():
    skills = ["Navigation", {"skill_name": "First Aid"}, '{"skill_name": "Cooking", "description": "x"}', "", 42]
    assert normalize_skill_names(skills) == ["navigation", "first_aid", "cooking"]
    assert normalize_skill_names("navigation") == []


def test_match_percentage_rounds_half_up():
    assert round_half_up(2.5) == 3
    # 2 of 3 skills -> 66.67 -> 67
    assert calculate_match_percentage(["a", "b"], ["a", "b", "c"]) == 67
    # 1 of 8 -> 12.5 -> 13
    assert calculate_match_percentage(["a"], list("abcdefgh")) == 13


def test_match_percentage_edge_cases():
    assert calculate_match_percentage([], []) == 100
    assert calculate_match_percentage(["navigation"], ["Navigation"]) == 100
    assert calculate_match_percentage(["navigation"], ["navigation"], 1, 3) == 0
    # Unknown user level does not zero the score
    assert calculate_match_percentage(["navigation"], ["navigation"], None, 3) == 100


def test_experience_level_match():
    assert check_experience_level_match(None, None) is True
    assert check_experience_level_match(None, 2) is False
    assert check_experience_level_match(3, 2) is True


def test_marker_color_is_red_when_level_insufficient():
    assert get_match_marker_color(100, experience_level_matches=False) == "#ef4444"
    assert get_match_marker_color(85) == "#22c55e"
    assert get_match_marker_color(10) == "#ef4444"


def test_match_summary_lists_matching_and_missing():
    summary = build_match_summary(["navigation"], 2, ["navigation", "night_sailing"], 2)
    assert summary["match_percentage"] == 50
    assert summary["matching_skills"] == ["navigation"]
    assert summary["missing_skills"] == ["night_sailing"]
    assert summary["experience_level_matches"] is True
    assert summary["map_fill_color"] == "#fde047"
    assert summary["map_border_color"] == "#ca8a04"


@pytest.mark.parametrize(
    "helper, expected",
    [
        (get_match_color_class, ["bg-green-300/80", "bg-yellow-300/80", "bg-orange-300/80", "bg-red-500/80"]),
        (get_match_text_color_class, ["text-green-800", "text-yellow-800", "text-orange-800", "text-red-800"]),
        (get_match_bg_color_class, ["bg-green-50", "bg-yellow-50", "bg-orange-50", "bg-red-50"]),
        (get_match_color_for_map, ["#22c55e", "#fde047", "#fdba74", "#ef4444"]),
        (get_match_border_color_for_map, ["#16a34a", "#ca8a04", "#ea580c", "#dc2626"]),
        (get_match_marker_color, ["#22c55e", "#eab308", "#f97316", "#ef4444"]),
    ],
)
def test_colour_thresholds(helper, expected):
    green, yellow, orange, red = expected
    for percentage, colour in [
        (100, green),
        (80, green),
        (79, yellow),
        (50, yellow),
        (49, orange),
        (25, orange),
        (24, red),
        (0, red),
    ]:
        assert helper(percentage).startswith(colour), percentage
