"""
Skill matching between crew profiles and legs

Skill names are stored in canonical form (lowercase, underscores) on profiles,
journeys and legs; display names are Title Case with spaces.
"""
import json
import logging
import math
import re
from typing import Any, Iterable

logger = logging.getLogger(__name__)

# Thresholds shared by every colour helper
HIGH_MATCH = 80
MEDIUM_MATCH = 50
LOW_MATCH = 25

MATCH_COLOR_CLASSES = {
    HIGH_MATCH: "bg-green-300/80 border-green-500",
    MEDIUM_MATCH: "bg-yellow-300/80 border-yellow-600",
    LOW_MATCH: "bg-orange-300/80 border-orange-600",
    0: "bg-red-500/80 border-red-600",
}

MATCH_TEXT_CLASSES = {
    HIGH_MATCH: "text-green-800",
    MEDIUM_MATCH: "text-yellow-800",
    LOW_MATCH: "text-orange-800",
    0: "text-red-800",
}

MATCH_BG_CLASSES = {
    HIGH_MATCH: "bg-green-50 border-green-200",
    MEDIUM_MATCH: "bg-yellow-50 border-yellow-200",
    LOW_MATCH: "bg-orange-50 border-orange-200",
    0: "bg-red-50 border-red-200",
}

MAP_FILL_COLORS = {
    HIGH_MATCH: "#22c55e",
    MEDIUM_MATCH: "#fde047",
    LOW_MATCH: "#fdba74",
    0: "#ef4444",
}

MAP_BORDER_COLORS = {
    HIGH_MATCH: "#16a34a",
    MEDIUM_MATCH: "#ca8a04",
    LOW_MATCH: "#ea580c",
    0: "#dc2626",
}

MARKER_COLORS = {
    HIGH_MATCH: "#22c55e",
    MEDIUM_MATCH: "#eab308",
    LOW_MATCH: "#f97316",
    0: "#ef4444",
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)"""
    return int(math.floor(value + 0.5))


def to_canonical_skill_name(skill_name: Any) -> str:
    """
    "Sailing Experience" -> "sailing_experience"
    "navigation" -> "navigation"
    """
    if not skill_name or not isinstance(skill_name, str):
        return ""
    return re.sub(r"\s+", "_", skill_name.strip().lower())


def to_display_skill_name(canonical_name: Any) -> str:
    """sailing_experience -> Sailing Experience"""
    if not canonical_name or not isinstance(canonical_name, str):
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in canonical_name.split("_"))


def _single_skill_name(skill: Any) -> str:
    if isinstance(skill, dict):
        if "skill_name" in skill and skill["skill_name"] is not None:
            return to_canonical_skill_name(str(skill["skill_name"]))
        return ""

    if not isinstance(skill, str):
        return ""

    # Profiles may hold JSON strings like '{"skill_name": "navigation", "description": "..."}'
    if skill.strip().startswith("{"):
        try:
            parsed = json.loads(skill)
        except json.JSONDecodeError:
            skill = re.sub(r"^\{|\}$", "", skill.strip())
        else:
            if isinstance(parsed, dict) and "skill_name" in parsed:
                return to_canonical_skill_name(str(parsed["skill_name"]))

    return to_canonical_skill_name(skill)


def normalize_skill_names(skill_names: Any) -> list[str]:
    """
    Normalize a list of skill names (display, canonical, JSON string or dict)
    to canonical names, dropping empty values
    """
    if not isinstance(skill_names, (list, tuple)):
        return []
    normalized = (_single_skill_name(skill) for skill in skill_names)
    return [name for name in normalized if name]


def check_experience_level_match(user_level: int | None, required_level: int | None) -> bool:
    if required_level is None:
        return True
    if user_level is None:
        return False
    return user_level >= required_level


def calculate_match_percentage(
    user_skills: Iterable[Any],
    leg_skills: Iterable[Any],
    user_experience_level: int | None = None,
    leg_min_experience_level: int | None = None,
) -> int:
    """
    Percentage of the leg's required skills the user has.

    Returns 0 when both experience levels are known and the user's is lower
    than required, 100 when the leg requires no skills.
    """
    if leg_min_experience_level is not None and user_experience_level is not None:
        if user_experience_level < leg_min_experience_level:
            return 0

    required = normalize_skill_names(list(leg_skills or []))
    if not required:
        return 100

    owned = set(normalize_skill_names(list(user_skills or [])))
    matched = [skill for skill in required if skill in owned]
    percentage = round_half_up(len(matched) / len(required) * 100)

    logger.debug(
        "Match %s/%s required skills -> %s%%", len(matched), len(required), percentage
    )
    return percentage


def get_matching_and_missing_skills(user_skills: Iterable[Any], leg_skills: Iterable[Any]) -> dict:
    owned = set(normalize_skill_names(list(user_skills or [])))
    required = normalize_skill_names(list(leg_skills or []))
    return {
        "matching": [skill for skill in required if skill in owned],
        "missing": [skill for skill in required if skill not in owned],
    }


def _pick(percentage: float, palette: dict) -> str:
    for threshold in (HIGH_MATCH, MEDIUM_MATCH, LOW_MATCH):
        if percentage >= threshold:
            return palette[threshold]
    return palette[0]


def get_match_color_class(percentage: float) -> str:
    return _pick(percentage, MATCH_COLOR_CLASSES)


def get_match_text_color_class(percentage: float) -> str:
    return _pick(percentage, MATCH_TEXT_CLASSES)


def get_match_bg_color_class(percentage: float) -> str:
    return _pick(percentage, MATCH_BG_CLASSES)


def get_match_color_for_map(percentage: float) -> str:
    return _pick(percentage, MAP_FILL_COLORS)


def get_match_border_color_for_map(percentage: float) -> str:
    return _pick(percentage, MAP_BORDER_COLORS)


def get_match_marker_color(percentage: float, experience_level_matches: bool = True) -> str:
    """Hex colour for a map marker; always red when the experience level is insufficient"""
    if not experience_level_matches:
        return MARKER_COLORS[0]
    return _pick(percentage, MARKER_COLORS)


def build_match_summary(
    user_skills: Iterable[Any],
    user_experience_level: int | None,
    leg_skills: Iterable[Any],
    leg_min_experience_level: int | None,
) -> dict:
    """Match fields attached to legs shown to a crew member"""
    user_skills = list(user_skills or [])
    leg_skills = list(leg_skills or [])
    percentage = calculate_match_percentage(
        user_skills, leg_skills, user_experience_level, leg_min_experience_level
    )
    level_matches = check_experience_level_match(user_experience_level, leg_min_experience_level)
    skills = get_matching_and_missing_skills(user_skills, leg_skills)
    return {
        "match_percentage": percentage,
        "experience_level_matches": level_matches,
        "matching_skills": skills["matching"],
        "missing_skills": skills["missing"],
        "marker_color": get_match_marker_color(percentage, level_matches),
        "map_fill_color": get_match_color_for_map(percentage),
        "map_border_color": get_match_border_color_for_map(percentage),
    }
