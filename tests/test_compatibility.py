from __future__ import annotations

import math
from types import SimpleNamespace
from typing import Any

import pytest

from cropplan.config import ScoringConfig
from cropplan.services.compatibility import (
	CompatibilityScorer,
	FieldConditions,
	extract_number,
	rank_recipes,
)


def _recipe(conditions: dict[str, Any], recipe_id: str = "r1") -> dict[str, Any]:
	return {"id": recipe_id, "recipeRules": {"environmentalConditions": conditions}}


SOIL_RULE = {"preferred": ["Loam"], "allowed": ["Loam", "Silt-loam"], "excluded": ["Sandy"]}


@pytest.mark.parametrize(
	("raw", "expected"),
	[
		(7, 7.0),
		("28°C", 28.0),
		("6.0-7.0", 6.5),
		("-4°C", -4.0),
		("1, 2, 3", 1.5),
		("pH about 6.8", 6.8),
	],
)
def test_extract_number_reads_numbers_and_ranges(raw: Any, expected: float) -> None:
	assert extract_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, True, "", "unknown", float("nan"), {"ph": 6}])
def test_extract_number_unusable_values(raw: Any) -> None:
	assert extract_number(raw) is None


@pytest.mark.parametrize(
	("soil", "expected"),
	[
		("Loam", 1.0),
		("  loam ", 1.0),
		("Silt-loam", 0.8),
		("sandy", 0.0),
		("Clay", 0.2),
		(None, 0.0),
	],
)
def test_soil_type_sub_score_is_the_only_category(soil: str | None, expected: float) -> None:
	scorer = CompatibilityScorer()
	field = FieldConditions(soil_type=soil)
	assert scorer.score(field, _recipe({"soilType": SOIL_RULE})) == pytest.approx(expected)


def test_unrestricted_soil_rule_is_neutral() -> None:
	scorer = CompatibilityScorer()
	score = scorer.score(FieldConditions(soil_type="Clay"), _recipe({"soilType": {}}))
	assert score == pytest.approx(0.5)


def test_no_applicable_rules_scores_zero() -> None:
	scorer = CompatibilityScorer()
	field = FieldConditions(soil_type="Loam", soil_ph="6.5", weather={"temp": 20, "humid": 50})
	assert scorer.score(field, {"id": "bare"}) == 0.0
	assert scorer.score(field, _recipe({})) == 0.0
	# pH rule exists but the field has no reading: the category is skipped.
	assert scorer.score(FieldConditions(soil_type="Loam"), _recipe({"soilPH": {"optimal": 6.5}})) == 0.0


def test_ph_falloff_around_optimal() -> None:
	scorer = CompatibilityScorer()
	recipe = _recipe({"soilPH": {"optimal": 6.5}})
	assert scorer.score(FieldConditions(soil_ph="6.0-7.0"), recipe) == pytest.approx(1.0)
	assert scorer.score(FieldConditions(soil_ph=8.5), recipe) == pytest.approx(0.5)
	assert scorer.score(FieldConditions(soil_ph="12"), recipe) == 0.0


def test_missing_reading_is_excluded_from_normalization() -> None:
	scorer = CompatibilityScorer()
	recipe = _recipe({"soilType": SOIL_RULE, "soilPH": {"optimal": 6.5}})
	assert scorer.score(FieldConditions(soil_type="Loam"), recipe) == pytest.approx(1.0)
	# (0.3 * 1.0 + 0.3 * 0.5) / 0.6
	assert scorer.score(FieldConditions(soil_type="Loam", soil_ph=8.5), recipe) == pytest.approx(0.75)


def test_temperature_outside_bounds_decays_with_spread() -> None:
	scorer = CompatibilityScorer()
	recipe = _recipe({"temperature": {"min": 15, "max": 25}})
	inside = FieldConditions(weather={"current": {"temp": "21°C"}})
	outside = FieldConditions(weather={"current": {"temp": "30°C"}})
	assert scorer.score(inside, recipe) == pytest.approx(1.0)
	# distance 5 over a scale of |25 - 15| + 10
	assert scorer.score(outside, recipe) == pytest.approx(0.75)


def test_one_sided_humidity_bound() -> None:
	scorer = CompatibilityScorer()
	recipe = _recipe({"humidity": {"max": 60}})
	assert scorer.score(FieldConditions(weather={"humid": 55}), recipe) == pytest.approx(1.0)
	assert scorer.score(FieldConditions(weather={"humid": 65}), recipe) == pytest.approx(0.5)
	assert scorer.score(FieldConditions(weather={"humid": 75}), recipe) == 0.0


def test_temperature_falls_back_to_daily_mean() -> None:
	field = FieldConditions(weather={"maxTemp": "30", "minTemp": "20"})
	assert field.temperature == pytest.approx(25.0)
	assert FieldConditions(weather={"maxTemp": 31}).temperature == pytest.approx(31.0)


def test_field_conditions_fall_back_to_attributes() -> None:
	record = SimpleNamespace(
		soil_type=None,
		soil_ph=None,
		weather=None,
		attributes={"soilType": "Loam", "soilph": "6.2", "weather": {"temp": 18, "humid": 40}},
	)
	field = FieldConditions.from_record(record)
	assert field.as_dict() == {"soil_type": "Loam", "soil_ph": 6.2, "temperature": 18.0, "humidity": 40.0}


def test_recipe_without_usable_rules_scores_zero() -> None:
	scorer = CompatibilityScorer()
	field = FieldConditions(soil_type="Loam")
	assert scorer.score(field, {"recipeWorkflows": "not-a-list"}) == 0.0
	assert scorer.score(field, "not a recipe") == 0.0
	assert scorer.score(field, _recipe({"soilType": "Loam", "soilPH": 6.5})) == 0.0


def test_unreadable_rule_only_skips_its_own_category() -> None:
	scorer = CompatibilityScorer()
	field = FieldConditions(soil_type="Loam", soil_ph="6.5")
	recipe = _recipe({"soilType": {"preferred": ["Loam"]}, "soilPH": {"optimal": "neutral"}})
	assert scorer.score(field, recipe) == pytest.approx(1.0)


def test_unreadable_soil_rule_leaves_ph_scoring_intact() -> None:
	scorer = CompatibilityScorer()
	field = FieldConditions(soil_type="Loam", soil_ph="6.5")
	recipe = _recipe({"soilType": {"preferred": "Loam"}, "soilPH": {"optimal": 6.5, "min": "acidic"}})
	assert scorer.score(field, recipe) == pytest.approx(1.0)


def test_custom_weights_change_the_blend() -> None:
	scorer = CompatibilityScorer(ScoringConfig(soil_type=0.0))
	recipe = _recipe({"soilType": SOIL_RULE, "soilPH": {"optimal": 6.5}})
	assert scorer.score(FieldConditions(soil_type="Sandy", soil_ph=8.5), recipe) == pytest.approx(0.5)


def test_score_is_bounded_and_deterministic() -> None:
	scorer = CompatibilityScorer()
	recipe = _recipe(
		{
			"soilType": SOIL_RULE,
			"soilPH": {"min": 6.0, "max": 7.5},
			"temperature": {"optimal": -5},
			"humidity": {"min": 30},
		}
	)
	fields = [
		FieldConditions(),
		FieldConditions(soil_type="Sandy", soil_ph="1", weather={"temp": 60, "humid": 0}),
		FieldConditions(soil_type="loam", soil_ph="6.5", weather={"current": {"temp": "-5", "humidity": "45%"}}),
	]
	for field in fields:
		first = scorer.score(field, recipe)
		assert 0.0 <= first <= 1.0
		assert not math.isnan(first)
		assert scorer.score(field, recipe) == first


def test_rank_recipes_is_stable_on_ties() -> None:
	field = FieldConditions(soil_type="Loam")
	recipes = [
		_recipe({"soilType": {"allowed": ["Loam"]}}, "first-allowed"),
		_recipe({"soilType": SOIL_RULE}, "preferred"),
		_recipe({"soilType": {"allowed": ["Loam"]}}, "second-allowed"),
		{"id": "broken", "recipeWorkflows": 3, "recipeRules": {"environmentalConditions": {"soilPH": "acidic"}}},
		_recipe({"soilType": {"excluded": ["Loam"]}}, "excluded"),
	]
	ranking = rank_recipes(field, recipes)
	assert [recipe.id for recipe, _score in ranking] == [
		"preferred",
		"first-allowed",
		"second-allowed",
		"broken",
		"excluded",
	]
	assert [score for _recipe, score in ranking] == pytest.approx([1.0, 0.8, 0.8, 0.0, 0.0])
