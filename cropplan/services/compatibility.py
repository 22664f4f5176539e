"""Recipe-to-field compatibility scoring and recipe ranking.

The scorer compares a field's observed conditions (soil type, soil pH and
the current weather snapshot) against a recipe's environmental rules and
returns a normalized fitness in [0, 1].  Category weights and falloff
scales come from ``ScoringConfig``; a category only counts towards the
normalization when the recipe defines a rule for it and, for the numeric
categories, when the field has a usable reading.

Scoring never raises: missing or unparseable inputs fall back to a zero or
neutral contribution, and a recipe that fails validation scores 0.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from cropplan.config import ScoringConfig
from cropplan.schemas.crop import Recipe, SoilTypeRule, ValueRange

_logger = logging.getLogger("cropplan.compatibility")

# A leading minus only counts as a sign when it does not follow a digit, so
# "6.0-7.0" reads as a range and "-4°C" as a negative reading.
_NUMBER = re.compile(r"(?<![\d.])-?\d+(?:\.\d+)?")

SOIL_EXCLUDED = 0.0
SOIL_PREFERRED = 1.0
SOIL_ALLOWED = 0.8
SOIL_UNRESTRICTED = 0.5
SOIL_UNLISTED = 0.2


def extract_number(value: Any) -> float | None:
	"""Read a numeric value from a number or free text such as ``"28°C"``.

	One number found in the text is used as-is; two or more are read as a
	range and averaged over the first two.  Returns ``None`` when nothing
	usable is present.
	"""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		number = float(value)
		return number if math.isfinite(number) else None
	if not isinstance(value, str):
		return None

	numbers = [float(token) for token in _NUMBER.findall(value)]
	if not numbers:
		return None
	if len(numbers) == 1:
		return numbers[0]
	return (numbers[0] + numbers[1]) / 2


def _normalize_text(value: Any) -> str | None:
	if not isinstance(value, str):
		return None
	return value.strip().lower()


def _finite(value: float | None) -> float | None:
	if value is None or not math.isfinite(value):
		return None
	return value


def _clamp(value: float) -> float:
	return max(0.0, min(1.0, value))


def _falloff(distance: float, scale: float) -> float:
	if scale <= 0:
		return 1.0 if distance <= 0 else 0.0
	return _clamp(1.0 - distance / scale)


@dataclass(frozen=True, slots=True)
class FieldConditions:
	"""The field readings the scorer looks at."""

	soil_type: str | None = None
	soil_ph: Any = None
	weather: Mapping[str, Any] | None = None

	@classmethod
	def from_record(cls, field: Any) -> FieldConditions:
		"""Build from a Field row, falling back to its free-form attributes."""
		attributes = getattr(field, "attributes", None) or {}
		soil_type = getattr(field, "soil_type", None) or attributes.get("soilType")
		soil_ph = getattr(field, "soil_ph", None)
		if soil_ph is None:
			soil_ph = attributes.get("soilph", attributes.get("soilPH"))
		weather = getattr(field, "weather", None) or attributes.get("weather")
		return cls(soil_type=soil_type, soil_ph=soil_ph, weather=weather)

	def _snapshot(self) -> Mapping[str, Any]:
		if not isinstance(self.weather, Mapping):
			return {}
		current = self.weather.get("current")
		return current if isinstance(current, Mapping) else self.weather

	@property
	def ph(self) -> float | None:
		return extract_number(self.soil_ph)

	@property
	def temperature(self) -> float | None:
		snapshot = self._snapshot()
		temp = extract_number(snapshot.get("temp", snapshot.get("temperature")))
		if temp is not None:
			return temp
		high = extract_number(snapshot.get("maxTemp"))
		low = extract_number(snapshot.get("minTemp"))
		if high is not None and low is not None:
			return (high + low) / 2
		return high if high is not None else low

	@property
	def humidity(self) -> float | None:
		snapshot = self._snapshot()
		return extract_number(snapshot.get("humid", snapshot.get("humidity")))

	def as_dict(self) -> dict[str, Any]:
		return {
			"soil_type": self.soil_type,
			"soil_ph": self.ph,
			"temperature": self.temperature,
			"humidity": self.humidity,
		}


def score_soil_type(rule: SoilTypeRule, soil_type: str | None) -> float:
	excluded = rule.excluded or []
	preferred = rule.preferred or []
	allowed = rule.allowed or []
	if not (excluded or preferred or allowed):
		return SOIL_UNRESTRICTED

	soil = _normalize_text(soil_type)
	if not soil:
		return 0.0

	def listed(values: list[str]) -> bool:
		return soil in {_normalize_text(v) for v in values}

	if listed(excluded):
		return SOIL_EXCLUDED
	if listed(preferred):
		return SOIL_PREFERRED
	if listed(allowed):
		return SOIL_ALLOWED
	return SOIL_UNLISTED


def score_range(
	rule: ValueRange,
	value: float,
	*,
	optimal_scale: float,
	bounds_scale: float,
	one_sided_scale: float,
) -> float | None:
	"""Smooth falloff around ``optimal``, or outside ``[min, max]``.

	Returns ``None`` when the rule carries no usable bound.
	"""
	low, high, optimal = _finite(rule.min), _finite(rule.max), _finite(rule.optimal)

	if optimal is not None:
		return _falloff(abs(value - optimal), optimal_scale)

	if low is not None and high is not None:
		if low <= value <= high:
			return 1.0
		distance = low - value if value < low else value - high
		return _falloff(distance, bounds_scale)

	if low is not None:
		return 1.0 if value >= low else _falloff(low - value, one_sided_scale)

	if high is not None:
		return 1.0 if value <= high else _falloff(value - high, one_sided_scale)

	return None


class CompatibilityScorer:
	"""Weighted, normalized recipe fitness for a field."""

	def __init__(self, config: ScoringConfig | None = None):
		self.config = config or ScoringConfig()

	def score(self, field: FieldConditions, recipe: Recipe | Mapping[str, Any]) -> float:
		parsed = recipe if isinstance(recipe, Recipe) else Recipe.model_validate(recipe)
		env = parsed.environment
		if env is None:
			_logger.debug("recipe_without_conditions", extra={"recipe_id": parsed.key})
			return 0.0

		cfg = self.config
		total = 0.0
		total_weight = 0.0

		if cfg.soil_type > 0 and env.soil_type is not None:
			total_weight += cfg.soil_type
			total += cfg.soil_type * score_soil_type(env.soil_type, field.soil_type)

		for weight, rule, value, scales in (
			(cfg.soil_ph, env.soil_ph, field.ph, self._ph_scales),
			(cfg.temperature, env.temperature, field.temperature, self._range_scales),
			(cfg.humidity, env.humidity, field.humidity, self._range_scales),
		):
			if weight <= 0 or rule is None or value is None:
				continue
			sub_score = score_range(rule, value, **scales(rule))
			if sub_score is None:
				continue
			total_weight += weight
			total += weight * sub_score

		if total_weight <= 0:
			return 0.0
		return _clamp(total / total_weight)

	def _ph_scales(self, _rule: ValueRange) -> dict[str, float]:
		scale = self.config.ph_scale
		return {"optimal_scale": scale, "bounds_scale": scale, "one_sided_scale": scale}

	def _range_scales(self, rule: ValueRange) -> dict[str, float]:
		padding = self.config.range_padding
		optimal = _finite(rule.optimal)
		low, high = _finite(rule.min), _finite(rule.max)
		return {
			"optimal_scale": abs(optimal) + padding if optimal is not None else padding,
			"bounds_scale": abs(high - low) + padding if low is not None and high is not None else padding,
			"one_sided_scale": padding,
		}


def rank_recipes(
	field: FieldConditions,
	recipes: Iterable[Recipe | Mapping[str, Any]],
	scorer: CompatibilityScorer | None = None,
) -> list[tuple[Recipe, float]]:
	"""Score every recipe and sort best-first; ties keep the input order.

	Recipes are read leniently, so a document with unusable rules stays in the
	ranking with a score of 0 rather than being dropped.
	"""
	scorer = scorer or CompatibilityScorer()
	scored: list[tuple[Recipe, float]] = []
	for raw in recipes:
		recipe = raw if isinstance(raw, Recipe) else Recipe.model_validate(raw)
		scored.append((recipe, scorer.score(field, recipe)))
	return sorted(scored, key=lambda item: item[1], reverse=True)
