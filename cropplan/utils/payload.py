"""Helpers for shaping JSON payloads before they are stored or published."""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from enum import Enum
from typing import Any

_EMPTY = object()


def _prune(value: Any) -> Any:
	if value is None:
		return _EMPTY
	if isinstance(value, str):
		return value if value.strip() else _EMPTY
	if isinstance(value, Mapping):
		pruned = {}
		for key, item in value.items():
			kept = _prune(item)
			if kept is not _EMPTY:
				pruned[key] = kept
		return pruned or _EMPTY
	if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
		items = [kept for kept in (_prune(item) for item in value) if kept is not _EMPTY]
		return items or _EMPTY
	return value


def prune_empty(value: Any) -> Any:
	"""Recursively drop ``None``, blank strings, empty lists and empty dicts.

	``0`` and ``False`` are kept.  A value that prunes away entirely comes
	back as ``None`` for scalars and sequences, ``{}`` for mappings.
	"""
	pruned = _prune(value)
	if pruned is _EMPTY:
		return {} if isinstance(value, Mapping) else None
	return pruned


def to_jsonable(value: Any) -> Any:
	"""Convert ids, dates and enums nested in ``value`` to JSON primitives."""
	if isinstance(value, (datetime, date)):
		return value.isoformat()
	if isinstance(value, uuid.UUID):
		return str(value)
	if isinstance(value, Enum):
		return value.value
	if isinstance(value, Mapping):
		return {str(k): to_jsonable(v) for (k, v) in value.items()}
	if isinstance(value, set):
		return [to_jsonable(v) for v in sorted(value)]
	if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
		return [to_jsonable(v) for v in value]
	return value
