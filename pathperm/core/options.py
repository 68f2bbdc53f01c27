# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Analyzer configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class AnalyzerOptions:
	"""
	Knobs for one analysis run.

	treat_index_as_distinct:
	  When True, `v[0]` and `v[1]` (both statically constant) do not conflict.
	  Dynamic indices always conflict with every other index of the same array.
	max_iterations:
	  Override for the fixed-point guard. None means the computed bound
	  (blocks x lattice height).
	"""

	treat_index_as_distinct: bool = False
	max_iterations: Optional[int] = None

	# External (camelCase) option names accepted by `from_mapping`.
	_KEYS = {
		"treatIndexAsDistinct": "treat_index_as_distinct",
		"treat_index_as_distinct": "treat_index_as_distinct",
		"maxIterations": "max_iterations",
		"max_iterations": "max_iterations",
	}

	@classmethod
	def from_mapping(cls, raw: Mapping[str, Any] | None) -> "AnalyzerOptions":
		"""Build options from a caller-supplied mapping, rejecting unknown keys."""
		if not raw:
			return cls()
		kwargs: dict[str, Any] = {}
		for key, value in raw.items():
			attr = cls._KEYS.get(key)
			if attr is None:
				raise ValueError(f"unknown analyzer option '{key}'")
			kwargs[attr] = value
		if not isinstance(kwargs.get("treat_index_as_distinct", False), bool):
			raise ValueError("treatIndexAsDistinct must be a bool")
		limit = kwargs.get("max_iterations")
		if limit is not None and (not isinstance(limit, int) or limit <= 0):
			raise ValueError("maxIterations must be a positive int")
		return cls(**kwargs)


__all__ = ["AnalyzerOptions"]
