#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Front door: run the permission analysis pipeline on one or more functions.

	FnDecl → build_cfg → track_loans → check_permissions → build_report

Each call allocates its own CFG, path arena and fixed-point state; nothing is
shared between analyses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from pathperm.cfg_builder import Cfg, build_cfg
from pathperm.core.diagnostics import InternalError, Violation
from pathperm.core.options import AnalyzerOptions
from pathperm.core.span import ProgramPoint
from pathperm.core.types_core import TypeTable
from pathperm.loan_tracker import LoanFacts, track_loans
from pathperm.path_model import PathId, Perm, Place, PlaceState
from pathperm.permission_pass import PermissionResult, check_permissions
from pathperm.reporter import BorrowReport, build_report
from pathperm.signatures import SignatureMap
from pathperm.stage0.ast import FnDecl

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
	"""Everything one analysis produced for a single function."""

	fn_name: str
	violations: List[Violation]
	report: BorrowReport
	cfg: Cfg
	loans: LoanFacts
	_permissions: PermissionResult = field(repr=False)

	@property
	def ok(self) -> bool:
		return not self.violations

	def path(self, text: str) -> Optional[PathId]:
		"""Look up an interned path by its rendering (`v[_]`, `(*r).f`)."""
		for pid in self.cfg.paths:
			if self.cfg.paths.render(pid) == text:
				return pid
		return None

	def permissions_at(self, point: Union[ProgramPoint, int], path: Union[PathId, Place, str]) -> Perm:
		return self._permissions.permissions_at(point, self._resolve(path))

	def state_at(self, point: Union[ProgramPoint, int], path: Union[PathId, Place, str]) -> PlaceState:
		return self._permissions.state_at(point, self._resolve(path))

	def _resolve(self, path: Union[PathId, Place, str]) -> Union[PathId, Place]:
		if isinstance(path, str):
			pid = self.path(path)
			if pid is None:
				raise KeyError(f"no path rendered as '{path}' in {self.fn_name}")
			return pid
		return path


def analyze_function(
	fn: FnDecl,
	*,
	type_table: TypeTable,
	signatures: Optional[SignatureMap] = None,
	options: Optional[AnalyzerOptions] = None,
) -> AnalysisResult:
	"""
	Analyze one function.

	Raises `InternalError` (`UnresolvedLabel`, `UndeclaredPath`,
	`NonConvergence`) for input the analysis cannot process; permission
	violations are returned, never raised.
	"""
	opts = options or AnalyzerOptions()
	cfg = build_cfg(fn, type_table, signatures, distinct_indices=opts.treat_index_as_distinct)
	logger.debug(
		"%s: %d blocks, %d ops, %d paths",
		fn.name,
		len(cfg.blocks),
		cfg.point_count,
		len(cfg.paths),
	)
	loans = track_loans(cfg, max_iterations=opts.max_iterations)
	perms = check_permissions(cfg, loans, max_iterations=opts.max_iterations)
	report = build_report(perms.violations, function=fn.name)
	return AnalysisResult(
		fn_name=fn.name,
		violations=perms.violations,
		report=report,
		cfg=cfg,
		loans=loans,
		_permissions=perms,
	)


@dataclass
class ModuleAnalysis:
	"""Per-function results; a function whose analysis failed has an error instead."""

	results: Dict[str, AnalysisResult] = field(default_factory=dict)
	errors: Dict[str, InternalError] = field(default_factory=dict)

	@property
	def ok(self) -> bool:
		return not self.errors and all(r.ok for r in self.results.values())

	def violations(self) -> Dict[str, List[Violation]]:
		return {name: r.violations for name, r in self.results.items()}


def analyze_functions(
	fns: Iterable[FnDecl],
	*,
	type_table: TypeTable,
	signatures: Optional[SignatureMap] = None,
	options: Optional[AnalyzerOptions] = None,
) -> ModuleAnalysis:
	"""Analyze functions independently; an internal error aborts only its own function."""
	out = ModuleAnalysis()
	for fn in fns:
		try:
			out.results[fn.name] = analyze_function(
				fn,
				type_table=type_table,
				signatures=signatures,
				options=options,
			)
		except InternalError as err:
			logger.debug("%s: analysis aborted: %s", fn.name, err)
			out.errors[fn.name] = err
	return out


__all__ = ["AnalysisResult", "ModuleAnalysis", "analyze_function", "analyze_functions"]
