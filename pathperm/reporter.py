# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Diagnostic reporter: ordered, deduplicated, structured findings.

No message text is produced here; front ends format findings themselves from
the stable codes and the rendered paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from pathperm.core.diagnostics import Violation, ViolationKind
from pathperm.core.span import ProgramPoint, Span


@dataclass(frozen=True)
class Finding:
	"""One reported violation in a front-end friendly shape."""

	code: str
	kind: ViolationKind
	path: str
	point: ProgramPoint
	span: Span = field(default_factory=Span)
	loan: Optional[int] = None
	loan_created_at: Optional[ProgramPoint] = None
	note: Optional[str] = None

	@classmethod
	def from_violation(cls, v: Violation) -> "Finding":
		return cls(
			code=v.kind.code,
			kind=v.kind,
			path=v.path_text or v.path.render(),
			point=v.location,
			span=v.span,
			loan=v.conflicting_loan,
			loan_created_at=v.loan_created_at,
			note=v.note,
		)

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {
			"code": self.code,
			"path": self.path,
			"point": self.point.id,
			"block": self.point.block,
		}
		if self.span.known:
			out["span"] = {
				"file": self.span.file,
				"line": self.span.line,
				"column": self.span.column,
			}
		if self.loan is not None:
			out["loan"] = self.loan
		if self.loan_created_at is not None:
			out["loan_created_at"] = self.loan_created_at.id
		if self.note is not None:
			out["note"] = self.note
		return out


@dataclass
class BorrowReport:
	"""Findings of one function, in program-point order."""

	function: str = ""
	findings: List[Finding] = field(default_factory=list)

	def __len__(self) -> int:
		return len(self.findings)

	def __iter__(self):
		return iter(self.findings)

	@property
	def ok(self) -> bool:
		return not self.findings

	def codes(self) -> List[str]:
		return [f.code for f in self.findings]

	def by_kind(self) -> Dict[ViolationKind, List[Finding]]:
		grouped: Dict[ViolationKind, List[Finding]] = {}
		for f in self.findings:
			grouped.setdefault(f.kind, []).append(f)
		return grouped

	def to_dict(self) -> Dict[str, Any]:
		return {"function": self.function, "findings": [f.to_dict() for f in self.findings]}


def build_report(violations: Iterable[Violation], *, function: str = "") -> BorrowReport:
	"""
	Build a report from engine output.

	Order is preserved; a violation identical in (kind, path, location) to an
	earlier one is dropped.
	"""
	seen: Set[tuple] = set()
	findings: List[Finding] = []
	for v in violations:
		key = v.key()
		if key in seen:
			continue
		seen.add(key)
		findings.append(Finding.from_violation(v))
	return BorrowReport(function=function, findings=findings)


__all__ = ["Finding", "BorrowReport", "build_report"]
