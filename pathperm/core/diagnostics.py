# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Violation records and the analyzer's error taxonomy.

Permission violations are ordinary results: the engine records a `Violation`
and keeps going. Malformed input and iteration-guard failures are exceptions
derived from `InternalError`; they abort the analysis of one function only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .span import ProgramPoint, Span

if TYPE_CHECKING:
	from pathperm.path_model import Place


class ViolationKind(Enum):
	"""The five permission-violation kinds; values are stable report codes."""

	USE_AFTER_MOVE = "E_USE_AFTER_MOVE"
	USE_WITHOUT_READ = "E_USE_WITHOUT_READ"
	USE_WITHOUT_WRITE = "E_USE_WITHOUT_WRITE"
	CONFLICTING_LOAN = "E_CONFLICTING_LOAN"
	DANGLING_REFERENCE = "E_DANGLING_REFERENCE"

	@property
	def code(self) -> str:
		return self.value


@dataclass(frozen=True)
class Violation:
	"""
	One rejected use of a path.

	`path` is the structural place involved and `path_text` its rendering
	(`(*r).name`, `v[_]`). `conflicting_loan` names the loan that removed the
	permission, when a loan is the cause.
	"""

	kind: ViolationKind
	path: "Place"
	location: ProgramPoint
	path_text: str = ""
	conflicting_loan: Optional[int] = None
	loan_created_at: Optional[ProgramPoint] = None
	span: Span = field(default_factory=Span)
	note: Optional[str] = None

	def key(self) -> tuple:
		"""Identity used for duplicate suppression: (kind, path, location)."""
		return (self.kind, self.path, self.location)


class InternalError(Exception):
	"""
	Fatal analysis failure for one function.

	Raised for malformed input and for invariant failures inside the fixed-point
	machinery. Never produced for ordinary permission violations.
	"""

	kind = "InternalError"

	def __init__(self, message: str, *, span: Any = None) -> None:
		super().__init__(message)
		self.span = Span.from_loc(span)


class UnresolvedLabel(InternalError):
	"""`break`/`continue` names a label with no enclosing loop."""

	kind = "UnresolvedLabel"

	def __init__(self, label: str, *, span: Span | None = None) -> None:
		super().__init__(f"no enclosing loop labeled '{label}'", span=span)
		self.label = label


class UndeclaredPath(InternalError):
	"""A path is rooted at a name that has no binding in scope."""

	kind = "UndeclaredPath"

	def __init__(self, name: str, *, span: Span | None = None) -> None:
		super().__init__(f"reference to undeclared binding '{name}'", span=span)
		self.name = name


class NonConvergence(InternalError):
	"""A fixed-point iteration exceeded its bound (blocks x lattice height)."""

	kind = "NonConvergence"

	def __init__(self, analysis: str, bound: int) -> None:
		super().__init__(f"{analysis} did not converge within {bound} block visits")
		self.analysis = analysis
		self.bound = bound


__all__ = [
	"ViolationKind",
	"Violation",
	"InternalError",
	"UnresolvedLabel",
	"UndeclaredPath",
	"NonConvergence",
]
