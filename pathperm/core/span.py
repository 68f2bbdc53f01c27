# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Source spans and program points used by the analyzer and its diagnostics.

A Span can wrap whatever location object the front end provides via `raw`
while also carrying optional line/column info. A ProgramPoint is the analyzer's
own notion of location: the position of one primitive operation in the CFG.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (best-effort file/line/column plus raw parser loc)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = field(default=None, compare=False, hash=False)

	@classmethod
	def from_loc(cls, loc: Any) -> "Span":
		"""
		Normalize whatever location an AST node carries into a Span.

		Accepted: None, a Span (returned as is), a `(line, column)` pair, or any
		object with `line`/`column` or `lineno`/`col_offset` attributes (the
		latter as produced by Python's `ast`). The original object is kept in
		`raw`.
		"""
		if loc is None:
			return cls()
		if isinstance(loc, cls):
			return loc
		if isinstance(loc, tuple) and len(loc) == 2:
			return cls(line=loc[0], column=loc[1], raw=loc)
		line = getattr(loc, "line", None)
		if line is None:
			line = getattr(loc, "lineno", None)
		column = getattr(loc, "column", None)
		if column is None:
			column = getattr(loc, "col_offset", None)
		return cls(
			file=getattr(loc, "file", None),
			line=line,
			column=column,
			end_line=getattr(loc, "end_line", None) or getattr(loc, "end_lineno", None),
			end_column=getattr(loc, "end_column", None) or getattr(loc, "end_col_offset", None),
			raw=loc,
		)

	@property
	def known(self) -> bool:
		return self.line is not None


@dataclass(frozen=True, order=True)
class ProgramPoint:
	"""
	Position of one primitive operation.

	`id` is strictly increasing in emission order and gives a total order over
	all operations of a function; `block`/`index` locate the operation inside
	the CFG (the partial order comes from the CFG edges).
	"""

	id: int
	block: int = field(compare=False)
	index: int = field(compare=False)

	def __str__(self) -> str:
		return f"p{self.id}@bb{self.block}.{self.index}"


__all__ = ["Span", "ProgramPoint"]
