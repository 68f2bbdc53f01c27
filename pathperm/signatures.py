# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Callee signatures as seen by the permission analysis.

The analyzer never looks into a callee's body. A call site is checked purely
against the callee's signature:
  - a by-value parameter moves (or copies) its argument,
  - a `&T` / `&mut T` parameter borrows its argument for the call,
  - a reference-typed return value carries every loan of the call's reference
    arguments (the signature says "some input gets borrowed", not which one).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Mapping, Optional

from pathperm.core.types_core import TypeId, TypeTable


class SelfMode(Enum):
	"""How a method takes its receiver."""

	SELF_BY_VALUE = auto()
	SELF_BY_REF = auto()
	SELF_BY_REF_MUT = auto()

	@classmethod
	def parse(cls, raw: Optional[str]) -> Optional["SelfMode"]:
		if raw is None:
			return None
		try:
			return _SELF_MODE_NAMES[raw]
		except KeyError:
			raise ValueError(f"unknown receiver mode '{raw}'") from None


_SELF_MODE_NAMES = {
	"value": SelfMode.SELF_BY_VALUE,
	"ref": SelfMode.SELF_BY_REF,
	"ref_mut": SelfMode.SELF_BY_REF_MUT,
}


class PassMode(Enum):
	"""How one argument is handed to the callee."""

	VALUE = auto()
	SHARED = auto()
	UNIQUE = auto()


@dataclass(frozen=True)
class FnSignature:
	"""
	Parameter and return shape of a function or method.

	For methods, `param_types` excludes the receiver and `self_mode` is set.
	"""

	name: str
	param_types: tuple[TypeId, ...] = field(default_factory=tuple)
	return_type: Optional[TypeId] = None
	self_mode: Optional[SelfMode] = None

	def pass_mode(self, arg_index: int, table: TypeTable) -> PassMode:
		"""Pass mode for a positional argument; extra/unknown args go by value."""
		if arg_index >= len(self.param_types):
			return PassMode.VALUE
		td = table.get(self.param_types[arg_index])
		if td.ref_mut is True:
			return PassMode.UNIQUE
		if td.ref_mut is False:
			return PassMode.SHARED
		return PassMode.VALUE

	def returns_ref(self, table: TypeTable) -> bool:
		return table.is_ref(self.return_type)


SignatureMap = Mapping[str, FnSignature]


__all__ = ["SelfMode", "PassMode", "FnSignature", "SignatureMap"]
