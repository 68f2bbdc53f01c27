# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Minimal type core for permission analysis.

The analyzer only needs to answer a few questions about a type: is it Copy (a
read duplicates the value instead of moving it), does it own heap data, what
are its fields/elements, and is it a shared or unique reference. TypeIds are
opaque ints indexing into a TypeTable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple


TypeId = int  # opaque handle into the TypeTable


class TypeKind(Enum):
	"""Kinds of types understood by the type core."""

	SCALAR = auto()   # Int, Bool, Float, char: Copy, no heap data
	OWNED = auto()    # String, Vec<T>, Box<T>: owns heap data
	STRUCT = auto()   # named fields (tuples use "0", "1", ...)
	ARRAY = auto()    # fixed-size array [T; N]
	REF = auto()      # &T / &mut T
	UNKNOWN = auto()


@dataclass(frozen=True)
class TypeDef:
	"""Definition of a type stored in the TypeTable."""

	kind: TypeKind
	name: str
	param_types: Tuple[TypeId, ...] = ()
	ref_mut: bool | None = None  # only meaningful for TypeKind.REF
	fields: Tuple[Tuple[str, TypeId], ...] = ()
	copy: bool = False  # only meaningful for TypeKind.STRUCT
	boxed: bool = False  # OWNED pointer whose deref inherits ownership (Box<T>)

	def field_type(self, name: str) -> Optional[TypeId]:
		for fname, fty in self.fields:
			if fname == name:
				return fty
		return None


class TypeTable:
	"""
	Simple type table that owns TypeIds.

	Structural types (references, arrays, Vec/Box) are interned so the same
	shape always yields the same TypeId.
	"""

	def __init__(self) -> None:
		self._defs: Dict[TypeId, TypeDef] = {}
		self._next_id: TypeId = 1  # reserve 0 for "invalid"
		self._interned: Dict[tuple, TypeId] = {}
		self._structs: Dict[str, TypeId] = {}

	def fork(self) -> "TypeTable":
		"""
		Return a private copy that shares every TypeId registered so far.

		Types derived while lowering one function (`&T` of a borrow, literal
		types) go into the fork, so the caller's table is never written.
		"""
		child = TypeTable()
		child._defs = dict(self._defs)
		child._next_id = self._next_id
		child._interned = dict(self._interned)
		child._structs = dict(self._structs)
		return child

	def new_scalar(self, name: str) -> TypeId:
		"""Register a scalar type (e.g., Int, Bool) and return its TypeId."""
		return self._intern(("scalar", name), TypeDef(kind=TypeKind.SCALAR, name=name))

	def ensure_int(self) -> TypeId:
		return self.new_scalar("Int")

	def ensure_bool(self) -> TypeId:
		return self.new_scalar("Bool")

	def ensure_float(self) -> TypeId:
		return self.new_scalar("Float")

	def ensure_string(self) -> TypeId:
		"""Return a stable heap-owning String TypeId, creating it once."""
		return self._intern(("owned", "String"), TypeDef(kind=TypeKind.OWNED, name="String"))

	def ensure_unknown(self) -> TypeId:
		"""Return a stable Unknown TypeId, creating it once."""
		return self._intern(("unknown",), TypeDef(kind=TypeKind.UNKNOWN, name="Unknown"))

	def new_vec(self, elem: TypeId) -> TypeId:
		"""Register a growable Vec<elem> (owns its heap buffer)."""
		return self._intern(("vec", elem), TypeDef(kind=TypeKind.OWNED, name="Vec", param_types=(elem,)))

	def new_box(self, inner: TypeId) -> TypeId:
		"""Register Box<inner>; `*b` keeps the ownership of `b`."""
		return self._intern(
			("box", inner),
			TypeDef(kind=TypeKind.OWNED, name="Box", param_types=(inner,), boxed=True),
		)

	def new_array(self, elem: TypeId) -> TypeId:
		"""Register a fixed-size array [elem; N] (length is irrelevant here)."""
		return self._intern(("array", elem), TypeDef(kind=TypeKind.ARRAY, name="Array", param_types=(elem,)))

	def new_ref(self, inner: TypeId, is_mut: bool) -> TypeId:
		"""Register a reference type to `inner` (mutable vs shared encoded in ref_mut/name)."""
		name = "RefMut" if is_mut else "Ref"
		return self._intern(
			("ref", inner, is_mut),
			TypeDef(kind=TypeKind.REF, name=name, param_types=(inner,), ref_mut=is_mut),
		)

	def ensure_ref(self, inner: TypeId) -> TypeId:
		return self.new_ref(inner, is_mut=False)

	def ensure_ref_mut(self, inner: TypeId) -> TypeId:
		return self.new_ref(inner, is_mut=True)

	def new_struct(self, name: str, fields: Dict[str, TypeId] | List[Tuple[str, TypeId]], *, copy: bool = False) -> TypeId:
		"""
		Register a named struct (or tuple, with fields "0", "1", ...).

		Structs are nominal: registering the same name twice is an error.
		A struct is Copy only when declared `copy=True` and every field is Copy.
		"""
		if name in self._structs:
			raise ValueError(f"struct '{name}' already registered")
		items = tuple(fields.items()) if isinstance(fields, dict) else tuple(fields)
		ty_id = self._add(TypeDef(kind=TypeKind.STRUCT, name=name, fields=items, copy=copy))
		self._structs[name] = ty_id
		return ty_id

	def new_tuple(self, *elems: TypeId) -> TypeId:
		"""Register an anonymous tuple; Copy iff all elements are Copy."""
		items = tuple((str(i), ty) for i, ty in enumerate(elems))
		copy = all(self.is_copy(ty) for ty in elems)
		return self._intern(("tuple", elems), TypeDef(kind=TypeKind.STRUCT, name="Tuple", fields=items, copy=copy))

	def struct_named(self, name: str) -> Optional[TypeId]:
		return self._structs.get(name)

	def get(self, ty: TypeId) -> TypeDef:
		"""Fetch the TypeDef for a given TypeId."""
		return self._defs[ty]

	def is_copy(self, ty: Optional[TypeId]) -> bool:
		"""
		Return True if values of `ty` are duplicated by a read instead of moved.

		Scalars and shared references are Copy. Unique references are not (two
		live `&mut` to the same data must never exist). Unknown types are
		conservatively move-only.
		"""
		if ty is None:
			return False
		td = self.get(ty)
		if td.kind is TypeKind.SCALAR:
			return True
		if td.kind is TypeKind.REF:
			return td.ref_mut is False
		if td.kind is TypeKind.ARRAY:
			return self.is_copy(td.param_types[0])
		if td.kind is TypeKind.STRUCT:
			return td.copy and all(self.is_copy(fty) for _, fty in td.fields)
		return False

	def owns_heap(self, ty: Optional[TypeId]) -> bool:
		"""Return True if dropping a value of `ty` may free heap data."""
		if ty is None:
			return True
		td = self.get(ty)
		if td.kind in (TypeKind.OWNED, TypeKind.UNKNOWN):
			return True
		if td.kind is TypeKind.ARRAY:
			return self.owns_heap(td.param_types[0])
		if td.kind is TypeKind.STRUCT:
			return any(self.owns_heap(fty) for _, fty in td.fields)
		return False

	def may_hold_refs(self, ty: Optional[TypeId]) -> bool:
		"""
		Return True if a value of `ty` can carry a reference (and so a loan).

		Copying an Int out of `*r` must not extend the loan behind `r`; copying
		`r` itself (or a struct holding it) must.
		"""
		if ty is None:
			return True
		td = self.get(ty)
		if td.kind in (TypeKind.REF, TypeKind.UNKNOWN):
			return True
		if td.kind is TypeKind.STRUCT:
			return any(self.may_hold_refs(fty) for _, fty in td.fields)
		if td.param_types and td.kind in (TypeKind.ARRAY, TypeKind.OWNED):
			return self.may_hold_refs(td.param_types[0])
		return False

	def is_ref(self, ty: Optional[TypeId]) -> bool:
		return ty is not None and self.get(ty).kind is TypeKind.REF

	def field_type(self, ty: Optional[TypeId], name: str) -> Optional[TypeId]:
		if ty is None:
			return None
		td = self.get(ty)
		if td.kind is not TypeKind.STRUCT:
			return None
		return td.field_type(name)

	def element_type(self, ty: Optional[TypeId]) -> Optional[TypeId]:
		"""Element type for arrays and Vec; None for everything else."""
		if ty is None:
			return None
		td = self.get(ty)
		if td.kind is TypeKind.ARRAY or (td.kind is TypeKind.OWNED and td.name == "Vec"):
			return td.param_types[0]
		return None

	def deref_target(self, ty: Optional[TypeId]) -> Optional[TypeId]:
		if ty is None:
			return None
		td = self.get(ty)
		if td.kind is TypeKind.REF or td.boxed:
			return td.param_types[0]
		return None

	def _intern(self, key: tuple, td: TypeDef) -> TypeId:
		existing = self._interned.get(key)
		if existing is not None:
			return existing
		ty_id = self._add(td)
		self._interned[key] = ty_id
		return ty_id

	def _add(self, td: TypeDef) -> TypeId:
		ty_id = self._next_id
		self._next_id += 1
		self._defs[ty_id] = td
		return ty_id


__all__ = ["TypeId", "TypeKind", "TypeDef", "TypeTable"]
