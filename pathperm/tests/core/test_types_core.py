#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Type core: Copy vs move-only, interning, projections."""

import pytest

from pathperm.core.types_core import TypeKind, TypeTable


def test_scalars_and_shared_refs_are_copy():
	table = TypeTable()
	int_ty = table.ensure_int()
	assert table.is_copy(int_ty)
	assert table.is_copy(table.ensure_bool())
	assert table.is_copy(table.ensure_ref(int_ty))
	assert not table.is_copy(table.ensure_ref_mut(int_ty))
	assert not table.is_copy(table.ensure_string())
	assert not table.is_copy(table.ensure_unknown())


def test_structural_types_are_interned():
	table = TypeTable()
	s = table.ensure_string()
	assert table.new_vec(s) == table.new_vec(s)
	assert table.ensure_ref(s) == table.new_ref(s, is_mut=False)
	assert table.ensure_ref(s) != table.ensure_ref_mut(s)
	assert table.get(table.ensure_ref_mut(s)).kind is TypeKind.REF


def test_struct_copy_requires_declaration_and_copy_fields():
	table = TypeTable()
	int_ty = table.ensure_int()
	point = table.new_struct("Point", {"x": int_ty, "y": int_ty}, copy=True)
	named = table.new_struct("Named", {"name": table.ensure_string()}, copy=True)
	plain = table.new_struct("Plain", {"x": int_ty})
	assert table.is_copy(point)
	assert not table.is_copy(named)
	assert not table.is_copy(plain)
	assert table.struct_named("Point") == point
	with pytest.raises(ValueError):
		table.new_struct("Point", {})


def test_tuples_copy_iff_elements_copy():
	table = TypeTable()
	int_ty = table.ensure_int()
	assert table.is_copy(table.new_tuple(int_ty, int_ty))
	assert not table.is_copy(table.new_tuple(int_ty, table.ensure_string()))
	assert table.field_type(table.new_tuple(int_ty, table.ensure_string()), "1") == table.ensure_string()


def test_may_hold_refs():
	table = TypeTable()
	int_ty = table.ensure_int()
	ref = table.ensure_ref(int_ty)
	assert not table.may_hold_refs(int_ty)
	assert not table.may_hold_refs(table.ensure_string())
	assert table.may_hold_refs(ref)
	assert table.may_hold_refs(table.new_vec(ref))
	assert table.may_hold_refs(table.new_struct("Holder", {"r": ref}))


def test_projections():
	table = TypeTable()
	int_ty = table.ensure_int()
	vec = table.new_vec(int_ty)
	boxed = table.new_box(vec)
	assert table.element_type(vec) == int_ty
	assert table.element_type(table.new_array(int_ty)) == int_ty
	assert table.element_type(table.ensure_string()) is None
	assert table.deref_target(boxed) == vec
	assert table.deref_target(table.ensure_ref(vec)) == vec
	assert table.deref_target(vec) is None
	assert table.owns_heap(boxed)
	assert not table.owns_heap(int_ty)


def test_fork_shares_ids_but_not_new_types():
	table = TypeTable()
	int_ty = table.ensure_int()
	point = table.new_struct("Point", {"x": int_ty})
	child = table.fork()
	assert child.ensure_int() == int_ty
	assert child.struct_named("Point") == point
	ref = child.ensure_ref(point)
	assert child.is_ref(ref)
	assert ref not in table._defs
