#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Move tracking: use after move, partial moves, re-initialization, joins."""

from pathperm import stage0 as A
from pathperm.cfg_builder import AssignOp, CallOp, MoveOp, UseOp
from pathperm.core.diagnostics import ViolationKind
from pathperm.core.types_core import TypeTable
from pathperm.path_model import Perm, PlaceState
from pathperm.permission_pass import NOTE_BEHIND_REFERENCE
from pathperm.test_helpers import analyze, fn_decl, kinds, let, read, var


def test_move_then_use_reports_once():
	table = TypeTable()
	fn = fn_decl("f", [], [let("s", A.Literal("hi")), let("t", var("s")), read(var("s"))])
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]
	(v,) = res.violations
	assert v.path_text == "s"
	use = next(op for op in res.cfg.ops() if isinstance(op, UseOp))
	assert v.location == use.point


def test_each_use_after_move_is_its_own_report():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[let("s", A.Literal("hi")), let("t", var("s")), read(var("s")), read(var("s"))],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE, ViolationKind.USE_AFTER_MOVE]
	assert res.violations[0].location < res.violations[1].location


def test_copy_values_are_not_moved():
	table = TypeTable()
	fn = fn_decl("f", [], [let("n", A.Literal(1)), let("m", var("n")), read(var("n"))])
	assert analyze(fn, table).violations == []


def test_explicit_move_of_copy_value():
	table = TypeTable()
	fn = fn_decl("f", [], [let("n", A.Literal(1)), let("m", A.Move(var("n"))), read(var("n"))])
	assert kinds(analyze(fn, table)) == [ViolationKind.USE_AFTER_MOVE]


def test_move_in_one_branch_is_seen_after_join():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("s", A.Literal("hi")),
			A.If(cond=var("c"), then_block=A.Block([let("t", var("s"))]), else_block=A.Block([])),
			read(var("s")),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]


def test_move_in_other_branch_does_not_taint_sibling():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("s", A.Literal("hi")),
			A.If(
				cond=var("c"),
				then_block=A.Block([let("t", var("s"))]),
				else_block=A.Block([read(var("s"))]),
			),
		],
	)
	assert analyze(fn, table).violations == []


def test_move_inside_loop_is_reported_on_second_iteration():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("s", A.Literal("hi")),
			A.While(cond=var("c"), body=A.Block([let("t", var("s"))])),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]
	move = next(op for op in res.cfg.ops() if isinstance(op, MoveOp))
	assert res.violations[0].location == move.point


def test_partial_move_keeps_siblings_usable():
	table = TypeTable()
	s = table.ensure_string()
	pair = table.new_struct("Pair", {"a": s, "b": s})
	fn = fn_decl(
		"f",
		[A.Param("p", pair)],
		[
			let("x", A.Field(var("p"), "a")),
			read(A.Field(var("p"), "b")),
			read(var("p")),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]
	assert res.violations[0].path_text == "p"
	uses = [op for op in res.cfg.ops() if isinstance(op, UseOp)]
	assert res.permissions_at(uses[0].point, "p.b") == Perm.R | Perm.O
	assert res.permissions_at(uses[0].point, "p") == Perm.NONE
	assert res.permissions_at(uses[0].point, "p.a") == Perm.NONE
	assert res.state_at(uses[0].point, "p.a") is PlaceState.MOVED


def test_reassignment_reinitializes_moved_path():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("s", A.Literal("a"), mutable=True),
			let("t", var("s")),
			A.Assign(var("s"), A.Literal("b")),
			read(var("s")),
		],
	)
	assert analyze(fn, table).violations == []


def test_field_reassignment_restores_whole_value():
	table = TypeTable()
	s = table.ensure_string()
	pair = table.new_struct("Pair", {"a": s, "b": s})
	fn = fn_decl(
		"f",
		[A.Param("p", pair, mutable=True)],
		[
			let("x", A.Field(var("p"), "a")),
			A.Assign(A.Field(var("p"), "a"), A.Literal("new")),
			let("q", var("p")),
		],
	)
	assert analyze(fn, table).violations == []


def test_move_out_of_reference_is_rejected():
	table = TypeTable()
	s = table.ensure_string()
	fn = fn_decl("f", [A.Param("s_ref", table.ensure_ref(s))], [let("s", A.Deref(var("s_ref")))])
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]
	assert res.violations[0].note == NOTE_BEHIND_REFERENCE
	assert res.violations[0].path_text == "*s_ref"


def test_copy_out_of_reference_is_fine():
	table = TypeTable()
	fn = fn_decl("f", [A.Param("r", table.ensure_ref(table.ensure_int()))], [let("n", A.Deref(var("r")))])
	assert analyze(fn, table).violations == []


def test_call_without_signature_moves_its_arguments():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("s", A.Literal("a")),
			A.ExprStmt(A.Call("consume", [var("s")])),
			read(var("s")),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_AFTER_MOVE]
	call = next(op for op in res.cfg.ops() if isinstance(op, CallOp))
	assert res.violations[0].location > call.point


def test_use_of_uninitialized_binding():
	table = TypeTable()
	fn = fn_decl("f", [], [let("x", ty=table.ensure_int()), read(var("x"))])
	assert kinds(analyze(fn, table)) == [ViolationKind.USE_WITHOUT_READ]


def test_deferred_initialization_of_immutable_binding():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("x", ty=table.ensure_int()),
			A.Assign(var("x"), A.Literal(1)),
			read(var("x")),
			A.Assign(var("x"), A.Literal(2)),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	assert res.violations[0].path_text == "x"


def test_deferred_initialization_inside_loop_is_a_second_write():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("x", ty=table.ensure_int()),
			A.Loop(body=A.Block([A.Assign(var("x"), A.Literal(1)), read(var("x"))])),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	assert res.violations[0].path_text == "x"


def test_write_after_conditional_initialization():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("x", ty=table.ensure_int()),
			A.If(cond=var("c"), then_block=A.Block([A.Assign(var("x"), A.Literal(1))])),
			A.Assign(var("x"), A.Literal(2)),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	last_assign = [op for op in res.cfg.ops() if isinstance(op, AssignOp)][-1]
	assert res.violations[0].location == last_assign.point


def test_initialization_in_both_branches_is_fine():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("x", ty=table.ensure_int()),
			A.If(
				cond=var("c"),
				then_block=A.Block([A.Assign(var("x"), A.Literal(1))]),
				else_block=A.Block([A.Assign(var("x"), A.Literal(2))]),
			),
			read(var("x")),
		],
	)
	assert analyze(fn, table).violations == []


def test_write_to_immutable_binding():
	table = TypeTable()
	fn = fn_decl("f", [], [let("x", A.Literal(1)), A.Assign(var("x"), A.Literal(2))])
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	assert res.violations[0].conflicting_loan is None
