#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""End-to-end scenarios through `analyze_function` / `analyze_functions`."""

import pytest

from pathperm import stage0 as A
from pathperm.analyzer import analyze_function, analyze_functions
from pathperm.cfg_builder import CallOp, ReturnOp
from pathperm.core.diagnostics import NonConvergence, UndeclaredPath, ViolationKind
from pathperm.core.options import AnalyzerOptions
from pathperm.core.types_core import TypeTable
from pathperm.path_model import Perm
from pathperm.test_helpers import analyze, fn_decl, kinds, let, read, var, vec_signatures


def _push_after_borrow(table: TypeTable) -> A.FnDecl:
	"""
	let mut v = vec![1, 2, 3];
	let first = &v[2];
	v.push(4);
	println!("{}", first);
	"""
	return fn_decl(
		"push_after_borrow",
		[],
		[
			let("v", A.ArrayLiteral([A.Literal(1), A.Literal(2), A.Literal(3)], is_vec=True), mutable=True),
			let("first", A.Borrow(A.Index(var("v"), A.Literal(2)))),
			A.ExprStmt(A.MethodCall(var("v"), "push", [A.Literal(4)])),
			read(A.Deref(var("first"))),
		],
	)


def test_push_while_element_borrowed():
	table = TypeTable()
	res = analyze(_push_after_borrow(table), table, vec_signatures(table, table.ensure_int()))
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	(v,) = res.violations
	call = next(op for op in res.cfg.ops() if isinstance(op, CallOp))
	assert v.location == call.point
	assert v.path_text == "v"
	assert v.conflicting_loan == 0
	assert res.permissions_at(call.point, "v") == Perm.R
	assert res.permissions_at(call.point, "v[_]") == Perm.R
	assert res.report.codes() == ["E_USE_WITHOUT_WRITE"]


def test_push_after_last_use_is_fine():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("v", A.ArrayLiteral([A.Literal(1)], is_vec=True), mutable=True),
			let("first", A.Borrow(A.Index(var("v"), A.Literal(0)))),
			read(A.Deref(var("first"))),
			A.ExprStmt(A.MethodCall(var("v"), "push", [A.Literal(4)])),
		],
	)
	assert analyze(fn, table, vec_signatures(table, table.ensure_int())).violations == []


def test_push_through_shared_reference_parameter():
	"""fn stringify(v: &Vec<String>) { v.push("!") }"""
	table = TypeTable()
	s = table.ensure_string()
	vec = table.new_vec(s)
	fn = fn_decl(
		"stringify",
		[A.Param("v", table.ensure_ref(vec))],
		[A.ExprStmt(A.MethodCall(var("v"), "push", [A.Literal("!")]))],
	)
	res = analyze(fn, table, vec_signatures(table, s))
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	assert res.violations[0].path_text == "*v"
	assert res.violations[0].conflicting_loan is None


def test_push_through_unique_reference_parameter():
	table = TypeTable()
	s = table.ensure_string()
	fn = fn_decl(
		"f",
		[A.Param("v", table.ensure_ref_mut(table.new_vec(s)))],
		[A.ExprStmt(A.MethodCall(var("v"), "push", [A.Literal("!")]))],
	)
	assert analyze(fn, table, vec_signatures(table, s)).violations == []


def test_ref_returning_method_keeps_receiver_borrowed():
	table = TypeTable()
	int_ty = table.ensure_int()
	fn = fn_decl(
		"get_first",
		[],
		[
			let("v", A.ArrayLiteral([A.Literal(1)], is_vec=True), mutable=True),
			let("x", A.MethodCall(var("v"), "first")),
			A.ExprStmt(A.MethodCall(var("v"), "push", [A.Literal(2)])),
			read(A.Deref(var("x"))),
		],
	)
	res = analyze(fn, table, vec_signatures(table, int_ty))
	assert kinds(res) == [ViolationKind.USE_WITHOUT_WRITE]
	push = [op for op in res.cfg.ops() if isinstance(op, CallOp)][-1]
	assert res.violations[0].location == push.point


def test_returning_reference_to_local():
	table = TypeTable()
	int_ty = table.ensure_int()
	fn = fn_decl("dangle", [], [let("x", A.Literal(1)), A.Return(A.Borrow(var("x")))], table.ensure_ref(int_ty))
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.DANGLING_REFERENCE]
	ret = next(op for op in res.cfg.ops() if isinstance(op, ReturnOp))
	assert res.violations[0].location == ret.point
	assert res.violations[0].path_text == "x"


def test_dangling_reference_reported_once_across_branches():
	table = TypeTable()
	s = table.ensure_string()
	fn = fn_decl(
		"dangle",
		[A.Param("c", table.ensure_bool())],
		[
			let("s", A.Literal("hi")),
			A.If(
				cond=var("c"),
				then_block=A.Block([A.Return(A.Borrow(var("s")))]),
				else_block=A.Block([A.Return(A.Borrow(var("s")))]),
			),
		],
		table.ensure_ref(s),
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.DANGLING_REFERENCE]


def test_returning_reborrow_of_parameter_is_fine():
	table = TypeTable()
	int_ty = table.ensure_int()
	point = table.new_struct("Point", {"x": int_ty, "y": int_ty})
	fn = fn_decl(
		"get_x",
		[A.Param("p", table.ensure_ref(point))],
		[A.Return(A.Borrow(A.Field(var("p"), "x")))],
		table.ensure_ref(int_ty),
	)
	assert analyze(fn, table).violations == []


def test_returning_borrow_of_by_value_parameter_dangles():
	table = TypeTable()
	int_ty = table.ensure_int()
	point = table.new_struct("Point", {"x": int_ty, "y": int_ty})
	fn = fn_decl(
		"get_x",
		[A.Param("p", point)],
		[A.Return(A.Borrow(A.Field(var("p"), "x")))],
		table.ensure_ref(int_ty),
	)
	res = analyze(fn, table)
	assert kinds(res) == [ViolationKind.DANGLING_REFERENCE]
	assert res.violations[0].path_text == "p.x"


def test_analysis_is_deterministic():
	table = TypeTable()
	sigs = vec_signatures(table, table.ensure_int())
	first = analyze(_push_after_borrow(table), table, sigs)
	second = analyze(_push_after_borrow(table), table, sigs)
	assert first.violations == second.violations
	assert first.report.to_dict() == second.report.to_dict()


def test_violations_are_in_program_point_order():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("x", A.Literal(1), mutable=True),
			let("a", A.Borrow(var("x"))),
			A.Assign(var("x"), A.Literal(2)),
			let("b", A.Borrow(var("x"), is_mut=True)),
			read(A.Deref(var("a"))),
			let("s", A.Literal("s")),
			let("t", var("s")),
			read(var("s")),
		],
	)
	res = analyze(fn, table)
	assert kinds(res) == [
		ViolationKind.USE_WITHOUT_WRITE,
		ViolationKind.CONFLICTING_LOAN,
		ViolationKind.USE_AFTER_MOVE,
	]
	ids = [v.location.id for v in res.violations]
	assert ids == sorted(ids)


def test_callers_type_table_is_not_written():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[],
		[
			let("v", A.ArrayLiteral([A.Literal(1)], is_vec=True), mutable=True),
			let("r", A.Borrow(var("v"))),
			read(A.Deref(var("r"))),
		],
	)
	res = analyze(fn, table)
	assert res.violations == []
	assert table._defs == {}
	assert res.cfg.type_table is not table
	r_ty = res.cfg.path_type(res.path("r"))
	assert res.cfg.type_table.is_ref(r_ty)


def test_functions_sharing_a_table_get_private_derived_types():
	table = TypeTable()
	s = table.ensure_string()
	before = dict(table._defs)
	fns = [
		fn_decl("a", [A.Param("x", s)], [let("r", A.Borrow(var("x"))), read(A.Deref(var("r")))]),
		fn_decl("b", [A.Param("x", s)], [let("m", A.Borrow(var("x"), is_mut=True))]),
	]
	out = analyze_functions(fns, type_table=table)
	assert table._defs == before
	assert out.results["a"].cfg.type_table is not out.results["b"].cfg.type_table


def test_internal_errors_are_isolated_per_function():
	table = TypeTable()
	bad = fn_decl("bad", [], [read(var("missing"))])
	good = fn_decl("good", [], [let("s", A.Literal("a")), let("t", var("s")), read(var("s"))])
	out = analyze_functions([bad, good], type_table=table)
	assert set(out.errors) == {"bad"}
	assert isinstance(out.errors["bad"], UndeclaredPath)
	assert [v.kind for v in out.results["good"].violations] == [ViolationKind.USE_AFTER_MOVE]
	assert not out.ok


def test_analyze_function_raises_internal_errors():
	table = TypeTable()
	with pytest.raises(UndeclaredPath):
		analyze_function(fn_decl("bad", [], [read(var("missing"))]), type_table=table)


def test_iteration_guard_from_options():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[A.While(cond=var("c"), body=A.Block([let("t", A.Literal(1))]))],
	)
	with pytest.raises(NonConvergence):
		analyze_function(fn, type_table=table, options=AnalyzerOptions(max_iterations=1))


def test_nested_loops_converge():
	table = TypeTable()
	fn = fn_decl(
		"f",
		[A.Param("c", table.ensure_bool())],
		[
			let("s", A.Literal("a"), mutable=True),
			A.While(
				cond=var("c"),
				label="outer",
				body=A.Block(
					[
						A.While(
							cond=var("c"),
							body=A.Block(
								[
									let("t", var("s")),
									A.Assign(var("s"), A.Literal("b")),
									A.If(cond=var("c"), then_block=A.Block([A.Break(label="outer")])),
								]
							),
						),
					]
				),
			),
			read(var("s")),
		],
	)
	assert analyze(fn, table).violations == []
