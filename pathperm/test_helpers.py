# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import Dict, List, Optional

from pathperm import stage0 as A
from pathperm.analyzer import AnalysisResult, analyze_function
from pathperm.core.diagnostics import ViolationKind
from pathperm.core.options import AnalyzerOptions
from pathperm.core.types_core import TypeId, TypeTable
from pathperm.signatures import FnSignature, SelfMode


def var(name: str) -> A.Name:
	return A.Name(ident=name)


def let(name: str, value: Optional[A.Expr] = None, *, mutable: bool = False, ty: Optional[TypeId] = None) -> A.Let:
	return A.Let(name=name, value=value, mutable=mutable, declared_type=ty)


def read(expr: A.Expr) -> A.ExprStmt:
	"""`println!("{}", expr)`-style non-consuming read as a statement."""
	return A.ExprStmt(expr=A.Read(subject=expr))


def fn_decl(name: str, params: List[A.Param], statements: List[A.Stmt], return_type: Optional[TypeId] = None) -> A.FnDecl:
	return A.FnDecl(name=name, params=params, body=A.Block(statements=statements), return_type=return_type)


def vec_signatures(table: TypeTable, elem: TypeId) -> Dict[str, FnSignature]:
	"""
	Shared helper for tests: the handful of Vec methods/functions the scenarios use.

	- `push(&mut self, elem)`, `len(&self) -> Int`
	- `first(&self) -> &elem` (result keeps the receiver borrowed)
	"""
	return {
		"push": FnSignature(name="push", param_types=(elem,), return_type=None, self_mode=SelfMode.SELF_BY_REF_MUT),
		"len": FnSignature(name="len", param_types=(), return_type=table.ensure_int(), self_mode=SelfMode.SELF_BY_REF),
		"first": FnSignature(
			name="first",
			param_types=(),
			return_type=table.ensure_ref(elem),
			self_mode=SelfMode.SELF_BY_REF,
		),
	}


def analyze(
	fn: A.FnDecl,
	table: TypeTable,
	signatures: Optional[Dict[str, FnSignature]] = None,
	**options,
) -> AnalysisResult:
	"""Run the analyzer with options given as keyword arguments."""
	return analyze_function(
		fn,
		type_table=table,
		signatures=signatures,
		options=AnalyzerOptions(**options),
	)


def kinds(result: AnalysisResult) -> List[ViolationKind]:
	return [v.kind for v in result.violations]
