# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Stage 0 package: the function-level AST supplied by the front end.

Pipeline placement:
  stage0 (AST) → CFG → loans → permissions → report

Public API:
  - AST node classes consumed by the CFG builder
"""

from .ast import (
	Expr,
	Stmt,
	Literal,
	Name,
	Field,
	Index,
	Deref,
	Borrow,
	Move,
	Read,
	Call,
	MethodCall,
	Binary,
	StructInit,
	ArrayLiteral,
	Block,
	Let,
	Assign,
	ExprStmt,
	If,
	While,
	Loop,
	Break,
	Continue,
	Return,
	Param,
	FnDecl,
)

__all__ = [
	"Expr",
	"Stmt",
	"Literal",
	"Name",
	"Field",
	"Index",
	"Deref",
	"Borrow",
	"Move",
	"Read",
	"Call",
	"MethodCall",
	"Binary",
	"StructInit",
	"ArrayLiteral",
	"Block",
	"Let",
	"Assign",
	"ExprStmt",
	"If",
	"While",
	"Loop",
	"Break",
	"Continue",
	"Return",
	"Param",
	"FnDecl",
]
