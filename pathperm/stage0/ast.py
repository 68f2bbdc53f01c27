# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Function-level AST consumed by the analyzer.

The external front end produces these nodes; the analyzer never parses text.
The AST is purely syntactic apart from the facts the permission analysis needs
and cannot infer on its own:
  - declared mutability of every binding (`let mut`, `mut` params),
  - declared types of params (and optionally of lets),
  - the reference kind of every borrow expression (`&` vs `&mut`).

`loc` fields default to an empty Span; a front end may also store its own
location objects there (see `Span.from_loc` for what is understood).

Pipeline placement:
  AST (this file) → CFG (cfg_builder) → loans (loan_tracker) → permissions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from pathperm.core.span import Span
from pathperm.core.types_core import TypeId


# Base classes

class Node:
	"""Base class for all AST nodes (minimal)."""
	pass


class Expr(Node):
	"""Base class for expressions."""
	pass


class Stmt(Node):
	"""Base class for statements."""
	pass


# Expressions

@dataclass
class Literal(Expr):
	"""Literal value. Strings are owned `String` values, not `&'static str`."""
	value: Union[int, str, bool, float]
	loc: Span = field(default_factory=Span)


@dataclass
class Name(Expr):
	"""Identifier reference (a binding in scope)."""
	ident: str
	loc: Span = field(default_factory=Span)


@dataclass
class Field(Expr):
	"""Field access `subject.name` (tuple fields use "0", "1", ...)."""
	subject: Expr
	name: str
	loc: Span = field(default_factory=Span)


@dataclass
class Index(Expr):
	"""Index access `subject[index]`."""
	subject: Expr
	index: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class Deref(Expr):
	"""Explicit dereference `*subject`."""
	subject: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class Borrow(Expr):
	"""Borrow `&subject` / `&mut subject`; the subject must be a place."""
	subject: Expr
	is_mut: bool = False
	loc: Span = field(default_factory=Span)


@dataclass
class Move(Expr):
	"""Explicit ownership transfer of a place, even when its type is Copy."""
	subject: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class Read(Expr):
	"""
	Non-consuming read of a place (formatting macros, comparisons through
	auto-ref). Needs R on the place and never moves it.
	"""
	subject: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class Call(Expr):
	"""Free function call; argument passing follows the callee signature."""
	func: str
	args: List[Expr] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass
class MethodCall(Expr):
	"""
	Method call with an explicit receiver.

	`self_mode` ("ref", "ref_mut", "value") overrides the signature lookup; when
	both are absent the receiver is treated as borrowed shared.
	"""
	receiver: Expr
	method: str
	args: List[Expr] = field(default_factory=list)
	self_mode: Optional[str] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Binary(Expr):
	"""Binary operation; both operands are evaluated by value."""
	op: str
	left: Expr
	right: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class StructInit(Expr):
	"""Struct (or tuple, with fields "0", "1", ...) construction."""
	name: str
	fields: List[tuple[str, Expr]] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass
class ArrayLiteral(Expr):
	"""`[a, b, c]` / `vec![a, b, c]` (set `is_vec` for the heap-owning form)."""
	elements: List[Expr] = field(default_factory=list)
	is_vec: bool = False
	loc: Span = field(default_factory=Span)


# Statements

@dataclass
class Block(Stmt):
	"""Braced statement list; introduces a scope."""
	statements: List[Stmt] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass
class Let(Stmt):
	"""`let [mut] name [: ty] [= value];`"""
	name: str
	value: Optional[Expr] = None
	mutable: bool = False
	declared_type: Optional[TypeId] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Assign(Stmt):
	"""`target = value;` where target is a place."""
	target: Expr
	value: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class ExprStmt(Stmt):
	"""Expression evaluated for its effects."""
	expr: Expr
	loc: Span = field(default_factory=Span)


@dataclass
class If(Stmt):
	cond: Expr
	then_block: Block
	else_block: Optional[Block] = None
	loc: Span = field(default_factory=Span)


@dataclass
class While(Stmt):
	cond: Expr
	body: Block
	label: Optional[str] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Loop(Stmt):
	"""Unconditional loop; exits only through `break`/`return`."""
	body: Block
	label: Optional[str] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Break(Stmt):
	label: Optional[str] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Continue(Stmt):
	label: Optional[str] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Return(Stmt):
	value: Optional[Expr] = None
	loc: Span = field(default_factory=Span)


# Declarations

@dataclass
class Param:
	"""Function parameter with its declared type."""
	name: str
	ty: TypeId
	mutable: bool = False
	loc: Span = field(default_factory=Span)


@dataclass
class FnDecl:
	"""One function: the unit of analysis."""
	name: str
	params: List[Param] = field(default_factory=list)
	body: Block = field(default_factory=Block)
	return_type: Optional[TypeId] = None
	loc: Span = field(default_factory=Span)


__all__ = [
	"Node",
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
