#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
CFG builder: lowers a function AST into basic blocks of primitive operations.

Every expression that reads, writes, moves or borrows a path becomes its own
operation with a strictly increasing program-point id. Later passes get a total
order inside a block and a partial order across the graph.

Lowering rules:
- A path in value position is a `use` (Copy type) or a `move` (everything
  else). `Read(e)` never moves; `Move(e)` always does.
- A borrow expression becomes a `borrow` into a fresh temporary holder root;
  whoever consumes the value (a `bind`, `assign`, `call` or `return`) lists
  that holder among its sources, which is how loans flow between bindings.
- Call arguments follow the callee signature (value / `&` / `&mut`). A method
  receiver taken by reference is an access requirement on the `call` op; it is
  materialized as a real loan only when the call returns a reference.
- Leaving a nested scope emits `drop` for the bindings it declared. Code after
  `return`/`break`/`continue` lands in a detached block that is never reached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Mapping, NamedTuple, Optional, Set, Tuple

from pathperm import stage0 as A
from pathperm.core.diagnostics import InternalError, UndeclaredPath, UnresolvedLabel
from pathperm.core.span import ProgramPoint, Span
from pathperm.core.types_core import TypeId, TypeTable
from pathperm.path_model import (
	DerefProj,
	FieldProj,
	IndexKind,
	IndexProj,
	PathId,
	PathTable,
	Perm,
	Place,
	PlaceBase,
	PlaceKind,
)
from pathperm.signatures import FnSignature, PassMode, SelfMode, SignatureMap


class LoanKind(Enum):
	"""Kinds of borrows: `&` and `&mut`."""

	SHARED = auto()
	UNIQUE = auto()


# Primitive operations

@dataclass(frozen=True)
class Op:
	"""Base class for primitive operations; `point` is assigned on emission."""

	point: ProgramPoint
	span: Span


@dataclass(frozen=True)
class BindOp(Op):
	"""Declare `root`; initialized bindings take their loans from `sources`."""

	root: PathId
	initialized: bool
	sources: Tuple[PathId, ...] = ()
	is_param: bool = False


@dataclass(frozen=True)
class AssignOp(Op):
	"""Overwrite `path` with a value built from `sources`."""

	path: PathId
	sources: Tuple[PathId, ...] = ()


@dataclass(frozen=True)
class MoveOp(Op):
	path: PathId


@dataclass(frozen=True)
class UseOp(Op):
	"""Read (or copy out of) `path`."""

	path: PathId


@dataclass(frozen=True)
class BorrowOp(Op):
	"""Borrow `path`; the new reference is held by the temporary root `holder`."""

	path: PathId
	kind: LoanKind
	holder: PathId
	reborrow_of: Optional[PathId] = None  # root of a reference the borrow goes through


@dataclass(frozen=True)
class CallOp(Op):
	"""
	Call `callee`.

	`receiver`/`receiver_access` describe an auto-borrowed method receiver that
	did not become a loan (R for `&self`, R+W for `&mut self`). `operands` are
	the argument value sources consumed by the call.
	"""

	callee: str
	receiver: Optional[PathId] = None
	receiver_access: Perm = Perm.NONE
	operands: Tuple[PathId, ...] = ()


@dataclass(frozen=True)
class DropOp(Op):
	"""Scope exit of a binding."""

	root: PathId


@dataclass(frozen=True)
class ReturnOp(Op):
	sources: Tuple[PathId, ...] = ()


@dataclass
class Terminator:
	"""CFG terminator describing control-flow edges out of a basic block."""

	kind: str  # "jump", "branch", "return"
	targets: List[int]


@dataclass
class BasicBlock:
	"""Basic block of primitive operations with a single terminator."""

	id: int
	ops: List[Op] = field(default_factory=list)
	terminator: Optional[Terminator] = None


@dataclass(frozen=True)
class Binding:
	"""A declared root: local, parameter, or borrow temporary."""

	root: PathId
	base: PlaceBase
	ty: Optional[TypeId]
	mutable: bool

	@property
	def kind(self) -> PlaceKind:
		return self.base.kind


@dataclass
class Cfg:
	"""Control-flow graph of one function plus its path arena and bindings."""

	fn_name: str
	blocks: List[BasicBlock]
	entry: int
	paths: PathTable
	type_table: TypeTable
	bindings: Dict[PathId, Binding] = field(default_factory=dict)
	path_types: Dict[PathId, Optional[TypeId]] = field(default_factory=dict)
	point_count: int = 0

	def successors(self, block_id: int) -> List[int]:
		term = self.blocks[block_id].terminator
		return list(term.targets) if term is not None else []

	def predecessors(self) -> Dict[int, List[int]]:
		preds: Dict[int, List[int]] = {blk.id: [] for blk in self.blocks}
		for blk in self.blocks:
			for succ in self.successors(blk.id):
				preds[succ].append(blk.id)
		return preds

	def reachable(self) -> Set[int]:
		"""Blocks reachable from the entry (explicit worklist)."""
		seen: Set[int] = set()
		stack = [self.entry]
		while stack:
			bid = stack.pop()
			if bid in seen:
				continue
			seen.add(bid)
			stack.extend(s for s in self.successors(bid) if s not in seen)
		return seen

	def reverse_postorder(self) -> List[int]:
		"""Reachable blocks in reverse post-order (iterative DFS)."""
		order: List[int] = []
		seen: Set[int] = {self.entry}
		stack: List[Tuple[int, Iterator[int]]] = [(self.entry, iter(self.successors(self.entry)))]
		while stack:
			bid, succs = stack[-1]
			for succ in succs:
				if succ not in seen:
					seen.add(succ)
					stack.append((succ, iter(self.successors(succ))))
					break
			else:
				stack.pop()
				order.append(bid)
		order.reverse()
		return order

	@property
	def exits(self) -> List[int]:
		live = self.reachable()
		return [
			blk.id
			for blk in self.blocks
			if blk.id in live and blk.terminator is not None and blk.terminator.kind == "return"
		]

	def ops(self) -> Iterator[Op]:
		"""All operations in program-point order."""
		all_ops = [op for blk in self.blocks for op in blk.ops]
		all_ops.sort(key=lambda op: op.point.id)
		return iter(all_ops)

	def path_type(self, pid: PathId) -> Optional[TypeId]:
		return self.path_types.get(pid)


class _Value(NamedTuple):
	"""Result of lowering an expression: loan-carrying sources and its type."""

	sources: Tuple[PathId, ...]
	ty: Optional[TypeId]


@dataclass
class _LoopCtx:
	label: Optional[str]
	header: int
	exit: int
	scope_depth: int


@dataclass
class _Scope:
	names: Dict[str, PathId] = field(default_factory=dict)
	declared: List[PathId] = field(default_factory=list)


_COMPARISON_OPS = {"==", "!=", "<", "<=", ">", ">=", "&&", "||"}


class CfgBuilder:
	"""
	Structured-control-flow lowering of one `FnDecl`.

	A builder instance is single use: `build()` allocates a fresh CFG and path
	arena, and derived types go into a fork of the caller's type table, so
	concurrent analyses never share state.
	"""

	def __init__(
		self,
		type_table: TypeTable,
		signatures: Optional[SignatureMap] = None,
		*,
		distinct_indices: bool = False,
	) -> None:
		self.type_table = type_table.fork()
		self.signatures: Mapping[str, FnSignature] = signatures or {}
		self.paths = PathTable(distinct_indices=distinct_indices)
		self.blocks: List[BasicBlock] = []
		self.bindings: Dict[PathId, Binding] = {}
		self.path_types: Dict[PathId, Optional[TypeId]] = {}
		self._scopes: List[_Scope] = []
		self._loop_stack: List[_LoopCtx] = []
		self._current: Optional[BasicBlock] = None
		self._next_point = 0
		self._next_local = 0
		self._next_temp = 0

	# ---- entry point ----

	def build(self, fn: A.FnDecl) -> Cfg:
		entry = self._new_block()
		self._current = entry
		self._scopes.append(_Scope())
		for param in fn.params:
			root = self._declare(param.name, param.ty, param.mutable, PlaceKind.PARAM)
			self._emit(BindOp, param.loc, root=root, initialized=True, is_param=True)
		# The body shares the parameter scope; no drops are emitted at function exit.
		for stmt in fn.body.statements:
			self._lower_stmt(stmt)
		if self._is_open():
			self._emit(ReturnOp, fn.loc, sources=())
			self._terminate("return", [])
		# Detached blocks created after return/break/continue still need a terminator.
		for blk in self.blocks:
			if blk.terminator is None:
				blk.terminator = Terminator(kind="return", targets=[])
		self._scopes.pop()
		return Cfg(
			fn_name=fn.name,
			blocks=self.blocks,
			entry=entry.id,
			paths=self.paths,
			type_table=self.type_table,
			bindings=self.bindings,
			path_types=self.path_types,
			point_count=self._next_point,
		)

	# ---- blocks / emission ----

	def _new_block(self) -> BasicBlock:
		bb = BasicBlock(id=len(self.blocks))
		self.blocks.append(bb)
		return bb

	def _is_open(self) -> bool:
		return self._current is not None and self._current.terminator is None

	def _terminate(self, kind: str, targets: List[int]) -> None:
		assert self._current is not None
		if self._current.terminator is None:
			self._current.terminator = Terminator(kind=kind, targets=targets)

	def _switch_to(self, bb: BasicBlock) -> None:
		self._current = bb

	def _detach(self) -> None:
		"""Continue lowering into an unreachable block (dead code after a jump)."""
		self._current = self._new_block()

	def _emit(self, op_cls, loc: Any, **kwargs) -> Op:
		assert self._current is not None
		if self._current.terminator is not None:
			self._detach()
		point = ProgramPoint(self._next_point, self._current.id, len(self._current.ops))
		self._next_point += 1
		op = op_cls(point=point, span=Span.from_loc(loc), **kwargs)
		self._current.ops.append(op)
		return op

	# ---- bindings / paths ----

	def _declare(self, name: str, ty: Optional[TypeId], mutable: bool, kind: PlaceKind) -> PathId:
		base = PlaceBase(kind, self._next_local, name)
		self._next_local += 1
		root = self.paths.intern(Place(base))
		self.path_types[root] = ty
		self.bindings[root] = Binding(root=root, base=base, ty=ty, mutable=mutable)
		if kind is not PlaceKind.TEMP:
			scope = self._scopes[-1]
			scope.names[name] = root
			scope.declared.append(root)
		return root

	def _new_temp(self, ty: Optional[TypeId]) -> PathId:
		name = f"%t{self._next_temp}"
		self._next_temp += 1
		return self._declare(name, ty, False, PlaceKind.TEMP)

	def _lookup(self, name: str, span: Span) -> PathId:
		for scope in reversed(self._scopes):
			root = scope.names.get(name)
			if root is not None:
				return root
		raise UndeclaredPath(name, span=span)

	def _project(self, base: PathId, proj) -> PathId:
		pid = self.paths.intern(self.paths.place(base).with_projection(proj))
		if pid not in self.path_types:
			base_ty = self.path_types.get(base)
			if isinstance(proj, DerefProj):
				ty = self.type_table.deref_target(base_ty)
			elif isinstance(proj, FieldProj):
				ty = self.type_table.field_type(base_ty, proj.name)
			else:
				ty = self.type_table.element_type(base_ty)
			self.path_types[pid] = ty
		return pid

	def _auto_deref(self, pid: PathId) -> PathId:
		"""Field/index access through a reference goes through `*`."""
		while self.type_table.is_ref(self.path_types.get(pid)):
			pid = self._project(pid, DerefProj())
		return pid

	def _place_of(self, expr: A.Expr) -> Optional[PathId]:
		"""
		Resolve a place expression to its PathId; None for rvalues.

		Index operands are lowered (read) here, before the access itself.
		"""
		if isinstance(expr, A.Name):
			return self._lookup(expr.ident, expr.loc)
		if isinstance(expr, A.Field):
			base = self._place_of(expr.subject)
			if base is None:
				return None
			return self._project(self._auto_deref(base), FieldProj(expr.name))
		if isinstance(expr, A.Index):
			base = self._place_of(expr.subject)
			if base is None:
				return None
			base = self._auto_deref(base)
			const_val: Optional[int] = None
			if isinstance(expr.index, A.Literal) and type(expr.index.value) is int:
				const_val = expr.index.value
			else:
				self._lower_value(expr.index)
			if const_val is None:
				proj = IndexProj(kind=IndexKind.ANY)
			else:
				proj = IndexProj(kind=IndexKind.CONST, value=const_val)
			return self._project(base, proj)
		if isinstance(expr, A.Deref):
			base = self._place_of(expr.subject)
			if base is None:
				return None
			return self._project(base, DerefProj())
		return None

	def _value_sources(self, pid: PathId) -> Tuple[PathId, ...]:
		if self.type_table.may_hold_refs(self.path_types.get(pid)):
			return (self.paths.root_of(pid),)
		return ()

	# ---- expressions ----

	def _lower_value(self, expr: A.Expr) -> _Value:
		"""Lower an expression in value position."""
		tt = self.type_table
		if isinstance(expr, A.Literal):
			return _Value((), self._literal_type(expr.value))
		if isinstance(expr, (A.Name, A.Field, A.Index, A.Deref)):
			pid = self._place_of(expr)
			if pid is None:
				# Projection of a temporary (`f().x`): only the base value is observable.
				return _Value(self._lower_value(expr.subject).sources, None)
			ty = self.path_types.get(pid)
			if tt.is_copy(ty):
				self._emit(UseOp, expr.loc, path=pid)
			else:
				self._emit(MoveOp, expr.loc, path=pid)
			return _Value(self._value_sources(pid), ty)
		if isinstance(expr, A.Move):
			pid = self._require_place(expr.subject, "move operand")
			self._emit(MoveOp, expr.loc, path=pid)
			return _Value(self._value_sources(pid), self.path_types.get(pid))
		if isinstance(expr, A.Read):
			pid = self._place_of(expr.subject)
			if pid is None:
				value = self._lower_value(expr.subject)
				return _Value((), value.ty)
			self._emit(UseOp, expr.loc, path=pid)
			return _Value((), self.path_types.get(pid))
		if isinstance(expr, A.Borrow):
			return self._lower_borrow(expr.subject, LoanKind.UNIQUE if expr.is_mut else LoanKind.SHARED, expr.loc)
		if isinstance(expr, A.Call):
			return self._lower_call(expr)
		if isinstance(expr, A.MethodCall):
			return self._lower_method_call(expr)
		if isinstance(expr, A.Binary):
			left = self._lower_value(expr.left)
			right = self._lower_value(expr.right)
			ty = tt.ensure_bool() if expr.op in _COMPARISON_OPS else left.ty
			return _Value(left.sources + right.sources, ty)
		if isinstance(expr, A.StructInit):
			sources: Tuple[PathId, ...] = ()
			for _, fexpr in expr.fields:
				sources += self._lower_value(fexpr).sources
			ty = tt.struct_named(expr.name)
			return _Value(sources, ty if ty is not None else tt.ensure_unknown())
		if isinstance(expr, A.ArrayLiteral):
			sources = ()
			elem_ty: Optional[TypeId] = None
			for el in expr.elements:
				value = self._lower_value(el)
				sources += value.sources
				if elem_ty is None:
					elem_ty = value.ty
			if elem_ty is None:
				elem_ty = tt.ensure_unknown()
			return _Value(sources, tt.new_vec(elem_ty) if expr.is_vec else tt.new_array(elem_ty))
		raise InternalError(f"unsupported expression node {type(expr).__name__}", span=getattr(expr, "loc", None))

	def _literal_type(self, value) -> TypeId:
		tt = self.type_table
		if isinstance(value, bool):
			return tt.ensure_bool()
		if isinstance(value, int):
			return tt.ensure_int()
		if isinstance(value, float):
			return tt.ensure_float()
		return tt.ensure_string()

	def _require_place(self, expr: A.Expr, what: str) -> PathId:
		pid = self._place_of(expr)
		if pid is None:
			raise InternalError(f"{what} must be an addressable place", span=getattr(expr, "loc", None))
		return pid

	def _lower_borrow(self, subject: A.Expr, kind: LoanKind, span: Span) -> _Value:
		pid = self._place_of(subject)
		if pid is None:
			# Borrowing an rvalue materializes a temporary that owns the value.
			value = self._lower_value(subject)
			pid = self._new_temp(value.ty)
			self._emit(BindOp, span, root=pid, initialized=True, sources=value.sources)
		return self._borrow_place(pid, kind, span)

	def _borrow_place(self, pid: PathId, kind: LoanKind, span: Span) -> _Value:
		target_ty = self.path_types.get(pid)
		ref_ty = self.type_table.new_ref(target_ty, kind is LoanKind.UNIQUE) if target_ty is not None else None
		holder = self._new_temp(ref_ty)
		reborrow_of = self._reborrowed_root(pid)
		self._emit(BorrowOp, span, path=pid, kind=kind, holder=holder, reborrow_of=reborrow_of)
		return _Value((holder,), ref_ty)

	def _reborrowed_root(self, pid: PathId) -> Optional[PathId]:
		"""Root of the reference a borrow goes through (`&(*r).f` reborrows `r`)."""
		place = self.paths.place(pid)
		if any(isinstance(p, DerefProj) for p in place.projections):
			return self.paths.root_of(pid)
		return None

	def _lower_arg(self, arg: A.Expr, mode: PassMode) -> Tuple[PathId, ...]:
		if mode is not PassMode.VALUE and not isinstance(arg, A.Borrow):
			pid = self._place_of(arg)
			span = getattr(arg, "loc", Span())
			if pid is not None and not self.type_table.is_ref(self.path_types.get(pid)):
				kind = LoanKind.UNIQUE if mode is PassMode.UNIQUE else LoanKind.SHARED
				return self._borrow_place(pid, kind, span).sources
			if pid is not None:
				# Passing an existing reference: `&T` is copied, `&mut T` is implicitly reborrowed.
				if self.type_table.is_copy(self.path_types.get(pid)):
					self._emit(UseOp, span, path=pid)
					return self._value_sources(pid)
				kind = LoanKind.UNIQUE if mode is PassMode.UNIQUE else LoanKind.SHARED
				return self._borrow_place(self._project(pid, DerefProj()), kind, span).sources
			if not isinstance(arg, (A.Name, A.Field, A.Index, A.Deref)):
				# Auto-borrow of an rvalue argument.
				kind = LoanKind.UNIQUE if mode is PassMode.UNIQUE else LoanKind.SHARED
				return self._lower_borrow(arg, kind, span).sources
		return self._lower_value(arg).sources

	def _lower_args(self, sig: Optional[FnSignature], args: List[A.Expr]) -> Tuple[PathId, ...]:
		sources: Tuple[PathId, ...] = ()
		for idx, arg in enumerate(args):
			mode = sig.pass_mode(idx, self.type_table) if sig is not None else PassMode.VALUE
			sources += self._lower_arg(arg, mode)
		return sources

	def _call_result(self, sig: Optional[FnSignature], sources: Tuple[PathId, ...]) -> _Value:
		if sig is None:
			return _Value((), self.type_table.ensure_unknown())
		if sig.returns_ref(self.type_table):
			return _Value(sources, sig.return_type)
		return _Value((), sig.return_type)

	def _lower_call(self, expr: A.Call) -> _Value:
		sig = self.signatures.get(expr.func)
		sources = self._lower_args(sig, expr.args)
		self._emit(CallOp, expr.loc, callee=expr.func, operands=sources)
		return self._call_result(sig, sources)

	def _lower_method_call(self, expr: A.MethodCall) -> _Value:
		sig = self.signatures.get(expr.method)
		mode = SelfMode.parse(expr.self_mode)
		if mode is None:
			mode = sig.self_mode if sig is not None and sig.self_mode is not None else SelfMode.SELF_BY_REF
		returns_ref = sig is not None and sig.returns_ref(self.type_table)

		receiver: Optional[PathId] = None
		access = Perm.NONE
		sources: Tuple[PathId, ...] = ()
		if mode is SelfMode.SELF_BY_VALUE:
			sources += self._lower_value(expr.receiver).sources
		else:
			pid = self._place_of(expr.receiver)
			kind = LoanKind.UNIQUE if mode is SelfMode.SELF_BY_REF_MUT else LoanKind.SHARED
			if pid is None:
				sources += self._lower_borrow(expr.receiver, kind, expr.loc).sources
			else:
				pid = self._auto_deref(pid)
				if returns_ref:
					sources += self._borrow_place(pid, kind, expr.loc).sources
				else:
					receiver = pid
					access = Perm.R | Perm.W if kind is LoanKind.UNIQUE else Perm.R
		sources += self._lower_args(sig, expr.args)
		self._emit(
			CallOp,
			expr.loc,
			callee=expr.method,
			receiver=receiver,
			receiver_access=access,
			operands=sources,
		)
		return self._call_result(sig, sources)

	# ---- statements ----

	def _lower_block(self, block: A.Block) -> None:
		self._scopes.append(_Scope())
		for stmt in block.statements:
			self._lower_stmt(stmt)
		scope = self._scopes.pop()
		if self._is_open():
			self._emit_drops([scope])

	def _emit_drops(self, scopes: List[_Scope]) -> None:
		for scope in reversed(scopes):
			for root in reversed(scope.declared):
				self._emit(DropOp, None, root=root)

	def _lower_stmt(self, stmt: A.Stmt) -> None:
		if isinstance(stmt, A.Let):
			if stmt.value is None:
				root = self._declare(stmt.name, stmt.declared_type, stmt.mutable, PlaceKind.LOCAL)
				self._emit(BindOp, stmt.loc, root=root, initialized=False)
				return
			value = self._lower_value(stmt.value)
			ty = stmt.declared_type if stmt.declared_type is not None else value.ty
			root = self._declare(stmt.name, ty, stmt.mutable, PlaceKind.LOCAL)
			self._emit(BindOp, stmt.loc, root=root, initialized=True, sources=value.sources)
			return
		if isinstance(stmt, A.Assign):
			value = self._lower_value(stmt.value)
			target = self._require_place(stmt.target, "assignment target")
			self._emit(AssignOp, stmt.loc, path=target, sources=value.sources)
			return
		if isinstance(stmt, A.ExprStmt):
			self._lower_value(stmt.expr)
			return
		if isinstance(stmt, A.Block):
			self._lower_block(stmt)
			return
		if isinstance(stmt, A.If):
			self._lower_if(stmt)
			return
		if isinstance(stmt, A.While):
			self._lower_loop(stmt.body, stmt.label, cond=stmt.cond)
			return
		if isinstance(stmt, A.Loop):
			self._lower_loop(stmt.body, stmt.label, cond=None)
			return
		if isinstance(stmt, (A.Break, A.Continue)):
			ctx = self._resolve_loop(stmt.label, stmt.loc)
			self._emit_drops(self._scopes[ctx.scope_depth :])
			target = ctx.exit if isinstance(stmt, A.Break) else ctx.header
			self._terminate("jump", [target])
			self._detach()
			return
		if isinstance(stmt, A.Return):
			sources: Tuple[PathId, ...] = ()
			if stmt.value is not None:
				sources = self._lower_value(stmt.value).sources
			self._emit(ReturnOp, stmt.loc, sources=sources)
			self._terminate("return", [])
			self._detach()
			return
		raise InternalError(f"unsupported statement node {type(stmt).__name__}", span=getattr(stmt, "loc", None))

	def _lower_if(self, stmt: A.If) -> None:
		self._lower_value(stmt.cond)
		then_bb = self._new_block()
		else_bb = self._new_block() if stmt.else_block is not None else None
		join_bb = self._new_block()
		self._terminate("branch", [then_bb.id, (else_bb or join_bb).id])

		self._switch_to(then_bb)
		self._lower_block(stmt.then_block)
		if self._is_open():
			self._terminate("jump", [join_bb.id])
		if else_bb is not None and stmt.else_block is not None:
			self._switch_to(else_bb)
			self._lower_block(stmt.else_block)
			if self._is_open():
				self._terminate("jump", [join_bb.id])
		self._switch_to(join_bb)

	def _lower_loop(self, body: A.Block, label: Optional[str], *, cond: Optional[A.Expr]) -> None:
		header = self._new_block()
		self._terminate("jump", [header.id])
		self._switch_to(header)
		if cond is not None:
			self._lower_value(cond)
		body_bb = self._new_block()
		exit_bb = self._new_block()
		if cond is not None:
			self._terminate("branch", [body_bb.id, exit_bb.id])
		else:
			self._terminate("jump", [body_bb.id])

		self._loop_stack.append(_LoopCtx(label=label, header=header.id, exit=exit_bb.id, scope_depth=len(self._scopes)))
		self._switch_to(body_bb)
		self._lower_block(body)
		if self._is_open():
			self._terminate("jump", [header.id])  # back edge
		self._loop_stack.pop()
		self._switch_to(exit_bb)

	def _resolve_loop(self, label: Optional[str], span: Span) -> _LoopCtx:
		for ctx in reversed(self._loop_stack):
			if label is None or ctx.label == label:
				return ctx
		raise UnresolvedLabel(label if label is not None else "<innermost loop>", span=span)


def build_cfg(
	fn: A.FnDecl,
	type_table: TypeTable,
	signatures: Optional[SignatureMap] = None,
	*,
	distinct_indices: bool = False,
) -> Cfg:
	"""Lower `fn` into a fresh CFG."""
	return CfgBuilder(type_table, signatures, distinct_indices=distinct_indices).build(fn)


__all__ = [
	"LoanKind",
	"Op",
	"BindOp",
	"AssignOp",
	"MoveOp",
	"UseOp",
	"BorrowOp",
	"CallOp",
	"DropOp",
	"ReturnOp",
	"Terminator",
	"BasicBlock",
	"Binding",
	"Cfg",
	"CfgBuilder",
	"build_cfg",
]
