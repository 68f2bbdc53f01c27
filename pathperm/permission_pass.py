#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Permission engine: forward dataflow over path states plus violation detection.

State per path is one of UNINIT/VALID/MOVED, joined with the meet (the most
restrictive state wins). Only paths that were explicitly bound, moved or
assigned carry an entry; every other path inherits from its nearest ancestor.

Effective permissions of a path at a point:

	capacity(path) ∩ perms(state) − restrictions(live loans)

where capacity comes from declared mutability and the reference types crossed
by `Deref` projections, and restrictions are recomputed from the loans live at
that point (loan expiration needs no explicit event).

The fixed point is computed first without reporting; a single pass afterwards
replays each reachable block from its final in-state and records violations.
A violating operation leaves the state untouched so one mistake does not
cascade into follow-up reports. Assignments are the exception: the target is
initialized even when the write was not permitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Tuple, Union

from pathperm.cfg_builder import (
	AssignOp,
	BindOp,
	BorrowOp,
	CallOp,
	Cfg,
	DropOp,
	LoanKind,
	MoveOp,
	Op,
	ReturnOp,
	UseOp,
)
from pathperm.core.diagnostics import NonConvergence, Violation, ViolationKind
from pathperm.core.span import ProgramPoint
from pathperm.core.types_core import TypeKind
from pathperm.loan_tracker import Loan, LoanFacts
from pathperm.path_model import (
	ALL_PERMS,
	DerefProj,
	PathId,
	Perm,
	Place,
	PlaceState,
	binding_perms,
	meet_perms,
	merge_place_state,
)

logger = logging.getLogger(__name__)

_State = Dict[PathId, PlaceState]

NOTE_BEHIND_REFERENCE = "cannot move out of a path behind a reference"
NOTE_PARTIALLY_MOVED = "a part of this value was moved"
NOTE_ASSIGN_TO_MOVED_PART = "assignment to a part of a moved value"


def _state_perms(state: PlaceState) -> Perm:
	return ALL_PERMS if state is PlaceState.VALID else Perm.NONE


@dataclass
class PermissionResult:
	"""Violations of one function plus the per-point state snapshots."""

	cfg: Cfg
	loans: LoanFacts
	violations: List[Violation]
	_before: Dict[int, _State]
	_engine: "PermissionEngine"

	def state_at(self, point: Union[ProgramPoint, int], path: Union[PathId, Place]) -> PlaceState:
		"""State of `path` on entry to `point` (UNINIT for unreachable points)."""
		pid = self._engine.resolve(path)
		state = self._before.get(_point_id(point))
		if state is None:
			return PlaceState.UNINIT
		return self._engine.path_state(state, pid)

	def permissions_at(self, point: Union[ProgramPoint, int], path: Union[PathId, Place]) -> Perm:
		"""Effective R/W/O of `path` on entry to `point`."""
		pid = self._engine.resolve(path)
		point_id = _point_id(point)
		state = self._before.get(point_id)
		if state is None:
			return Perm.NONE
		return self._engine.effective(state, point_id, pid)


def _point_id(point: Union[ProgramPoint, int]) -> int:
	return point.id if isinstance(point, ProgramPoint) else point


class PermissionEngine:
	"""
	Forward permission dataflow for one CFG.

	Inputs:
	- cfg: lowered function (paths, bindings, declared types).
	- loans: live loans per point, from the loan tracker.
	"""

	def __init__(self, cfg: Cfg, loans: LoanFacts, *, max_iterations: Optional[int] = None) -> None:
		self.cfg = cfg
		self.loans = loans
		self.paths = cfg.paths
		self.max_iterations = max_iterations
		self._capacity_cache: Dict[PathId, Perm] = {}
		self._may_init: Dict[int, FrozenSet[PathId]] = {}

	# ---- path queries ----

	def resolve(self, path: Union[PathId, Place]) -> PathId:
		if isinstance(path, Place):
			return self.paths.intern(path)
		return path

	def capacity(self, pid: PathId) -> Perm:
		"""
		Permissions the path could ever have, ignoring state and loans.

		Roots start from their declared mutability. Field/index projections
		inherit. A `Deref` of `&T` yields R, of `&mut T` yields R+W (unless a
		shared deref was crossed earlier), of `Box<T>` inherits, and anything
		else is read-only. Nothing behind a reference is ever owned.
		"""
		cached = self._capacity_cache.get(pid)
		if cached is not None:
			return cached
		tt = self.cfg.type_table
		chain = [pid] + list(self.paths.ancestors(pid))
		chain.reverse()
		root = chain[0]
		binding = self.cfg.bindings.get(root)
		cap = binding_perms(binding.mutable if binding is not None else False)
		through_shared = False
		for parent, child in zip(chain, chain[1:]):
			if not isinstance(self.paths.place(child).projections[-1], DerefProj):
				continue
			ty = self.cfg.path_type(parent)
			td = tt.get(ty) if ty is not None else None
			if td is not None and td.kind is TypeKind.REF:
				if td.ref_mut and not through_shared:
					cap = Perm.R | Perm.W
				else:
					cap = Perm.R
					through_shared = True
			elif td is not None and td.boxed:
				continue
			else:
				cap = Perm.R
				through_shared = True
		self._capacity_cache[pid] = cap
		return cap

	def _chain_state(self, state: _State, pid: PathId) -> Tuple[PlaceState, Optional[PathId]]:
		"""
		State of `pid` from its own entry and its ancestors' entries.

		Returns the state plus the path that determined it. The first non-VALID
		entry walking down from the root wins; with no entry at all the path is
		UNINIT.
		"""
		chain = [pid] + list(self.paths.ancestors(pid))
		seen = False
		for node in reversed(chain):
			entry = state.get(node)
			if entry is None:
				continue
			seen = True
			if entry is not PlaceState.VALID:
				return entry, node
		if not seen:
			return PlaceState.UNINIT, None
		return PlaceState.VALID, None

	def _partially_moved(self, state: _State, pid: PathId) -> bool:
		return any(state.get(d) is PlaceState.MOVED for d in self.paths.descendants(pid))

	def path_state(self, state: _State, pid: PathId) -> PlaceState:
		return self._chain_state(state, pid)[0]

	def effective(self, state: _State, point_id: int, pid: PathId) -> Perm:
		st = self.path_state(state, pid)
		perms = meet_perms(self.capacity(pid), _state_perms(st))
		if self._partially_moved(state, pid):
			perms = Perm.NONE
		return perms & ~self.loans.restriction(point_id, pid)

	# ---- state updates ----

	def _retire(self, state: _State, pid: PathId) -> None:
		"""Forget every entry below `pid`; the old contents are gone."""
		for desc in self.paths.descendants(pid):
			state.pop(desc, None)

	def _set(self, state: _State, pid: PathId, value: PlaceState) -> None:
		self._retire(state, pid)
		state[pid] = value

	def _join(self, a: _State, b: _State) -> _State:
		"""Meet two state maps; a path missing on one side inherits its ancestors there."""
		out: _State = {}
		for pid in set(a) | set(b):
			sa = a[pid] if pid in a else self.path_state(a, pid)
			sb = b[pid] if pid in b else self.path_state(b, pid)
			out[pid] = merge_place_state(sa, sb)
		return out

	# ---- checks ----

	def _violation(
		self,
		kind: ViolationKind,
		op: Op,
		pid: PathId,
		*,
		loan: Optional[Loan] = None,
		note: Optional[str] = None,
	) -> Violation:
		return Violation(
			kind=kind,
			path=self.paths.place(pid),
			location=op.point,
			path_text=self.paths.render(pid),
			conflicting_loan=loan.id if loan is not None else None,
			loan_created_at=loan.created_at if loan is not None else None,
			span=op.span,
			note=note,
		)

	def _check_access(self, state: _State, op: Op, pid: PathId, needed: Perm) -> Optional[Violation]:
		"""
		Check a whole-value access needing `needed` (subset of R/W/O).

		The first missing cause decides the kind. A move that lacks O is always a
		use after move; the blocking loan, if any, is attached. Otherwise the
		missing bit names it.
		"""
		st, _ = self._chain_state(state, pid)
		if st is PlaceState.MOVED:
			return self._violation(ViolationKind.USE_AFTER_MOVE, op, pid)
		if self._partially_moved(state, pid):
			return self._violation(ViolationKind.USE_AFTER_MOVE, op, pid, note=NOTE_PARTIALLY_MOVED)
		if st is PlaceState.UNINIT:
			return self._violation(ViolationKind.USE_WITHOUT_READ, op, pid)
		cap = self.capacity(pid)
		if Perm.O in needed and Perm.O not in cap:
			return self._violation(ViolationKind.USE_AFTER_MOVE, op, pid, note=NOTE_BEHIND_REFERENCE)
		if Perm.W in needed and Perm.W not in cap:
			return self._violation(ViolationKind.USE_WITHOUT_WRITE, op, pid)
		blocking = self.loans.blocking_loan(op.point.id, pid, needed)
		if blocking is None:
			return None
		removed = blocking.restricts & needed
		if Perm.O in needed:
			return self._violation(ViolationKind.USE_AFTER_MOVE, op, pid, loan=blocking)
		if Perm.R in removed:
			return self._violation(ViolationKind.USE_WITHOUT_READ, op, pid, loan=blocking)
		return self._violation(ViolationKind.USE_WITHOUT_WRITE, op, pid, loan=blocking)

	def _check_assign(self, state: _State, op: AssignOp) -> Optional[Violation]:
		"""
		Writability of an assignment target.

		Effective permissions are not used here: assigning re-initializes a moved
		or uninitialized path, so only capacity, the ancestors' state and live
		loans matter.
		"""
		pid = op.path
		parent = self.paths.parent(pid)
		if parent is not None:
			st, _ = self._chain_state(state, parent)
			if st is PlaceState.MOVED:
				return self._violation(ViolationKind.USE_AFTER_MOVE, op, pid, note=NOTE_ASSIGN_TO_MOVED_PART)
			if st is PlaceState.UNINIT:
				return self._violation(ViolationKind.USE_WITHOUT_WRITE, op, pid)
		if Perm.W not in self.capacity(pid):
			# One write is allowed while no incoming path has initialized the root.
			deferred_init = parent is None and pid not in self._may_init.get(op.point.id, frozenset())
			if not deferred_init:
				return self._violation(ViolationKind.USE_WITHOUT_WRITE, op, pid)
		blocking = self.loans.blocking_loan(op.point.id, pid, Perm.W)
		if blocking is not None:
			return self._violation(ViolationKind.USE_WITHOUT_WRITE, op, pid, loan=blocking)
		return None

	def _check_drop(self, op: DropOp) -> Optional[Tuple[Violation, Loan]]:
		for loan in self.loans.live_loans(op.point.id):
			if self.paths.root_of(loan.path) != op.root or self.loans.is_reborrow(loan):
				continue
			return self._violation(ViolationKind.DANGLING_REFERENCE, op, op.root, loan=loan), loan
		return None

	# ---- transfer ----

	def _transfer(self, op: Op, state: _State, found: Optional[List[Violation]], dropped: Set[int]) -> None:
		"""Apply one op to `state`; record violations into `found` when reporting."""
		violation: Optional[Violation] = None
		if isinstance(op, BindOp):
			self._set(state, op.root, PlaceState.VALID if op.initialized else PlaceState.UNINIT)
		elif isinstance(op, UseOp):
			violation = self._check_access(state, op, op.path, Perm.R)
		elif isinstance(op, MoveOp):
			violation = self._check_access(state, op, op.path, Perm.R | Perm.O)
			if violation is None:
				self._set(state, op.path, PlaceState.MOVED)
		elif isinstance(op, BorrowOp):
			born = self.loans.loan_born_at(op.point.id)
			if born is None or not self.loans.is_rejected(born.id):
				needed = Perm.R | Perm.W if op.kind is LoanKind.UNIQUE else Perm.R
				violation = self._check_access(state, op, op.path, needed)
			self._set(state, op.holder, PlaceState.VALID)
		elif isinstance(op, AssignOp):
			violation = self._check_assign(state, op)
			# The target holds the new value either way; later reads are not reported again.
			self._set(state, op.path, PlaceState.VALID)
		elif isinstance(op, CallOp):
			if op.receiver is not None and op.receiver_access:
				violation = self._check_access(state, op, op.receiver, op.receiver_access)
		elif isinstance(op, DropOp):
			hit = self._check_drop(op)
			if hit is not None:
				violation, loan = hit
				dropped.add(loan.id)
			self._set(state, op.root, PlaceState.UNINIT)
		elif isinstance(op, ReturnOp):
			pass
		else:
			raise AssertionError(f"unknown op reached the permission engine: {op!r}")  # checker bug
		if violation is not None and found is not None:
			found.append(violation)

	def _transfer_block(
		self,
		bid: int,
		in_state: _State,
		found: Optional[List[Violation]] = None,
		dropped: Optional[Set[int]] = None,
		snapshots: Optional[Dict[int, _State]] = None,
	) -> _State:
		state = dict(in_state)
		for op in self.cfg.blocks[bid].ops:
			if snapshots is not None:
				snapshots[op.point.id] = dict(state)
			self._transfer(op, state, found, dropped if dropped is not None else set())
		return state

	# ---- driver ----

	def _bound(self, reachable: int) -> int:
		if self.max_iterations is not None:
			return self.max_iterations
		return max(1, reachable) * (3 * len(self.paths) + 1)

	def _fixpoint(self) -> Dict[int, _State]:
		cfg = self.cfg
		bound = self._bound(len(cfg.reachable()))
		in_states: Dict[int, _State] = {cfg.entry: {}}
		worklist = [cfg.entry]
		visits = 0
		while worklist:
			bid = worklist.pop()
			visits += 1
			if visits > bound:
				raise NonConvergence("permission dataflow", bound)
			out_state = self._transfer_block(bid, in_states[bid])
			for succ in cfg.successors(bid):
				prev = in_states.get(succ)
				merged = dict(out_state) if prev is None else self._join(prev, out_state)
				if prev is None or merged != prev:
					in_states[succ] = merged
					worklist.append(succ)
		logger.debug("%s: permission dataflow converged after %d block visits", cfg.fn_name, visits)
		return in_states

	def _check_returns(self, dropped: Set[int]) -> List[Violation]:
		"""
		Loans flowing into a `return` must not pin a root of this function.

		Reborrows through a reference are fine (their own loans were carried
		along and are checked instead). Reported once per offending root.
		"""
		found: List[Violation] = []
		seen_roots: Set[PathId] = set()
		live = self.cfg.reachable()
		for op in self.cfg.ops():
			if not isinstance(op, ReturnOp) or op.point.block not in live:
				continue
			carried: Set[int] = set()
			for src in op.sources:
				carried |= self.loans.loans_held(op.point.id, self.paths.root_of(src))
			for lid in sorted(carried):
				loan = self.loans.loan(lid)
				if self.loans.is_rejected(lid) or lid in dropped or self.loans.is_reborrow(loan):
					continue
				root = self.paths.root_of(loan.path)
				if root in seen_roots:
					continue
				seen_roots.add(root)
				found.append(self._violation(ViolationKind.DANGLING_REFERENCE, op, loan.path, loan=loan))
		return found

	def _may_initialize(self) -> Dict[int, FrozenSet[PathId]]:
		"""
		Roots that may hold a value on entry to each op (union at joins).

		Unlike the path state, whose meet turns "set on one branch" into UNINIT,
		this keeps a root once any incoming path initialized it.
		"""
		cfg = self.cfg
		root = self.paths.root_of
		bound = self._bound(len(cfg.reachable()))
		in_sets: Dict[int, FrozenSet[PathId]] = {cfg.entry: frozenset()}
		per_op: Dict[int, FrozenSet[PathId]] = {}
		worklist = [cfg.entry]
		visits = 0
		while worklist:
			bid = worklist.pop()
			visits += 1
			if visits > bound:
				raise NonConvergence("initialization dataflow", bound)
			live = set(in_sets[bid])
			for op in cfg.blocks[bid].ops:
				per_op[op.point.id] = frozenset(live)
				if isinstance(op, BindOp):
					if op.initialized:
						live.add(op.root)
					else:
						live.discard(op.root)
				elif isinstance(op, AssignOp):
					live.add(root(op.path))
				elif isinstance(op, BorrowOp):
					live.add(op.holder)
				elif isinstance(op, DropOp):
					live.discard(op.root)
			out = frozenset(live)
			for succ in cfg.successors(bid):
				prev = in_sets.get(succ)
				merged = out if prev is None else prev | out
				if prev is None or merged != prev:
					in_sets[succ] = merged
					worklist.append(succ)
		return per_op

	def run(self) -> PermissionResult:
		self._may_init = self._may_initialize()
		in_states = self._fixpoint()
		found: List[Violation] = list(self.loans.conflicts)
		dropped: Set[int] = set()
		snapshots: Dict[int, _State] = {}
		for bid in sorted(in_states):
			self._transfer_block(bid, in_states[bid], found, dropped, snapshots)
		found.extend(self._check_returns(dropped))
		found.sort(key=lambda v: v.location.id)
		logger.debug("%s: %d violations", self.cfg.fn_name, len(found))
		return PermissionResult(
			cfg=self.cfg,
			loans=self.loans,
			violations=found,
			_before=snapshots,
			_engine=self,
		)


def check_permissions(cfg: Cfg, loans: LoanFacts, *, max_iterations: Optional[int] = None) -> PermissionResult:
	"""Run the permission dataflow over `cfg` using the live loans in `loans`."""
	return PermissionEngine(cfg, loans, max_iterations=max_iterations).run()


__all__ = ["PermissionEngine", "PermissionResult", "check_permissions", "NOTE_BEHIND_REFERENCE"]
