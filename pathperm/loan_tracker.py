#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Loan tracker: creates a loan per `borrow` op and computes where it is live.

Liveness is NLL-style and flow-sensitive. Two classic dataflow problems feed
into it:
  * backward liveness of roots: a root is live at a point when its current
    value may still be read on some path before being overwritten;
  * forward "holds": which loans the value of each root may carry. A borrow
    puts its loan into the holder temporary; `bind`/`assign`/returning calls
    copy loans along with values (union at joins).

A loan is live at point q iff some root that is live-in at q may hold it there.
Expiration is therefore implicit: once no live root holds the loan, its
restrictions vanish.

Loan-vs-loan conflicts are checked here too. A loan created while a conflicting
loan is live (and either one is unique) is rejected at its creation point and
never restricts anything afterwards, so one bad borrow yields one diagnostic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

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
from pathperm.core.span import ProgramPoint, Span
from pathperm.path_model import DerefProj, PathId, Perm

logger = logging.getLogger(__name__)


def loan_restriction(kind: LoanKind) -> Perm:
	"""Permissions a live loan removes from every conflicting path."""
	if kind is LoanKind.SHARED:
		return Perm.W | Perm.O
	return Perm.R | Perm.W | Perm.O


@dataclass(frozen=True)
class Loan:
	"""
	One borrow and its live range.

	`live_points` holds the ids of the program points where the loan is live
	(on entry to the op). A loan is never live at its own creation point.
	"""

	id: int
	path: PathId
	kind: LoanKind
	created_at: ProgramPoint
	holder: PathId
	span: Span = field(default_factory=Span)
	reborrow_of: Optional[PathId] = None
	live_points: FrozenSet[int] = frozenset()
	last_use: Optional[ProgramPoint] = None

	@property
	def restricts(self) -> Perm:
		return loan_restriction(self.kind)


_Holds = Dict[PathId, FrozenSet[int]]


@dataclass
class LoanFacts:
	"""Result of loan tracking for one CFG."""

	cfg: Cfg
	loans: List[Loan]
	conflicts: List[Violation]
	rejected: FrozenSet[int]
	_live_at: Dict[int, Tuple[int, ...]]
	_holds_before: Dict[int, _Holds]
	_born_at: Dict[int, int]

	def loan(self, loan_id: int) -> Loan:
		return self.loans[loan_id]

	def is_rejected(self, loan_id: int) -> bool:
		return loan_id in self.rejected

	def live_loans(self, point_id: int) -> List[Loan]:
		"""Accepted loans live on entry to `point_id`, in creation order."""
		return [self.loans[lid] for lid in self._live_at.get(point_id, ())]

	def loans_held(self, point_id: int, root: PathId) -> FrozenSet[int]:
		"""Loans the value of `root` may carry right before `point_id`."""
		return self._holds_before.get(point_id, {}).get(root, frozenset())

	def loan_born_at(self, point_id: int) -> Optional[Loan]:
		lid = self._born_at.get(point_id)
		return self.loans[lid] if lid is not None else None

	def restriction(self, point_id: int, pid: PathId) -> Perm:
		"""Union of permissions removed from `pid` by loans live at `point_id`."""
		removed = Perm.NONE
		for loan in self.live_loans(point_id):
			if self.cfg.paths.conflicts(loan.path, pid):
				removed |= loan.restricts
		return removed

	def blocking_loan(self, point_id: int, pid: PathId, needed: Perm) -> Optional[Loan]:
		"""Earliest live loan that removes one of `needed` from `pid`."""
		for loan in self.live_loans(point_id):
			if loan.restricts & needed and self.cfg.paths.conflicts(loan.path, pid):
				return loan
		return None

	def is_reborrow(self, loan: Loan) -> bool:
		"""
		True when the loan borrows through a reference (`&(*r).f`).

		Such a loan does not pin its root: the data lives behind `r`, and the
		loans `r` itself carries were propagated to the new holder.
		"""
		paths = self.cfg.paths
		tt = self.cfg.type_table
		chain = [loan.path] + list(paths.ancestors(loan.path))
		for child, parent in zip(chain, chain[1:]):
			if isinstance(paths.place(child).projections[-1], DerefProj) and tt.is_ref(self.cfg.path_type(parent)):
				return True
		return False


def _uses_defs(cfg: Cfg, op: Op) -> Tuple[Set[PathId], Set[PathId]]:
	"""Roots read and roots fully overwritten by one op."""
	root = cfg.paths.root_of
	uses: Set[PathId] = set()
	defs: Set[PathId] = set()
	if isinstance(op, (UseOp, MoveOp)):
		uses.add(root(op.path))
	elif isinstance(op, BorrowOp):
		uses.add(root(op.path))
		defs.add(op.holder)
	elif isinstance(op, CallOp):
		if op.receiver is not None:
			uses.add(root(op.receiver))
		uses.update(root(s) for s in op.operands)
	elif isinstance(op, AssignOp):
		uses.update(root(s) for s in op.sources)
		if cfg.paths.parent(op.path) is None:
			defs.add(op.path)
		else:
			uses.add(root(op.path))
	elif isinstance(op, BindOp):
		uses.update(root(s) for s in op.sources)
		defs.add(op.root)
	elif isinstance(op, ReturnOp):
		uses.update(root(s) for s in op.sources)
	# DropOp is neither a use nor a def.
	return uses, defs


class LoanTracker:
	"""Computes loans, their live ranges and loan-vs-loan conflicts for one CFG."""

	def __init__(self, cfg: Cfg, *, max_iterations: Optional[int] = None) -> None:
		self.cfg = cfg
		self.max_iterations = max_iterations
		self._reachable = cfg.reachable()
		self._order = cfg.reverse_postorder()

	def _bound(self, height: int) -> int:
		if self.max_iterations is not None:
			return self.max_iterations
		return max(1, len(self._reachable)) * (height + 1)

	# ---- backward root liveness ----

	def _liveness(self) -> Dict[int, FrozenSet[PathId]]:
		cfg = self.cfg
		block_uses: Dict[int, List[Tuple[Set[PathId], Set[PathId]]]] = {
			bid: [_uses_defs(cfg, op) for op in cfg.blocks[bid].ops] for bid in self._reachable
		}
		preds = cfg.predecessors()
		live_in: Dict[int, FrozenSet[PathId]] = {bid: frozenset() for bid in self._reachable}
		bound = self._bound(len(cfg.bindings))
		visits = 0
		worklist = list(self._order)
		queued = set(worklist)
		while worklist:
			bid = worklist.pop()
			queued.discard(bid)
			visits += 1
			if visits > bound:
				raise NonConvergence("loan liveness", bound)
			live: Set[PathId] = set()
			for succ in cfg.successors(bid):
				live |= live_in.get(succ, frozenset())
			for uses, defs in reversed(block_uses[bid]):
				live -= defs
				live |= uses
			new_in = frozenset(live)
			if new_in != live_in[bid]:
				live_in[bid] = new_in
				for pred in preds[bid]:
					if pred in self._reachable and pred not in queued:
						worklist.append(pred)
						queued.add(pred)
		logger.debug("%s: root liveness converged after %d block visits", cfg.fn_name, visits)

		# Per-op refinement: live-in of every op.
		per_op: Dict[int, FrozenSet[PathId]] = {}
		for bid in self._reachable:
			live = set()
			for succ in cfg.successors(bid):
				live |= live_in.get(succ, frozenset())
			for op, (uses, defs) in zip(reversed(cfg.blocks[bid].ops), reversed(block_uses[bid])):
				live -= defs
				live |= uses
				per_op[op.point.id] = frozenset(live)
		return per_op

	# ---- forward holds ----

	@staticmethod
	def _held(holds: _Holds, sources) -> FrozenSet[int]:
		out: Set[int] = set()
		for src in sources:
			out |= holds.get(src, frozenset())
		return frozenset(out)

	def _transfer_holds(self, op: Op, holds: _Holds, loan_ids: Dict[int, int]) -> None:
		root = self.cfg.paths.root_of
		if isinstance(op, BorrowOp):
			carried = {loan_ids[op.point.id]}
			if op.reborrow_of is not None:
				carried |= holds.get(op.reborrow_of, frozenset())
			holds[op.holder] = frozenset(carried)
		elif isinstance(op, BindOp):
			holds[op.root] = self._held(holds, (root(s) for s in op.sources))
		elif isinstance(op, AssignOp):
			incoming = self._held(holds, (root(s) for s in op.sources))
			target = root(op.path)
			if target == op.path:
				holds[target] = incoming
			elif incoming:
				holds[target] = holds.get(target, frozenset()) | incoming
		elif isinstance(op, DropOp):
			holds.pop(op.root, None)

	@staticmethod
	def _join(a: _Holds, b: _Holds) -> _Holds:
		out = dict(a)
		for root, loans in b.items():
			prev = out.get(root)
			out[root] = loans if prev is None else prev | loans
		return out

	def _holds(self, loan_ids: Dict[int, int]) -> Dict[int, _Holds]:
		cfg = self.cfg
		in_states: Dict[int, _Holds] = {cfg.entry: {}}
		per_op: Dict[int, _Holds] = {}
		bound = self._bound(len(cfg.bindings) * max(1, len(loan_ids)))
		visits = 0
		worklist = [cfg.entry]
		while worklist:
			bid = worklist.pop()
			visits += 1
			if visits > bound:
				raise NonConvergence("loan propagation", bound)
			state = dict(in_states[bid])
			for op in cfg.blocks[bid].ops:
				per_op[op.point.id] = dict(state)
				self._transfer_holds(op, state, loan_ids)
			for succ in cfg.successors(bid):
				prev = in_states.get(succ)
				merged = state if prev is None else self._join(prev, state)
				if prev is None or merged != prev:
					in_states[succ] = merged
					worklist.append(succ)
		logger.debug("%s: loan propagation converged after %d block visits", cfg.fn_name, visits)
		return per_op

	# ---- driver ----

	def run(self) -> LoanFacts:
		cfg = self.cfg
		borrows = [op for op in cfg.ops() if isinstance(op, BorrowOp) and op.point.block in self._reachable]
		loan_ids = {op.point.id: idx for idx, op in enumerate(borrows)}

		live_roots = self._liveness()
		holds_before = self._holds(loan_ids)

		raw_live: Dict[int, Set[int]] = {}
		for pid, roots in live_roots.items():
			held = holds_before.get(pid, {})
			live: Set[int] = set()
			for root in roots:
				live |= held.get(root, frozenset())
			raw_live[pid] = live

		# Conflicts in creation order; a rejected loan restricts nothing later.
		rejected: Set[int] = set()
		conflicts: List[Violation] = []
		for op in borrows:
			lid = loan_ids[op.point.id]
			for other in sorted(raw_live.get(op.point.id, ())):
				if other in rejected:
					continue
				other_op = borrows[other]
				if LoanKind.UNIQUE not in (op.kind, other_op.kind):
					continue
				if not cfg.paths.conflicts(op.path, other_op.path):
					continue
				rejected.add(lid)
				conflicts.append(
					Violation(
						kind=ViolationKind.CONFLICTING_LOAN,
						path=cfg.paths.place(op.path),
						location=op.point,
						path_text=cfg.paths.render(op.path),
						conflicting_loan=other,
						loan_created_at=other_op.point,
						span=op.span,
					)
				)
				break

		live_points: Dict[int, List[int]] = {lid: [] for lid in range(len(borrows))}
		live_at: Dict[int, Tuple[int, ...]] = {}
		for pid in sorted(raw_live):
			accepted = tuple(sorted(lid for lid in raw_live[pid] if lid not in rejected))
			live_at[pid] = accepted
			for lid in raw_live[pid]:
				live_points[lid].append(pid)

		points = {op.point.id: op.point for op in cfg.ops()}
		loans: List[Loan] = []
		for op in borrows:
			lid = loan_ids[op.point.id]
			pts = live_points[lid]
			loans.append(
				Loan(
					id=lid,
					path=op.path,
					kind=op.kind,
					created_at=op.point,
					holder=op.holder,
					span=op.span,
					reborrow_of=op.reborrow_of,
					live_points=frozenset(pts),
					last_use=points[max(pts)] if pts else None,
				)
			)
		logger.debug("%s: %d loans, %d rejected", cfg.fn_name, len(loans), len(rejected))
		return LoanFacts(
			cfg=cfg,
			loans=loans,
			conflicts=conflicts,
			rejected=frozenset(rejected),
			_live_at=live_at,
			_holds_before=holds_before,
			_born_at=loan_ids,
		)


def track_loans(cfg: Cfg, *, max_iterations: Optional[int] = None) -> LoanFacts:
	"""Create loans for every reachable borrow in `cfg` and compute their live ranges."""
	return LoanTracker(cfg, max_iterations=max_iterations).run()


__all__ = ["Loan", "LoanFacts", "LoanTracker", "loan_restriction", "track_loans"]
