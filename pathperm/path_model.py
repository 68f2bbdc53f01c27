#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Path model: places (root binding + projections) and the permission lattice.

This models the "where" of values so later passes can track moves and loans
per path. It intentionally avoids policy and just answers:
  * What path does this access denote, and what is its `PathId`?
  * Is `a` a prefix of `b`? Do `a` and `b` denote overlapping storage?
  * Which of Read/Write/Own does a permission set hold?

Paths are compared structurally, never by alias resolution. Index projections
are opaque ("any index") unless the run opts into constant-index precision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import Dict, Iterator, List, Optional, Tuple


class Perm(Flag):
	"""Permission bits for one path at one program point."""

	NONE = 0
	R = auto()
	W = auto()
	O = auto()

	def render(self) -> str:
		"""Fixed-width rendering: `RWO`, `R-O`, `---`."""
		return "".join(
			ch if bit in self else "-"
			for ch, bit in (("R", Perm.R), ("W", Perm.W), ("O", Perm.O))
		)


ALL_PERMS = Perm.R | Perm.W | Perm.O


def meet_perms(a: Perm, b: Perm) -> Perm:
	"""Lattice meet: only permissions available on both sides survive."""
	return a & b


def binding_perms(mutable: bool) -> Perm:
	"""Permissions of a freshly initialized binding."""
	return Perm.R | Perm.O | (Perm.W if mutable else Perm.NONE)


class IndexKind(Enum):
	"""Coarse-grained index classification to keep Place hashable."""

	ANY = auto()       # Unknown / non-constant index; conservatively overlaps.
	CONST = auto()     # Known constant index (kept only with index precision on).


@dataclass(frozen=True)
class FieldProj:
	"""Field access projection (e.g., `.name`)."""

	name: str


@dataclass(frozen=True)
class IndexProj:
	"""
	Index projection (e.g., `[i]`).

	We classify indices instead of storing raw AST to keep Place hashable.
	`value` is only set for CONST indices.
	"""

	kind: IndexKind = IndexKind.ANY
	value: Optional[int] = None


@dataclass(frozen=True)
class DerefProj:
	"""
	Dereference projection (`*p`).

	`(*p).field` is represented as base `p` with projections `Deref`, `.field`.
	"""


Projection = FieldProj | IndexProj | DerefProj


class PlaceKind(Enum):
	LOCAL = auto()
	PARAM = auto()
	TEMP = auto()


@dataclass(frozen=True)
class PlaceBase:
	"""Identity for the root of a Place (locals, params, borrow temporaries)."""

	kind: PlaceKind
	local_id: int
	name: str


@dataclass(frozen=True)
class Place:
	"""
	A borrowable/moveable storage location.

	`base` carries identity; `projections` capture deref/field/index accesses,
	so `foo.bar[0]` becomes base `foo` with projections `.bar`, `[0]`.
	"""

	base: PlaceBase
	projections: Tuple[Projection, ...] = field(default_factory=tuple)

	def with_projection(self, proj: Projection) -> "Place":
		"""Return a new Place with an additional projection appended."""
		return Place(self.base, self.projections + (proj,))

	@property
	def parent(self) -> Optional["Place"]:
		if not self.projections:
			return None
		return Place(self.base, self.projections[:-1])

	def render(self) -> str:
		text = self.base.name
		for proj in self.projections:
			if isinstance(proj, DerefProj):
				text = f"*{text}"
			elif isinstance(proj, FieldProj):
				if text.startswith("*"):
					text = f"({text})"
				text = f"{text}.{proj.name}"
			else:
				if text.startswith("*"):
					text = f"({text})"
				idx = "_" if proj.kind is IndexKind.ANY else str(proj.value)
				text = f"{text}[{idx}]"
		return text

	def __str__(self) -> str:
		return self.render()


class PlaceState(Enum):
	"""Initialization state for a path: uninitialized, valid, or moved."""

	UNINIT = auto()
	VALID = auto()
	MOVED = auto()


# MOVED < UNINIT < VALID: the most restrictive state wins at a join.
_STATE_RANK = {PlaceState.MOVED: 0, PlaceState.UNINIT: 1, PlaceState.VALID: 2}


def merge_place_state(a: PlaceState, b: PlaceState) -> PlaceState:
	"""
	Meet operation for place states used in dataflow joins.

	A path usable on only one incoming branch is unusable after the join.
	MOVED dominates UNINIT so that "moved on some path" is what gets reported.
	"""
	if a is b:
		return a
	return a if _STATE_RANK[a] <= _STATE_RANK[b] else b


def root_of(place: Place) -> Place:
	return Place(place.base)


def is_prefix_of(a: Place, b: Place) -> bool:
	"""True if `a`'s projections are an initial segment of `b`'s (same root)."""
	if a.base != b.base or len(a.projections) > len(b.projections):
		return False
	return b.projections[: len(a.projections)] == a.projections


def conflicts(a: Place, b: Place) -> bool:
	"""
	Return True when two places may refer to overlapping storage.

	This function is the single source of truth for "path overlap":
	- Different roots never overlap.
	- Prefix overlap counts: `x` overlaps `x.field` and `x[_]`.
	- Field projections are disjoint when the field names differ.
	- Index projections: two CONST indices are disjoint when they differ
	  (only present when index precision is on); ANY overlaps everything.
	- Any other mismatch at the same depth is treated as overlapping.
	"""
	if a.base != b.base:
		return False
	ap = a.projections
	bp = b.projections
	for pa, pb in zip(ap, bp):
		if pa == pb:
			continue
		if isinstance(pa, FieldProj) and isinstance(pb, FieldProj):
			return False
		if isinstance(pa, IndexProj) and isinstance(pb, IndexProj):
			if pa.kind is IndexKind.CONST and pb.kind is IndexKind.CONST:
				return False
			return True
		return True
	# One place is a prefix of the other (or identical): overlaps by definition.
	return True


PathId = int


@dataclass
class _PathNode:
	place: Place
	parent: Optional[PathId]
	children: List[PathId] = field(default_factory=list)


class PathTable:
	"""
	Arena of interned paths for one analysis run.

	Every prefix of an interned path is interned as well, so parent/child links
	are plain integer ids. With `distinct_indices` off, every index projection
	is canonicalized to the opaque `[_]`, which makes `v[0]` and `v[1]` the same
	path.
	"""

	def __init__(self, *, distinct_indices: bool = False) -> None:
		self.distinct_indices = distinct_indices
		self._nodes: List[_PathNode] = []
		self._ids: Dict[Place, PathId] = {}

	def __len__(self) -> int:
		return len(self._nodes)

	def __iter__(self) -> Iterator[PathId]:
		return iter(range(len(self._nodes)))

	def canonical(self, place: Place) -> Place:
		if self.distinct_indices:
			return place
		projs = tuple(
			IndexProj() if isinstance(p, IndexProj) and p.kind is not IndexKind.ANY else p
			for p in place.projections
		)
		if projs == place.projections:
			return place
		return Place(place.base, projs)

	def intern(self, place: Place) -> PathId:
		place = self.canonical(place)
		existing = self._ids.get(place)
		if existing is not None:
			return existing
		parent_id = None
		if place.projections:
			parent_id = self.intern(Place(place.base, place.projections[:-1]))
		pid = len(self._nodes)
		self._nodes.append(_PathNode(place=place, parent=parent_id))
		self._ids[place] = pid
		if parent_id is not None:
			self._nodes[parent_id].children.append(pid)
		return pid

	def lookup(self, place: Place) -> Optional[PathId]:
		return self._ids.get(self.canonical(place))

	def place(self, pid: PathId) -> Place:
		return self._nodes[pid].place

	def render(self, pid: PathId) -> str:
		return self._nodes[pid].place.render()

	def parent(self, pid: PathId) -> Optional[PathId]:
		return self._nodes[pid].parent

	def root_of(self, pid: PathId) -> PathId:
		while True:
			parent = self._nodes[pid].parent
			if parent is None:
				return pid
			pid = parent

	def ancestors(self, pid: PathId) -> Iterator[PathId]:
		"""Strict ancestors, nearest first."""
		parent = self._nodes[pid].parent
		while parent is not None:
			yield parent
			parent = self._nodes[parent].parent

	def descendants(self, pid: PathId) -> Iterator[PathId]:
		"""Strict descendants (explicit stack, no recursion)."""
		stack = list(reversed(self._nodes[pid].children))
		while stack:
			cur = stack.pop()
			yield cur
			stack.extend(reversed(self._nodes[cur].children))

	def is_prefix_of(self, a: PathId, b: PathId) -> bool:
		if a == b:
			return True
		return any(anc == a for anc in self.ancestors(b))

	def conflicts(self, a: PathId, b: PathId) -> bool:
		if a == b:
			return True
		return conflicts(self._nodes[a].place, self._nodes[b].place)


__all__ = [
	"Perm",
	"ALL_PERMS",
	"meet_perms",
	"binding_perms",
	"IndexKind",
	"FieldProj",
	"IndexProj",
	"DerefProj",
	"Projection",
	"PlaceKind",
	"PlaceBase",
	"Place",
	"PlaceState",
	"merge_place_state",
	"root_of",
	"is_prefix_of",
	"conflicts",
	"PathId",
	"PathTable",
]
