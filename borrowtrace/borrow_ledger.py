# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow ledger: active borrows per value and the exclusivity rule.

For every value the set of active borrows is one of:
  - empty,
  - any number of SHARED borrows,
  - exactly one MUTABLE borrow.

`_conflict_for` is the single place deciding whether a new access may coexist
with the active set; every request goes through it. Borrows end either by an
explicit release or when the scope that created them closes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Set, Union

from borrowtrace.core.diagnostics import Diagnostic, DiagnosticCollector, DiagnosticKind
from borrowtrace.scopes import ScopeStack
from borrowtrace.values import ValueTable

logger = logging.getLogger(__name__)


class BorrowKind(Enum):
	SHARED = auto()
	MUTABLE = auto()


@dataclass(eq=False)
class Borrow:
	"""A non-owning access grant over `value_id`, bounded by `scope_id`."""

	borrow_id: int
	kind: BorrowKind
	value_id: int
	scope_id: int
	active: bool = True


# (requested, already active) -> violation reported for the request.
_CONFLICTS: Dict[tuple[BorrowKind, BorrowKind], DiagnosticKind] = {
	(BorrowKind.SHARED, BorrowKind.MUTABLE): DiagnosticKind.SHARED_BORROW_CONFLICT,
	(BorrowKind.MUTABLE, BorrowKind.SHARED): DiagnosticKind.MUTABLE_BORROW_CONFLICT,
	(BorrowKind.MUTABLE, BorrowKind.MUTABLE): DiagnosticKind.MUTABLE_BORROW_CONFLICT,
}


class BorrowLedger:
	def __init__(self, values: ValueTable, scopes: ScopeStack, diagnostics: DiagnosticCollector) -> None:
		self.values = values
		self.scopes = scopes
		self.diagnostics = diagnostics
		self.borrows: Dict[int, Borrow] = {}
		# Ids consumed by requests that were refused; releasing them is a no-op.
		self.refused: Set[int] = set()
		self._active: Dict[int, List[Borrow]] = {}
		self._next_id = 0
		scopes.ledger = self

	def active_on(self, value_id: int) -> List[Borrow]:
		return list(self._active.get(value_id, ()))

	def _conflict_for(self, kind: BorrowKind, value_id: int) -> Optional[tuple[DiagnosticKind, Borrow]]:
		"""First active borrow of `value_id` that excludes a new `kind` access."""
		for held in self._active.get(value_id, ()):
			violation = _CONFLICTS.get((kind, held.kind))
			if violation is not None:
				return violation, held
		return None

	def check_access(self, kind: BorrowKind, value_id: int, action: str) -> bool:
		"""
		Report a conflict if a `kind` access to `value_id` is not allowed now.

		Used for accesses that do not register a borrow themselves (sequence
		transforms, strict owner reads).
		"""
		conflict = self._conflict_for(kind, value_id)
		if conflict is None:
			return True
		violation, held = conflict
		self.diagnostics.report(
			violation,
			f"cannot {action} value {value_id}: {held.kind.name.lower()} borrow {held.borrow_id} is active",
			value_id,
			held.borrow_id,
		)
		return False

	def _allocate(self, borrow_id: Optional[int]) -> int:
		if borrow_id is None:
			borrow_id = self._next_id
		elif borrow_id in self.borrows or borrow_id in self.refused:
			self.diagnostics.abort(
				DiagnosticKind.MALFORMED_REFERENCE, f"borrow id {borrow_id} is already in use", borrow_id
			)
		self._next_id = max(self._next_id, borrow_id + 1)
		return borrow_id

	def request(
		self, kind: BorrowKind, name: str, scope_id: int, borrow_id: Optional[int] = None
	) -> Union[int, Diagnostic]:
		"""Borrow the value owned by `name`; returns the borrow id or the violation."""
		scope = self.scopes.require_open(scope_id)
		borrow_id = self._allocate(borrow_id)
		mark = self.diagnostics.mark()
		action = "mutably borrow" if kind is BorrowKind.MUTABLE else "borrow"
		resolved = self.scopes.resolve_live(name, action)
		if resolved is None:
			self.refused.add(borrow_id)
			return self.diagnostics.since(mark)[0]
		_, value = resolved
		conflict = self._conflict_for(kind, value.value_id)
		if conflict is not None:
			violation, held = conflict
			self.refused.add(borrow_id)
			return self.diagnostics.report(
				violation,
				f"cannot {action} '{name}' (value {value.value_id}): "
				f"{held.kind.name.lower()} borrow {held.borrow_id} is active",
				name,
				value.value_id,
				held.borrow_id,
			)
		borrow = Borrow(borrow_id=borrow_id, kind=kind, value_id=value.value_id, scope_id=scope_id)
		self.borrows[borrow_id] = borrow
		self._active.setdefault(value.value_id, []).append(borrow)
		scope.borrow_ids.append(borrow_id)
		return borrow_id

	def release(self, borrow_id: int) -> Optional[Diagnostic]:
		"""
		End `borrow_id`; a second release is reported as DoubleRelease.

		Ending a refused borrow is a no-op without a diagnostic: the refusal
		itself was already reported when the borrow was requested.
		"""
		if borrow_id in self.refused:
			logger.debug("end of refused borrow %d ignored", borrow_id)
			return None
		borrow = self.borrows.get(borrow_id)
		if borrow is None:
			self.diagnostics.abort(DiagnosticKind.MALFORMED_REFERENCE, f"borrow {borrow_id} does not exist", borrow_id)
		if not borrow.active:
			return self.diagnostics.report(
				DiagnosticKind.DOUBLE_RELEASE,
				f"borrow {borrow_id} of value {borrow.value_id} is no longer active",
				borrow_id,
				borrow.value_id,
			)
		self.deactivate(borrow)
		return None

	def deactivate(self, borrow: Borrow) -> None:
		borrow.active = False
		held = self._active.get(borrow.value_id, [])
		if borrow in held:
			held.remove(borrow)
		if not held:
			self._active.pop(borrow.value_id, None)

	def end_scope(self, scope_id: int) -> List[Borrow]:
		"""Deactivate every still-active borrow created in `scope_id`."""
		ended = []
		for borrow_id in self.scopes.scopes[scope_id].borrow_ids:
			borrow = self.borrows[borrow_id]
			if borrow.active:
				self.deactivate(borrow)
				ended.append(borrow)
		return ended

	def exclusive(self, value_id: int) -> bool:
		"""Invariant check: no active MUTABLE borrow shares the value with another borrow."""
		held = self._active.get(value_id, ())
		mutable = sum(1 for b in held if b.kind is BorrowKind.MUTABLE)
		return mutable == 0 or len(held) == 1


__all__ = ["Borrow", "BorrowKind", "BorrowLedger"]
