# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Verification engine: one deterministic pass over an operation log.

Operations are applied strictly in order. Each one updates the ownership and
borrow tables and may add diagnostics; scope-boundary operations go to the
scope stack, which simulates drops. A violating operation is a no-op on the
tables, so later operations are checked against a consistent model. A
structural error (`ScopeOrderViolation`, `MalformedReference`) ends the pass:
the diagnostics collected so far are returned followed by the fatal one.

The engine holds its tables unguarded; use one instance per pass and do not
share it between threads.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from borrowtrace.borrow_ledger import BorrowKind, BorrowLedger
from borrowtrace.core.diagnostics import Diagnostic, DiagnosticCollector, VerificationAborted
from borrowtrace.options import EngineOptions
from borrowtrace.ownership import OwnershipTracker
from borrowtrace.scopes import ScopeStack
from borrowtrace.sequence_transform import SequenceTransformSelector
from borrowtrace.trace.ops import (
	Bind,
	BorrowMutable,
	BorrowShared,
	CloseScope,
	Drop,
	EndBorrow,
	Move,
	MutateInPlace,
	OpenScope,
	Operation,
	ProjectToNew,
	Use,
)
from borrowtrace.values import ValueTable

logger = logging.getLogger(__name__)


class VerificationEngine:
	"""Owns the tables of one verification pass; inspectable after `verify()`."""

	def __init__(self, options: Optional[EngineOptions] = None) -> None:
		self.options = options or EngineOptions()
		self.collector = DiagnosticCollector()
		self.values = ValueTable()
		self.scopes = ScopeStack(self.values, self.collector)
		self.ledger = BorrowLedger(self.values, self.scopes, self.collector)
		self.tracker = OwnershipTracker(self.values, self.scopes, self.ledger, self.collector, self.options)
		self.transforms = SequenceTransformSelector(self.values, self.scopes, self.ledger, self.collector)
		self.aborted = False
		self._ran = False

	@property
	def diagnostics(self) -> List[Diagnostic]:
		return self.collector.diagnostics

	def verify(self, log: Iterable[Operation]) -> List[Diagnostic]:
		"""Run the pass over `log` and return every diagnostic, in order."""
		if self._ran:
			raise RuntimeError("VerificationEngine instances run a single pass; create a new one")
		self._ran = True
		index = -1
		try:
			for index, op in enumerate(log):
				self.step(index, op)
				if self._limit_reached():
					logger.debug("diagnostic limit reached at op #%d", index)
					return list(self.diagnostics)
			if self.options.close_open_scopes_at_end:
				self.collector.begin(index + 1)
				for scope_id in reversed(list(self.scopes.stack)):
					self.scopes.close_scope(scope_id)
		except VerificationAborted as err:
			self.aborted = True
			self.diagnostics.append(err.diagnostic)
			logger.debug("pass aborted: %s", err.diagnostic)
		return list(self.diagnostics)

	def _limit_reached(self) -> bool:
		limit = self.options.max_diagnostics
		return limit is not None and len(self.diagnostics) >= limit

	def step(self, index: int, op: Operation) -> None:
		"""Apply one operation at log position `index`."""
		self.collector.begin(index, getattr(op, "span", None))
		if isinstance(op, (Bind, Move, Use, Drop)):
			self.tracker.apply(op)
		elif isinstance(op, OpenScope):
			self.scopes.open_scope(op.scope_id)
		elif isinstance(op, CloseScope):
			self.scopes.close_scope(op.scope_id)
		elif isinstance(op, BorrowShared):
			self.ledger.request(BorrowKind.SHARED, op.name, op.scope_id, op.borrow_id)
		elif isinstance(op, BorrowMutable):
			self.ledger.request(BorrowKind.MUTABLE, op.name, op.scope_id, op.borrow_id)
		elif isinstance(op, EndBorrow):
			self.ledger.release(op.borrow_id)
		elif isinstance(op, MutateInPlace):
			self.transforms.mutate_in_place(op.value_id, op.fn)
		elif isinstance(op, ProjectToNew):
			self.transforms.project_to_new(op.value_id, op.fn, op.new_value_id, op.dest, op.scope_id)
		else:
			raise TypeError(f"unsupported operation: {type(op).__name__}")


def verify(log: Iterable[Operation], options: Optional[EngineOptions] = None) -> List[Diagnostic]:
	"""Verify `log` with a fresh engine and return its diagnostics."""
	return VerificationEngine(options).verify(log)


__all__ = ["VerificationEngine", "verify"]
