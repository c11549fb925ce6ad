# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ownership tracker: Bind / Move / Use / Drop.

Tracks which binding owns each value. A move does not create a new value; it
relocates ownership to the destination binding (the value's new `home`) and
flags the source binding so that later references through it are reported as
use-after-move. Violations leave the tables untouched.
"""

from __future__ import annotations

from typing import List, Optional

from borrowtrace.borrow_ledger import BorrowKind, BorrowLedger
from borrowtrace.core.diagnostics import Diagnostic, DiagnosticCollector, DiagnosticKind
from borrowtrace.options import EngineOptions
from borrowtrace.scopes import ScopeStack
from borrowtrace.trace.ops import Bind, Drop, Move, Operation, Use
from borrowtrace.values import Binding, ValueState, ValueTable


class OwnershipTracker:
	"""Applies ownership operations against the shared value/scope tables."""

	def __init__(
		self,
		values: ValueTable,
		scopes: ScopeStack,
		ledger: BorrowLedger,
		diagnostics: DiagnosticCollector,
		options: Optional[EngineOptions] = None,
	) -> None:
		self.values = values
		self.scopes = scopes
		self.ledger = ledger
		self.diagnostics = diagnostics
		self.options = options or EngineOptions()

	def apply(self, op: Operation) -> List[Diagnostic]:
		"""Apply one ownership operation; returns the diagnostics it produced."""
		mark = self.diagnostics.mark()
		if isinstance(op, Bind):
			self.bind(op.name, op.value_id, op.scope_id, op.contents)
		elif isinstance(op, Move):
			self.move(op.src, op.dest)
		elif isinstance(op, Use):
			self.use(op.name)
		elif isinstance(op, Drop):
			self.drop(op.name)
		else:
			raise TypeError(f"not an ownership operation: {type(op).__name__}")
		return self.diagnostics.since(mark)

	def bind(self, name: str, value_id: int, scope_id: int, contents=()) -> Optional[Binding]:
		scope = self.scopes.require_open(scope_id)
		if value_id in self.values:
			self.diagnostics.report(
				DiagnosticKind.DUPLICATE_BINDING,
				f"cannot bind '{name}': value {value_id} already exists",
				name,
				value_id,
			)
			return None
		if not self.scopes.check_new_name(name, scope):
			return None
		binding = Binding(name=name, value_id=value_id, scope_id=scope_id)
		self.values.create(value_id, binding, contents)
		self.scopes.add_binding(scope, binding)
		return binding

	def move(self, src: str, dest: str) -> Optional[Binding]:
		resolved = self.scopes.resolve_live(src, "move")
		if resolved is None:
			return None
		src_binding, value = resolved
		active = self.ledger.active_on(value.value_id)
		if active:
			self.diagnostics.report(
				DiagnosticKind.MOVE_WHILE_BORROWED,
				f"cannot move '{src}' (value {value.value_id}) while borrowed",
				src,
				value.value_id,
				*(b.borrow_id for b in active),
			)
			return None
		scope = self.scopes.innermost()
		if not self.scopes.check_new_name(dest, scope):
			return None
		dest_binding = Binding(name=dest, value_id=value.value_id, scope_id=scope.scope_id)
		src_binding.moved_out = True
		value.state = ValueState.MOVED
		value.home = dest_binding
		self.scopes.add_binding(scope, dest_binding)
		return dest_binding

	def use(self, name: str) -> bool:
		resolved = self.scopes.resolve_live(name, "use")
		if resolved is None:
			return False
		if self.options.reject_use_while_mutably_borrowed:
			_, value = resolved
			return self.ledger.check_access(BorrowKind.SHARED, value.value_id, "read")
		return True

	def drop(self, name: str) -> bool:
		"""Explicit early release of the value owned by `name`."""
		binding = self.scopes.lookup(name)
		if binding is not None and not binding.moved_out:
			value = self.values.get(binding.value_id)
			if value is not None and value.state is ValueState.DROPPED:
				return self.scopes.drop(value)
		resolved = self.scopes.resolve_live(name, "drop")
		if resolved is None:
			return False
		_, value = resolved
		active = self.ledger.active_on(value.value_id)
		if active:
			self.diagnostics.report(
				DiagnosticKind.MOVE_WHILE_BORROWED,
				f"cannot drop '{name}' (value {value.value_id}) while borrowed",
				name,
				value.value_id,
				*(b.borrow_id for b in active),
			)
			return False
		return self.scopes.drop(value)


__all__ = ["OwnershipTracker"]
