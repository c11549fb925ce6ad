# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
The two legal whole-sequence transforms.

- `mutate_in_place`: needs exclusive access (sole ownership, or the single
  active mutable borrow as access path). Elements are overwritten; the value
  keeps its identity and no value is created.
- `project_to_new`: needs only shared access. The source is read, never
  written; the result is a brand-new owned value bound in a scope of its own
  choosing and dropped with it.
"""

from __future__ import annotations

from typing import Optional

from borrowtrace.borrow_ledger import BorrowKind, BorrowLedger
from borrowtrace.core.diagnostics import DiagnosticCollector, DiagnosticKind
from borrowtrace.scopes import ScopeStack
from borrowtrace.trace.ops import ElementFunction
from borrowtrace.values import Binding, Value, ValueState, ValueTable


class SequenceTransformSelector:
	def __init__(
		self,
		values: ValueTable,
		scopes: ScopeStack,
		ledger: BorrowLedger,
		diagnostics: DiagnosticCollector,
	) -> None:
		self.values = values
		self.scopes = scopes
		self.ledger = ledger
		self.diagnostics = diagnostics

	def _live_value(self, value_id: int, action: str) -> Optional[Value]:
		value = self.values.get(value_id)
		if value is None:
			self.diagnostics.abort(DiagnosticKind.MALFORMED_REFERENCE, f"value {value_id} does not exist", value_id)
		if value.state is ValueState.DROPPED:
			self.diagnostics.report(
				DiagnosticKind.USE_AFTER_DROP, f"cannot {action} value {value_id}: already dropped", value_id
			)
			return None
		return value

	def mutate_in_place(self, value_id: int, fn: ElementFunction) -> bool:
		"""Apply `fn` to every element of `value_id`, in place."""
		value = self._live_value(value_id, "mutate")
		if value is None:
			return False
		held = self.ledger.active_on(value_id)
		through_mutable = len(held) == 1 and held[0].kind is BorrowKind.MUTABLE
		if not through_mutable and not self.ledger.check_access(BorrowKind.MUTABLE, value_id, "mutate"):
			return False
		value.contents[:] = [fn(element) for element in value.contents]
		return True

	def project_to_new(
		self,
		value_id: int,
		fn: ElementFunction,
		new_value_id: Optional[int] = None,
		dest: Optional[str] = None,
		scope_id: Optional[int] = None,
	) -> Optional[int]:
		"""Build a new value from `fn` over `value_id`; returns the new id."""
		source = self._live_value(value_id, "project")
		if source is None:
			return None
		if not self.ledger.check_access(BorrowKind.SHARED, value_id, "project"):
			return None
		scope = self.scopes.innermost() if scope_id is None else self.scopes.require_open(scope_id)
		if new_value_id is None:
			new_value_id = self.values.next_id()
		elif new_value_id in self.values:
			self.diagnostics.report(
				DiagnosticKind.DUPLICATE_BINDING,
				f"cannot project into value {new_value_id}: it already exists",
				new_value_id,
			)
			return None
		if dest is not None and not self.scopes.check_new_name(dest, scope):
			return None
		binding = Binding(name=dest, value_id=new_value_id, scope_id=scope.scope_id)
		self.values.create(new_value_id, binding, (fn(element) for element in source.contents))
		self.scopes.add_binding(scope, binding)
		return new_value_id


__all__ = ["SequenceTransformSelector"]
