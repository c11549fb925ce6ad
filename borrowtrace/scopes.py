# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope stack and drop simulator.

Scopes are lexical regions identified by integer ids and kept on a stack;
they close in strict LIFO order. Closing a scope:

  (a) deactivates the borrows created in it (implicit end, no diagnostic);
  (b) drops every value whose home binding lives in it, latest binding first,
      checking the value state before each transition so nothing is dropped
      twice;
  (c) pops it, making its bindings invisible to later lookups.

A value dropped while a borrow from an outer scope still points at it is
reported as `BorrowOutlivesOwner` and that borrow is ended with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from borrowtrace.core.diagnostics import DiagnosticCollector, DiagnosticKind
from borrowtrace.values import Binding, Value, ValueState, ValueTable

if TYPE_CHECKING:
	from borrowtrace.borrow_ledger import BorrowLedger

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Scope:
	scope_id: int
	parent_id: Optional[int]
	bindings: List[Binding] = field(default_factory=list)  # declaration order, shadowed ones included
	borrow_ids: List[int] = field(default_factory=list)
	visible: Dict[str, Binding] = field(default_factory=dict)
	is_open: bool = True


class ScopeStack:
	"""Open-scope stack plus name resolution over it."""

	def __init__(self, values: ValueTable, diagnostics: DiagnosticCollector) -> None:
		self.values = values
		self.diagnostics = diagnostics
		self.scopes: Dict[int, Scope] = {}
		self.stack: List[int] = []
		# (op_index, value_id) for every simulated drop, in order.
		self.drop_log: List[Tuple[int, int]] = []
		# Wired by BorrowLedger so closing a scope can end its borrows.
		self.ledger: Optional["BorrowLedger"] = None

	@property
	def top(self) -> Optional[Scope]:
		return self.scopes[self.stack[-1]] if self.stack else None

	def open_scope(self, scope_id: Optional[int] = None) -> int:
		if scope_id is None:
			scope_id = max(self.scopes, default=-1) + 1
		elif scope_id in self.scopes:
			self.diagnostics.abort(
				DiagnosticKind.MALFORMED_REFERENCE, f"scope {scope_id} was already opened", scope_id
			)
		parent = self.stack[-1] if self.stack else None
		self.scopes[scope_id] = Scope(scope_id=scope_id, parent_id=parent)
		self.stack.append(scope_id)
		return scope_id

	def require_open(self, scope_id: int) -> Scope:
		"""Return the open scope `scope_id`; unknown or closed ids abort the pass."""
		scope = self.scopes.get(scope_id)
		if scope is None:
			self.diagnostics.abort(DiagnosticKind.MALFORMED_REFERENCE, f"scope {scope_id} does not exist", scope_id)
		if not scope.is_open:
			self.diagnostics.abort(
				DiagnosticKind.MALFORMED_REFERENCE, f"scope {scope_id} was already closed", scope_id
			)
		return scope

	def innermost(self) -> Scope:
		if not self.stack:
			self.diagnostics.abort(DiagnosticKind.MALFORMED_REFERENCE, "no scope is open")
		return self.scopes[self.stack[-1]]

	# -------------------------------------------------------------------
	# Name resolution
	# -------------------------------------------------------------------

	def lookup(self, name: str) -> Optional[Binding]:
		"""Innermost visible binding for `name`, if any."""
		for scope_id in reversed(self.stack):
			binding = self.scopes[scope_id].visible.get(name)
			if binding is not None:
				return binding
		return None

	def bound_elsewhere(self, name: str, scope_id: int) -> Optional[Binding]:
		"""A binding of `name` visible in an open scope other than `scope_id`."""
		for sid in reversed(self.stack):
			if sid == scope_id:
				continue
			binding = self.scopes[sid].visible.get(name)
			if binding is not None:
				return binding
		return None

	def resolve_live(self, name: str, action: str) -> Optional[Tuple[Binding, Value]]:
		"""
		Resolve `name` to the live value it owns.

		Reports UnboundNameReferenced / UseAfterMove / UseAfterDrop and returns
		None when the binding cannot be used. `action` names the attempted
		operation in the diagnostic detail.
		"""
		binding = self.lookup(name)
		if binding is None:
			self.diagnostics.report(
				DiagnosticKind.UNBOUND_NAME_REFERENCED, f"cannot {action} '{name}': name is not bound", name
			)
			return None
		value = self.values.get(binding.value_id)
		if value is None:
			self.diagnostics.abort(
				DiagnosticKind.MALFORMED_REFERENCE,
				f"binding '{name}' points at unknown value {binding.value_id}",
				name,
				binding.value_id,
			)
		if binding.moved_out:
			new_home = value.home.describe() if value.home is not None else "<unknown>"
			self.diagnostics.report(
				DiagnosticKind.USE_AFTER_MOVE,
				f"cannot {action} '{name}': value {value.value_id} was moved to {new_home}",
				name,
				value.value_id,
			)
			return None
		if value.state is ValueState.DROPPED:
			self.diagnostics.report(
				DiagnosticKind.USE_AFTER_DROP,
				f"cannot {action} '{name}': value {value.value_id} was already dropped",
				name,
				value.value_id,
			)
			return None
		return binding, value

	def check_new_name(self, name: str, scope: Scope) -> bool:
		"""
		Report DuplicateBinding when `name` is visible from another open scope.

		Rebinding inside the same scope is shadowing and is allowed.
		"""
		other = self.bound_elsewhere(name, scope.scope_id)
		if other is None:
			return True
		self.diagnostics.report(
			DiagnosticKind.DUPLICATE_BINDING,
			f"'{name}' is already bound in enclosing scope {other.scope_id}",
			name,
			other.value_id,
		)
		return False

	def add_binding(self, scope: Scope, binding: Binding) -> None:
		"""Register `binding`; a named one shadows earlier bindings of its name in `scope`."""
		scope.bindings.append(binding)
		if binding.name is not None:
			scope.visible[binding.name] = binding

	# -------------------------------------------------------------------
	# Drop simulation
	# -------------------------------------------------------------------

	def drop(self, value: Value) -> bool:
		"""Transition `value` to DROPPED; a second drop is reported, not applied."""
		if value.state is ValueState.DROPPED:
			self.diagnostics.report(
				DiagnosticKind.DOUBLE_DROP, f"value {value.value_id} was already dropped", value.value_id
			)
			return False
		value.state = ValueState.DROPPED
		self.drop_log.append((self.diagnostics.op_index, value.value_id))
		return True

	def close_scope(self, scope_id: int) -> List[int]:
		"""Close the innermost scope; returns the ids of the values it dropped."""
		scope = self.scopes.get(scope_id)
		if scope is None:
			self.diagnostics.abort(DiagnosticKind.MALFORMED_REFERENCE, f"scope {scope_id} does not exist", scope_id)
		if not self.stack or self.stack[-1] != scope_id:
			if not scope.is_open:
				detail = f"scope {scope_id} was already closed"
			else:
				detail = f"cannot close scope {scope_id}: innermost open scope is {self.stack[-1]}"
			self.diagnostics.abort(DiagnosticKind.SCOPE_ORDER_VIOLATION, detail, scope_id)

		if self.ledger is not None:
			self.ledger.end_scope(scope_id)

		dropped: List[int] = []
		for binding in reversed(scope.bindings):
			if not self.values.owns(binding):
				continue
			value = self.values.get(binding.value_id)
			if self.ledger is not None:
				for borrow in self.ledger.active_on(value.value_id):
					self.diagnostics.report(
						DiagnosticKind.BORROW_OUTLIVES_OWNER,
						f"borrow {borrow.borrow_id} from scope {borrow.scope_id} outlives "
						f"{binding.describe()} dropped at the end of scope {scope_id}",
						borrow.borrow_id,
						value.value_id,
					)
					self.ledger.deactivate(borrow)
			if self.drop(value):
				dropped.append(value.value_id)

		scope.is_open = False
		self.stack.pop()
		logger.debug("closed scope %s, dropped values %s", scope_id, dropped)
		return dropped


__all__ = ["Scope", "ScopeStack"]
