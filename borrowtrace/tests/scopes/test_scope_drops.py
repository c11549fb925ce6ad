# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Scope stack and drop simulator tests."""

import pytest

from borrowtrace.core.diagnostics import DiagnosticCollector, DiagnosticKind as K, VerificationAborted
from borrowtrace.engine import VerificationEngine, verify
from borrowtrace.options import EngineOptions
from borrowtrace.scopes import ScopeStack
from borrowtrace.trace.ops import Bind, BorrowShared, CloseScope, EndBorrow, Move, OpenScope, Use
from borrowtrace.values import Binding, ValueState, ValueTable


def _kinds(diags) -> list:
	return [d.kind for d in diags]


def test_scope_ids_are_sequential_and_nested():
	"""Scopes get sequential ids and remember their parent."""
	engine = VerificationEngine()
	engine.verify([OpenScope(), OpenScope(), OpenScope()])
	assert engine.scopes.stack == [0, 1, 2]
	assert engine.scopes.scopes[2].parent_id == 1
	assert engine.scopes.scopes[0].parent_id is None


def test_close_drops_owned_values_in_reverse_order():
	"""Values are dropped exactly when their scope closes, latest binding first."""
	engine = VerificationEngine()
	diags = engine.verify([OpenScope(), Bind("a", 1, 0), Bind("b", 2, 0), Bind("c", 3, 0), CloseScope(0)])
	assert diags == []
	assert engine.scopes.drop_log == [(4, 3), (4, 2), (4, 1)]
	assert all(v.state is ValueState.DROPPED for v in engine.values)


def test_inner_scope_drops_only_its_own_values():
	"""Closing an inner scope leaves outer values alive."""
	engine = VerificationEngine()
	diags = engine.verify(
		[OpenScope(), Bind("a", 1, 0), OpenScope(), Bind("b", 2, 1), CloseScope(1), Use("a"), Use("b")]
	)
	assert _kinds(diags) == [K.UNBOUND_NAME_REFERENCED]
	assert engine.values.get(1).state is ValueState.OWNED
	assert engine.values.get(2).state is ValueState.DROPPED


def test_moved_value_is_dropped_with_destination_scope():
	"""Drop responsibility follows ownership to the destination binding."""
	engine = VerificationEngine()
	diags = engine.verify(
		[
			OpenScope(),
			Bind("out", 1, 0),
			OpenScope(),
			Bind("x", 2, 1),
			Move("out", "keep"),   # lands in scope 1
			CloseScope(1),
			Use("keep"),
		]
	)
	# `keep` lived in scope 1 and went away with it.
	assert _kinds(diags) == [K.UNBOUND_NAME_REFERENCED]
	assert [vid for _, vid in engine.scopes.drop_log] == [1, 2]


def test_outer_values_outlive_inner_scope():
	"""Outer values are dropped only when their own scope closes."""
	engine = VerificationEngine()
	diags = engine.verify(
		[
			OpenScope(),
			Bind("holder", 9, 0),
			OpenScope(),
			Bind("tmp", 1, 1),
			CloseScope(1),
			Use("holder"),
			CloseScope(0),
		]
	)
	assert diags == []
	assert [vid for _, vid in engine.scopes.drop_log] == [1, 9]


def test_each_value_dropped_at_most_once():
	"""Across nested scopes and moves, no value appears twice in the drop log."""
	engine = VerificationEngine()
	engine.verify(
		[
			OpenScope(),
			Bind("a", 1, 0),
			OpenScope(),
			Bind("b", 2, 1),
			Move("b", "c"),
			Move("c", "d"),
			CloseScope(1),
			Move("a", "e"),
			CloseScope(0),
		]
	)
	dropped = [vid for _, vid in engine.scopes.drop_log]
	assert sorted(dropped) == [1, 2]
	assert len(dropped) == len(set(dropped))


def test_out_of_order_close_aborts():
	"""Closing a scope that is not innermost is fatal and stops the pass."""
	diags = verify([OpenScope(), OpenScope(), CloseScope(0), Use("never")])
	assert _kinds(diags) == [K.SCOPE_ORDER_VIOLATION]
	assert diags[0].fatal
	assert diags[0].op_index == 2


def test_closing_a_closed_scope_aborts():
	"""A second close of the same scope is an ordering violation."""
	diags = verify([OpenScope(), OpenScope(), CloseScope(1), CloseScope(1)])
	assert _kinds(diags) == [K.SCOPE_ORDER_VIOLATION]


def test_closing_unknown_scope_is_malformed():
	"""A scope id that was never opened is a malformed reference."""
	diags = verify([OpenScope(), CloseScope(4)])
	assert _kinds(diags) == [K.MALFORMED_REFERENCE]


def test_diagnostics_before_abort_are_kept():
	"""A fatal error returns the earlier diagnostics followed by the fatal one."""
	diags = verify([OpenScope(), Use("a"), OpenScope(), CloseScope(0), Use("b")])
	assert _kinds(diags) == [K.UNBOUND_NAME_REFERENCED, K.SCOPE_ORDER_VIOLATION]


def test_borrow_from_outer_scope_outliving_value():
	"""Dropping a value under a borrow from an outer scope reports and ends that borrow."""
	engine = VerificationEngine()
	diags = engine.verify(
		[
			OpenScope(),
			OpenScope(),
			Bind("x", 1, 1),
			BorrowShared("x", 0),
			CloseScope(1),
			EndBorrow(0),
		]
	)
	assert _kinds(diags) == [K.BORROW_OUTLIVES_OWNER, K.DOUBLE_RELEASE]
	assert diags[0].involved_ids == (0, 1)
	assert engine.values.get(1).state is ValueState.DROPPED


def test_borrows_of_closed_scope_end_silently():
	"""Borrows created in a closing scope end without diagnostics; the value stays usable."""
	engine = VerificationEngine()
	diags = engine.verify(
		[
			OpenScope(),
			Bind("x", 1, 0),
			OpenScope(),
			BorrowShared("x", 1),
			BorrowShared("x", 1),
			CloseScope(1),
			Move("x", "y"),
		]
	)
	assert diags == []
	assert engine.ledger.active_on(1) == []


def test_open_scopes_closed_at_end_when_configured():
	"""With close_open_scopes_at_end the remaining scopes are closed innermost first."""
	engine = VerificationEngine(EngineOptions(close_open_scopes_at_end=True))
	diags = engine.verify([OpenScope(), Bind("a", 1, 0), OpenScope(), Bind("b", 2, 1)])
	assert diags == []
	assert engine.scopes.stack == []
	assert engine.scopes.drop_log == [(4, 2), (4, 1)]


def test_open_scopes_left_alone_by_default():
	"""Without the option, scopes still open at the end keep their values."""
	engine = VerificationEngine()
	engine.verify([OpenScope(), Bind("a", 1, 0)])
	assert engine.scopes.stack == [0]
	assert engine.scopes.drop_log == []


def test_reopening_scope_id_is_malformed():
	"""Explicit scope ids must be unique."""
	diags = verify([OpenScope(3), CloseScope(3), OpenScope(3)])
	assert _kinds(diags) == [K.MALFORMED_REFERENCE]


def test_binding_to_missing_value_aborts():
	"""A binding whose value is absent from the table is a malformed reference."""
	collector = DiagnosticCollector()
	scopes = ScopeStack(ValueTable(), collector)
	scope = scopes.scopes[scopes.open_scope()]
	scopes.add_binding(scope, Binding(name="ghost", value_id=7, scope_id=scope.scope_id))
	with pytest.raises(VerificationAborted) as excinfo:
		scopes.resolve_live("ghost", "use")
	assert excinfo.value.diagnostic.kind is K.MALFORMED_REFERENCE
	assert excinfo.value.diagnostic.involved_ids == ("ghost", 7)
