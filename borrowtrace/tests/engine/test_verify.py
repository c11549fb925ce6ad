# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""End-to-end engine behaviour: ordering, abort policy, options, output shape."""

import json

import pytest

from borrowtrace import DiagnosticKind as K
from borrowtrace import EngineOptions, VerificationEngine, load_options, verify
from borrowtrace.core.span import Span
from borrowtrace.trace.ops import Bind, BorrowMutable, BorrowShared, CloseScope, EndBorrow, Move, OpenScope, Use


def _kinds(diags) -> list:
	return [d.kind for d in diags]


def test_clean_trace_has_no_diagnostics():
	"""A well-formed program: bind, borrow, release, move, close."""
	log = [
		OpenScope(),
		Bind("s", 1, 0),
		BorrowShared("s", 0),
		BorrowShared("s", 0),
		EndBorrow(0),
		EndBorrow(1),
		BorrowMutable("s", 0),
		EndBorrow(2),
		Move("s", "t"),
		Use("t"),
		CloseScope(0),
	]
	assert verify(log) == []


def test_violations_do_not_stop_the_pass():
	"""Non-fatal violations are collected in log order and the pass continues."""
	log = [
		OpenScope(),
		Bind("x", 1, 0),
		BorrowMutable("x", 0),
		BorrowShared("x", 0),
		Move("x", "y"),
		EndBorrow(0),
		Move("x", "y"),
		Use("x"),
		EndBorrow(0),
	]
	diags = verify(log)
	assert _kinds(diags) == [
		K.SHARED_BORROW_CONFLICT,
		K.MOVE_WHILE_BORROWED,
		K.USE_AFTER_MOVE,
		K.DOUBLE_RELEASE,
	]
	assert [d.op_index for d in diags] == [3, 4, 7, 8]
	assert not any(d.fatal for d in diags)


def test_fatal_error_is_last_and_marks_engine_aborted():
	engine = VerificationEngine()
	diags = engine.verify([OpenScope(), Use("a"), OpenScope(), CloseScope(0), Use("b")])
	assert diags[-1].kind is K.SCOPE_ORDER_VIOLATION
	assert engine.aborted
	assert len(diags) == 2


def test_max_diagnostics_stops_early():
	"""With max_diagnostics the pass ends once the limit is reached."""
	log = [OpenScope(), Use("a"), Use("b"), Use("c"), Use("d")]
	diags = verify(log, EngineOptions(max_diagnostics=2))
	assert [d.op_index for d in diags] == [1, 2]


def test_engine_runs_a_single_pass():
	engine = VerificationEngine()
	engine.verify([OpenScope()])
	with pytest.raises(RuntimeError):
		engine.verify([OpenScope()])


def test_unknown_operation_type_is_a_programming_error():
	with pytest.raises(TypeError):
		verify([OpenScope(), object()])


def test_diagnostic_to_dict_is_json_ready():
	"""Diagnostics serialise to plain JSON with op index, kind, ids and span."""
	log = [OpenScope(), Bind("x", 1, 0), Move("x", "y"), Use("x", span=Span(file="t.trace", line=4, column=1))]
	(diag,) = verify(log)
	data = json.loads(json.dumps(diag.to_dict()))
	assert data == {
		"op_index": 3,
		"kind": "UseAfterMove",
		"involved_ids": ["x", 1],
		"detail": "cannot use 'x': value 1 was moved to 'y'",
		"fatal": False,
		"span": {"file": "t.trace", "line": 4, "column": 1},
	}


def test_diagnostic_without_span_omits_it():
	(diag,) = verify([OpenScope(), Use("x")])
	assert "span" not in diag.to_dict()
	assert str(diag).startswith("[UnboundNameReferenced] op #1")


def test_options_from_mapping_rejects_unknown_keys():
	with pytest.raises(ValueError):
		EngineOptions.from_mapping({"strict": True})
	opts = EngineOptions.from_mapping({"max_diagnostics": 3})
	assert opts.max_diagnostics == 3


def test_options_reject_non_positive_limit():
	with pytest.raises(ValueError):
		EngineOptions(max_diagnostics=0)


def test_load_options_from_json(tmp_path):
	path = tmp_path / "engine.json"
	path.write_text(json.dumps({"close_open_scopes_at_end": True, "reject_use_while_mutably_borrowed": True}))
	opts = load_options(path)
	assert opts.close_open_scopes_at_end
	assert opts.reject_use_while_mutably_borrowed
	assert opts.max_diagnostics is None


def test_load_options_requires_an_object(tmp_path):
	path = tmp_path / "engine.json"
	path.write_text("[1, 2]")
	with pytest.raises(ValueError):
		load_options(path)
