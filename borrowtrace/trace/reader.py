# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reader for the textual trace format.

The engine itself only consumes operation records; this module exists so
traces can live in fixture files and be written by hand. See `grammar.lark`
for the syntax. Each produced operation carries the span of its line.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from borrowtrace.core.span import Span
from .ops import (
	Bind,
	BorrowMutable,
	BorrowShared,
	CloseScope,
	Drop,
	ElementFn,
	EndBorrow,
	Move,
	MutateInPlace,
	OpenScope,
	Operation,
	ProjectToNew,
	Use,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=True,
)


class TraceSyntaxError(ValueError):
	"""
	Malformed trace text.

	A `ValueError` subclass carrying the best-effort `span` of the offending
	input, so drivers can report it without unwrapping lark exceptions.
	"""

	def __init__(self, message: str, *, span: Span) -> None:
		super().__init__(f"{span}: {message}")
		self.span = span


def parse_trace(source: str, *, file: Optional[str] = None) -> List[Operation]:
	"""Parse trace text into operation records."""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		span = Span(file=file, line=getattr(err, "line", None), column=getattr(err, "column", None))
		raise TraceSyntaxError(_describe(err), span=span) from err
	return [_build_op(child, file) for child in tree.children if isinstance(child, Tree)]


def read_trace_file(path: str | Path) -> List[Operation]:
	p = Path(path)
	return parse_trace(p.read_text(), file=str(p))


def _describe(err: UnexpectedInput) -> str:
	token = getattr(err, "token", None)
	if token is not None:
		return f"unexpected {token.type} {token.value!r}"
	char = getattr(err, "char", None)
	if char is not None:
		return f"unexpected character {char!r}"
	return "unexpected input"


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	return node.type


def _int(tok: Optional[Token]) -> Optional[int]:
	return None if tok is None else int(tok.value)


def _number(tree: Tree) -> int:
	toks = [c for c in tree.children if isinstance(c, Token)]
	value = int(toks[-1].value)
	return -value if toks[0].value == "-" else value


def _element_fn(tree: Tree, file: Optional[str]) -> ElementFn:
	op_tree, number = tree.children
	op_tok = next(c for c in op_tree.children if isinstance(c, Token))
	try:
		return ElementFn(op=op_tok.value, operand=_number(number))
	except ValueError as err:
		raise TraceSyntaxError(str(err), span=Span.from_meta(number.meta, file)) from err


def _sequence(tree: Optional[Tree]) -> tuple[int, ...]:
	if tree is None:
		return ()
	return tuple(_number(c) for c in tree.children if isinstance(c, Tree))


def _build_op(tree: Tree, file: Optional[str]) -> Operation:
	kind = _name(tree)
	span = Span.from_meta(tree.meta, file)
	args: Sequence = tree.children
	if kind == "open_scope":
		return OpenScope(scope_id=_int(args[0]), span=span)
	if kind == "close_scope":
		return CloseScope(scope_id=int(args[0]), span=span)
	if kind == "bind":
		name, value_id, scope_id, seq = args
		return Bind(name=str(name), value_id=int(value_id), scope_id=int(scope_id), contents=_sequence(seq), span=span)
	if kind == "move":
		src, dest = args
		return Move(src=str(src), dest=str(dest), span=span)
	if kind == "borrow":
		kind_tree, name, scope_id, borrow_id = args
		flavor = kind_tree.children[0].value
		cls = BorrowMutable if flavor == "mut" else BorrowShared
		return cls(name=str(name), scope_id=int(scope_id), borrow_id=_int(borrow_id), span=span)
	if kind == "end_borrow":
		return EndBorrow(borrow_id=int(args[0]), span=span)
	if kind == "use":
		return Use(name=str(args[0]), span=span)
	if kind == "drop":
		return Drop(name=str(args[0]), span=span)
	if kind == "mutate":
		value_id, fn = args
		return MutateInPlace(value_id=int(value_id), fn=_element_fn(fn, file), span=span)
	if kind == "project":
		value_id, fn, new_id, scope_id, dest = args
		return ProjectToNew(
			value_id=int(value_id),
			fn=_element_fn(fn, file),
			new_value_id=_int(new_id),
			dest=None if dest is None else str(dest),
			scope_id=_int(scope_id),
			span=span,
		)
	raise ValueError(f"unsupported trace node: {kind}")


__all__ = ["TraceSyntaxError", "parse_trace", "read_trace_file"]
