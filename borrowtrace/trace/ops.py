# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Operation records making up a verification trace.

A trace is an ordered sequence of these records. They are produced either by
an external front end or by `borrowtrace.trace.reader` from the textual trace
format. Every record carries a `span` (sentinel `Span()` when built by hand);
spans never take part in equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple, Union

from borrowtrace.core.span import Span

ElementFunction = Callable[[int], int]


@dataclass(frozen=True)
class ElementFn:
	"""
	Per-element integer function used by the textual trace format.

	Any callable works for `MutateInPlace`/`ProjectToNew`; this one is
	hashable and printable so parsed traces compare equal.
	"""

	op: str
	operand: int

	def __post_init__(self) -> None:
		if self.op in ("div", "mod") and self.operand == 0:
			raise ValueError(f"element function '{self.op} 0' divides by zero")

	def __call__(self, element: int) -> int:
		if self.op == "add":
			return element + self.operand
		if self.op == "sub":
			return element - self.operand
		if self.op == "mul":
			return element * self.operand
		if self.op == "div":
			return element // self.operand
		if self.op == "mod":
			return element % self.operand
		raise ValueError(f"unknown element function '{self.op}'")

	def __str__(self) -> str:
		return f"{self.op} {self.operand}"


@dataclass(frozen=True)
class Bind:
	"""Create a fresh owned value `value_id` bound to `name` in `scope_id`."""

	name: str
	value_id: int
	scope_id: int
	contents: Tuple[int, ...] = ()
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Move:
	"""Transfer ownership from `src` to a new binding `dest` in the innermost scope."""

	src: str
	dest: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class BorrowShared:
	name: str
	scope_id: int
	borrow_id: Optional[int] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class BorrowMutable:
	name: str
	scope_id: int
	borrow_id: Optional[int] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class EndBorrow:
	borrow_id: int
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Use:
	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Drop:
	"""Explicitly release the value owned by `name` before its scope ends."""

	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class OpenScope:
	scope_id: Optional[int] = None
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class CloseScope:
	scope_id: int
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class MutateInPlace:
	"""Overwrite every element of `value_id` with `fn(element)`."""

	value_id: int
	fn: ElementFunction
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ProjectToNew:
	"""
	Build a new owned value from `fn` applied to each element of `value_id`.

	`new_value_id` defaults to the next free id. The result is bound to `dest`
	(or an anonymous binding) in `scope_id`, defaulting to the innermost scope.
	"""

	value_id: int
	fn: ElementFunction
	new_value_id: Optional[int] = None
	dest: Optional[str] = None
	scope_id: Optional[int] = None
	span: Span = field(default_factory=Span, compare=False)


Operation = Union[
	Bind,
	Move,
	BorrowShared,
	BorrowMutable,
	EndBorrow,
	Use,
	Drop,
	OpenScope,
	CloseScope,
	MutateInPlace,
	ProjectToNew,
]

OperationLog = Sequence[Operation]


__all__ = [
	"Bind",
	"BorrowMutable",
	"BorrowShared",
	"CloseScope",
	"Drop",
	"ElementFn",
	"ElementFunction",
	"EndBorrow",
	"Move",
	"MutateInPlace",
	"OpenScope",
	"Operation",
	"OperationLog",
	"ProjectToNew",
	"Use",
]
