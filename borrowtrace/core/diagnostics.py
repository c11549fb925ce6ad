# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured diagnostics produced by the verification pass.

Every violation is reported as an immutable `Diagnostic` record; nothing is
rendered to text here. An external reporter consumes `to_dict()` output or the
records themselves.

Two severities exist:
- ordinary violations are collected and the pass continues, treating the
  offending operation as a no-op on engine state;
- fatal (structural) violations abort the pass. Components signal them by
  raising `VerificationAborted`, which the engine converts back into a final
  diagnostic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NoReturn, Optional, Tuple, Union

from .span import Span

InvolvedId = Union[int, str]


class DiagnosticKind(Enum):
	"""Violation taxonomy."""

	UNBOUND_NAME_REFERENCED = "UnboundNameReferenced"
	DUPLICATE_BINDING = "DuplicateBinding"
	USE_AFTER_MOVE = "UseAfterMove"
	USE_AFTER_DROP = "UseAfterDrop"
	MOVE_WHILE_BORROWED = "MoveWhileBorrowed"
	MUTABLE_BORROW_CONFLICT = "MutableBorrowConflict"
	SHARED_BORROW_CONFLICT = "SharedBorrowConflict"
	DOUBLE_RELEASE = "DoubleRelease"
	DOUBLE_DROP = "DoubleDrop"
	BORROW_OUTLIVES_OWNER = "BorrowOutlivesOwner"
	# Structural errors: the pass cannot continue.
	SCOPE_ORDER_VIOLATION = "ScopeOrderViolation"
	MALFORMED_REFERENCE = "MalformedReference"

	@property
	def is_fatal(self) -> bool:
		return self in _FATAL_KINDS


_FATAL_KINDS = frozenset({DiagnosticKind.SCOPE_ORDER_VIOLATION, DiagnosticKind.MALFORMED_REFERENCE})


@dataclass(frozen=True)
class Diagnostic:
	"""A detected violation at a given position of the operation log."""

	op_index: int
	kind: DiagnosticKind
	involved_ids: Tuple[InvolvedId, ...] = ()
	detail: str = ""
	span: Span = field(default_factory=Span)

	@property
	def fatal(self) -> bool:
		return self.kind.is_fatal

	def to_dict(self) -> Dict[str, Any]:
		d: Dict[str, Any] = {
			"op_index": self.op_index,
			"kind": self.kind.value,
			"involved_ids": list(self.involved_ids),
			"detail": self.detail,
			"fatal": self.fatal,
		}
		if self.span.known:
			d["span"] = {"file": self.span.file, "line": self.span.line, "column": self.span.column}
		return d

	def __str__(self) -> str:
		return f"[{self.kind.value}] op #{self.op_index}: {self.detail}"


class VerificationAborted(Exception):
	"""Raised by engine components when a structural error ends the pass."""

	def __init__(self, diagnostic: Diagnostic) -> None:
		super().__init__(str(diagnostic))
		self.diagnostic = diagnostic


@dataclass
class DiagnosticCollector:
	"""
	Ordered diagnostic sink shared by the engine components.

	The engine calls `begin()` before dispatching each operation so components
	never have to thread the operation index and span through their APIs.
	"""

	diagnostics: List[Diagnostic] = field(default_factory=list)
	op_index: int = -1
	span: Span = field(default_factory=Span)

	def begin(self, op_index: int, span: Optional[Span] = None) -> None:
		self.op_index = op_index
		self.span = span or Span()

	def mark(self) -> int:
		"""Return a position usable with `since()`."""
		return len(self.diagnostics)

	def since(self, mark: int) -> List[Diagnostic]:
		return self.diagnostics[mark:]

	def _make(self, kind: DiagnosticKind, detail: str, involved: Tuple[InvolvedId, ...]) -> Diagnostic:
		return Diagnostic(op_index=self.op_index, kind=kind, involved_ids=tuple(involved), detail=detail, span=self.span)

	def report(self, kind: DiagnosticKind, detail: str, *involved: InvolvedId) -> Diagnostic:
		"""Record a non-fatal violation and return it."""
		if kind.is_fatal:
			raise ValueError(f"{kind.value} is structural; use abort()")
		diag = self._make(kind, detail, involved)
		self.diagnostics.append(diag)
		return diag

	def abort(self, kind: DiagnosticKind, detail: str, *involved: InvolvedId) -> NoReturn:
		"""Raise `VerificationAborted`; the engine records the diagnostic."""
		raise VerificationAborted(self._make(kind, detail, involved))


__all__ = [
	"Diagnostic",
	"DiagnosticCollector",
	"DiagnosticKind",
	"InvolvedId",
	"VerificationAborted",
]
