# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Trace locations attached to operations and diagnostics.

Operations built by hand carry the sentinel `Span()`; operations produced by
the trace reader carry the file/line/column of the line they came from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort trace location (file/line/column)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None

	@classmethod
	def from_meta(cls, meta: Any, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from a lark `Meta` (or anything with line/column).

		Empty metas (rules that matched nothing) produce the sentinel span.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		return cls(file=file, line=getattr(meta, "line", None), column=getattr(meta, "column", None))

	@property
	def known(self) -> bool:
		return self.line is not None

	def __str__(self) -> str:
		where = self.file or "<trace>"
		if self.line is None:
			return where
		if self.column is None:
			return f"{where}:{self.line}"
		return f"{where}:{self.line}:{self.column}"


__all__ = ["Span"]
