# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Engine options.

Defaults reproduce the plain rule set; every knob is opt-in. Options can be
built directly, from a mapping, or from a JSON file holding one object.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class EngineOptions:
	# Using the owner while a mutable borrow is live reports MutableBorrowConflict.
	reject_use_while_mutably_borrowed: bool = False
	# Close scopes left open at the end of the log so their drops are simulated.
	close_open_scopes_at_end: bool = False
	# Stop the pass once this many diagnostics were collected (None = no limit).
	max_diagnostics: Optional[int] = None

	def __post_init__(self) -> None:
		if self.max_diagnostics is not None and self.max_diagnostics < 1:
			raise ValueError("max_diagnostics must be a positive integer or None")

	@classmethod
	def from_mapping(cls, data: Mapping[str, Any]) -> "EngineOptions":
		"""Build options from a mapping; unknown keys are rejected."""
		known = {f.name for f in fields(cls)}
		unknown = sorted(set(data) - known)
		if unknown:
			raise ValueError(f"unknown engine option(s): {', '.join(unknown)}")
		return cls(**dict(data))


def load_options(path: str | Path) -> EngineOptions:
	"""Load `EngineOptions` from a JSON file containing a single object."""
	data = json.loads(Path(path).read_text())
	if not isinstance(data, dict):
		raise ValueError(f"{path}: engine options must be a JSON object")
	return EngineOptions.from_mapping(data)


__all__ = ["EngineOptions", "load_options"]
