# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
borrowtrace: ownership & aliasing verification over operation traces.

Given an ordered log of bind / move / borrow / use / scope operations, the
engine reports use-after-move, borrow exclusivity violations and scope-order
errors, and simulates exactly-once drops at scope ends.

Modules:
  values              value table (Owned / Moved / Dropped)
  ownership           Bind / Move / Use / Drop
  borrow_ledger       shared vs mutable borrows
  scopes              scope stack and drop simulator
  sequence_transform  in-place mutation vs projection
  engine              `verify(log)`
  trace               operation records and the textual trace reader
"""

from borrowtrace.core.diagnostics import Diagnostic, DiagnosticKind
from borrowtrace.engine import VerificationEngine, verify
from borrowtrace.options import EngineOptions, load_options

__all__ = ["Diagnostic", "DiagnosticKind", "EngineOptions", "VerificationEngine", "load_options", "verify"]
