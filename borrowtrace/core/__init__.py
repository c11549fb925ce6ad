# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Shared building blocks: diagnostics and trace locations."""

from .diagnostics import Diagnostic, DiagnosticCollector, DiagnosticKind, VerificationAborted
from .span import Span

__all__ = ["Diagnostic", "DiagnosticCollector", "DiagnosticKind", "Span", "VerificationAborted"]
