# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Operation records and the textual trace reader."""

from .ops import *  # noqa: F401,F403
from .ops import __all__ as _ops_all
from .reader import TraceSyntaxError, parse_trace, read_trace_file

__all__ = [*_ops_all, "TraceSyntaxError", "parse_trace", "read_trace_file"]
