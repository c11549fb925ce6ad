# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Value table: the arena of tracked values and their bindings.

Values and scopes are identified by stable integer ids rather than by object
identity, so the simulated drops are independent of Python's own memory
management. State is an explicit tag per value:

  OWNED   -> reachable through the binding that created it
  MOVED   -> ownership relocated to another binding (`home`)
  DROPPED -> released; terminal

Bindings stay in the table after a move; the source binding is flagged
`moved_out` so later references can be diagnosed as use-after-move.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional


class ValueState(Enum):
	"""Ownership state of a tracked value."""

	OWNED = auto()
	MOVED = auto()
	DROPPED = auto()


@dataclass(eq=False)
class Binding:
	"""
	A name -> value association introduced in `scope_id`.

	`name` is None for anonymous bindings (results of projections without a
	destination name); they are never visible to lookups but still own their
	value for drop purposes.
	"""

	name: Optional[str]
	value_id: int
	scope_id: int
	moved_out: bool = False

	def describe(self) -> str:
		return f"'{self.name}'" if self.name is not None else f"<value {self.value_id}>"


@dataclass
class Value:
	value_id: int
	scope_id: int  # scope the value was created in
	state: ValueState = ValueState.OWNED
	home: Optional[Binding] = None
	contents: List[int] = field(default_factory=list)

	@property
	def live(self) -> bool:
		return self.state is not ValueState.DROPPED


@dataclass
class ValueTable:
	"""All values created during a pass, keyed by id."""

	values: Dict[int, Value] = field(default_factory=dict)

	def __contains__(self, value_id: object) -> bool:
		return value_id in self.values

	def __iter__(self) -> Iterator[Value]:
		return iter(self.values.values())

	def get(self, value_id: int) -> Optional[Value]:
		return self.values.get(value_id)

	def create(self, value_id: int, binding: Binding, contents=()) -> Value:
		"""Register a fresh OWNED value homed at `binding`; the id must be unused."""
		if value_id in self.values:
			raise KeyError(f"value {value_id} already exists")
		value = Value(value_id=value_id, scope_id=binding.scope_id, home=binding, contents=list(contents))
		self.values[value_id] = value
		return value

	def next_id(self) -> int:
		"""Smallest id greater than every id seen so far."""
		return max(self.values, default=-1) + 1

	def owns(self, binding: Binding) -> bool:
		"""True when `binding` is the current home of a live value."""
		value = self.values.get(binding.value_id)
		return value is not None and value.home is binding and value.live


__all__ = ["Binding", "Value", "ValueState", "ValueTable"]
