from __future__ import annotations

from typing import Optional

from .alphabet import Alphabet
from .errors import SUTError
from .mealy import MealyMachine


class SUL:
  """System under learning: a resettable, stateful black box.

  ``reset`` opens a session that must be closed by exactly one ``release``;
  ``step`` is only valid in between.
  """

  def alphabet(self) -> Alphabet:  # pragma: no cover - interface
    raise NotImplementedError

  def reset(self) -> None:  # pragma: no cover - interface
    raise NotImplementedError

  def step(self, symbol: str) -> str:  # pragma: no cover - interface
    raise NotImplementedError

  def release(self) -> None:  # pragma: no cover - interface
    raise NotImplementedError


class MealySUL(SUL):
  """Replays a known Mealy machine; stands in for a simulated cache set."""

  def __init__(self, machine: MealyMachine):
    self.machine = machine
    self._state: Optional[int] = None
    self.sessions = 0

  def alphabet(self) -> Alphabet:
    return self.machine.alphabet

  def reset(self) -> None:
    if self._state is not None:
      raise SUTError("reset() called while a session is already open")
    self._state = self.machine.initial
    self.sessions += 1

  def step(self, symbol: str) -> str:
    if self._state is None:
      raise SUTError("step() called outside of a session")
    output, self._state = self.machine.transition(self._state, symbol)
    return output

  def release(self) -> None:
    self._state = None

  @property
  def in_session(self) -> bool:
    return self._state is not None
