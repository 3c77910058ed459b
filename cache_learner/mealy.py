from __future__ import annotations

import json
from collections import deque
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, TextIO, Tuple

from .alphabet import Alphabet, Word


class MealyMachine:
  """Deterministic Mealy machine over integer states.

  Used both for learned hypotheses and for reference models of a cache policy.
  """

  def __init__(self, alphabet: Alphabet, initial: int = 0):
    self.alphabet = alphabet
    self.initial = initial
    self._transitions: Dict[Tuple[int, str], Tuple[str, int]] = {}
    self._states: List[int] = [initial]

  @property
  def states(self) -> Sequence[int]:
    return tuple(self._states)

  def size(self) -> int:
    return len(self._states)

  def add_state(self) -> int:
    state = max(self._states) + 1
    self._states.append(state)
    return state

  def ensure_state(self, state: int) -> None:
    if state not in self._states:
      self._states.append(state)

  def add_transition(self, source: int, symbol: str, output: str, target: int) -> None:
    if symbol not in self.alphabet:
      raise ValueError(f"Unknown symbol '{symbol}'")
    self.ensure_state(source)
    self.ensure_state(target)
    self._transitions[(source, symbol)] = (output, target)

  def transition(self, state: int, symbol: str) -> Tuple[str, int]:
    try:
      return self._transitions[(state, symbol)]
    except KeyError as exc:
      raise ValueError(f"No transition from state {state} on '{symbol}'") from exc

  def successor(self, state: int, inputs: Iterable[str]) -> int:
    for symbol in inputs:
      _, state = self.transition(state, symbol)
    return state

  def output_from(self, state: int, inputs: Iterable[str]) -> Word:
    outputs: List[str] = []
    for symbol in inputs:
      output, state = self.transition(state, symbol)
      outputs.append(output)
    return tuple(outputs)

  def compute_output(self, inputs: Iterable[str]) -> Word:
    return self.output_from(self.initial, inputs)

  def compute_suffix_output(self, prefix: Iterable[str], suffix: Iterable[str]) -> Word:
    return self.output_from(self.successor(self.initial, prefix), suffix)

  def is_complete(self) -> bool:
    return all((state, symbol) in self._transitions for state in self._states for symbol in self.alphabet)

  def access_sequences(self) -> Dict[int, Word]:
    """Shortest input word reaching each reachable state (breadth first, alphabet order)."""
    access: Dict[int, Word] = {self.initial: ()}
    queue = deque([self.initial])
    while queue:
      state = queue.popleft()
      for symbol in self.alphabet:
        _, target = self.transition(state, symbol)
        if target not in access:
          access[target] = access[state] + (symbol,)
          queue.append(target)
    return access

  def separating_word(self, first: int, second: int, other: Optional["MealyMachine"] = None) -> Optional[Word]:
    """Shortest word on which ``first`` (in self) and ``second`` (in other) differ."""
    other = other or self
    seen = {(first, second)}
    queue = deque([(first, second, ())])
    while queue:
      left, right, prefix = queue.popleft()
      for symbol in self.alphabet:
        left_out, left_next = self.transition(left, symbol)
        right_out, right_next = other.transition(right, symbol)
        word = prefix + (symbol,)
        if left_out != right_out:
          return word
        pair = (left_next, right_next)
        if pair not in seen:
          seen.add(pair)
          queue.append((left_next, right_next, word))
    return None

  def find_separating_word(self, other: "MealyMachine") -> Optional[Word]:
    if other.alphabet != self.alphabet:
      raise ValueError("Cannot compare machines over different alphabets")
    return self.separating_word(self.initial, other.initial, other)

  def equivalent_to(self, other: "MealyMachine") -> bool:
    return self.find_separating_word(other) is None

  def characterizing_set(self) -> List[Word]:
    """Words that pairwise distinguish all reachable states."""
    states = list(self.access_sequences())
    suffixes: List[Word] = []
    for idx, first in enumerate(states):
      for second in states[idx + 1:]:
        if any(self.output_from(first, w) != self.output_from(second, w) for w in suffixes):
          continue
        separator = self.separating_word(first, second)
        if separator is not None:
          suffixes.append(separator)
    return suffixes

  def state_identifiers(self) -> Dict[int, List[Word]]:
    """Per-state subset of the characterizing set separating it from every other state."""
    states = list(self.access_sequences())
    identifiers: Dict[int, List[Word]] = {}
    for state in states:
      words: List[Word] = []
      for other in states:
        if other == state:
          continue
        if any(self.output_from(state, w) != self.output_from(other, w) for w in words):
          continue
        separator = self.separating_word(state, other)
        if separator is not None:
          words.append(separator)
      identifiers[state] = words
    return identifiers

  def to_dict(self) -> Dict[str, object]:
    return {
        "alphabet": list(self.alphabet),
        "initial": self.initial,
        "states": list(self._states),
        "transitions": [
            {"source": source, "input": symbol, "output": output, "target": target}
            for (source, symbol), (output, target) in sorted(
                self._transitions.items(), key=lambda item: (item[0][0], self.alphabet.index_of(item[0][1]))
            )
        ],
    }

  def write_dot(self, handle: TextIO) -> None:
    handle.write("digraph g {\n")
    handle.write("  __start0 [label=\"\" shape=\"none\"];\n")
    for state in self._states:
      handle.write(f"  s{state} [shape=\"circle\" label=\"{state}\"];\n")
    for (source, symbol), (output, target) in self._transitions.items():
      handle.write(f"  s{source} -> s{target} [label=\"{symbol} / {output}\"];\n")
    handle.write(f"  __start0 -> s{self.initial};\n")
    handle.write("}\n")

  def __repr__(self) -> str:
    return f"MealyMachine(states={self.size()}, alphabet={list(self.alphabet)!r})"


def machine_from_dict(data: Mapping[str, object]) -> MealyMachine:
  try:
    alphabet = Alphabet(data["alphabet"])
    machine = MealyMachine(alphabet, initial=int(data.get("initial", 0)))
    for state in data.get("states", []):
      machine.ensure_state(int(state))
    for entry in data["transitions"]:
      machine.add_transition(int(entry["source"]), entry["input"], entry["output"], int(entry["target"]))
  except (KeyError, TypeError) as exc:
    raise ValueError(f"Malformed Mealy machine description: {exc}") from exc
  if not machine.is_complete():
    raise ValueError("Mealy machine description is not complete over its alphabet")
  return machine


def load_machine(path: Path) -> MealyMachine:
  with path.open("r", encoding="utf-8") as handle:
    return machine_from_dict(json.load(handle))


def save_machine(machine: MealyMachine, path: Path) -> None:
  with path.open("w", encoding="utf-8") as handle:
    json.dump(machine.to_dict(), handle, indent=2)
