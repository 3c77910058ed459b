from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Sequence, Tuple

Word = Tuple[str, ...]

MISS_INPUT = "m()"
MISS_OUTPUT = "_"


def hit_symbol(way: int) -> str:
  return f"h({way})"


def word(symbols: Iterable[str] = ()) -> Word:
  return tuple(symbols)


def way_of(output: str) -> Optional[int]:
  """Way index encoded in an output symbol, or None for the miss token.

  Accepts both the bare form (``"3"``) and the input form (``"h(3)"``).
  """
  if output == MISS_OUTPUT:
    return None
  text = output
  if text.startswith("h(") and text.endswith(")"):
    text = text[2:-1]
  try:
    return int(text)
  except ValueError as exc:
    raise ValueError(f"Output symbol '{output}' does not encode a way") from exc


def way_output(way: int) -> str:
  return str(way)


@dataclass(frozen=True)
class Query:
  """Membership query: the prefix sets the state, the suffix outputs form the answer."""

  prefix: Word = ()
  suffix: Word = ()

  @property
  def input(self) -> Word:
    return self.prefix + self.suffix

  def __str__(self) -> str:
    return f"Query[{' '.join(self.prefix) or 'ε'} | {' '.join(self.suffix) or 'ε'}]"


class Alphabet(Sequence[str]):
  """Ordered set of unique input symbols, fixed for one learning run."""

  def __init__(self, symbols: Iterable[str]):
    self._symbols: Tuple[str, ...] = tuple(symbols)
    self._index: Dict[str, int] = {}
    for idx, symbol in enumerate(self._symbols):
      if symbol in self._index:
        raise ValueError(f"Duplicate symbol '{symbol}' in alphabet")
      self._index[symbol] = idx

  def __getitem__(self, index):
    return self._symbols[index]

  def __len__(self) -> int:
    return len(self._symbols)

  def __iter__(self) -> Iterator[str]:
    return iter(self._symbols)

  def __contains__(self, symbol) -> bool:
    return symbol in self._index

  def __eq__(self, other) -> bool:
    if isinstance(other, Alphabet):
      return self._symbols == other._symbols
    return NotImplemented

  def __hash__(self) -> int:
    return hash(self._symbols)

  def __repr__(self) -> str:
    return f"Alphabet({list(self._symbols)!r})"

  def index_of(self, symbol: str) -> int:
    try:
      return self._index[symbol]
    except KeyError as exc:
      raise ValueError(f"Unknown symbol '{symbol}'") from exc

  def validate(self, symbols: Iterable[str]) -> Word:
    checked = tuple(symbols)
    for symbol in checked:
      if symbol not in self._index:
        raise ValueError(f"Unknown symbol '{symbol}'")
    return checked


def cache_alphabet(ways: int) -> Alphabet:
  """Input alphabet of a cache set: one hit symbol per way plus the miss symbol."""
  if ways < 1:
    raise ValueError("ways must be at least 1")
  return Alphabet([hit_symbol(way) for way in range(ways)] + [MISS_INPUT])
