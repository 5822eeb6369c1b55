"""
Seeded Randomness

Every generation and shuffle step draws from an explicit SeededRandom so
that identical seeds reproduce identical banks, flows and MCQ layouts.
The generator is mulberry32 over a 32-bit string hash.
"""
from typing import List, Sequence, TypeVar, Union

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, result as unsigned"""
    return (a * b) & _MASK32


def _utf16_units(value: str) -> List[int]:
    raw = value.encode("utf-16-le")
    return [int.from_bytes(raw[i:i + 2], "little") for i in range(0, len(raw), 2)]


def hash_string(value: str) -> int:
    """
    Hash a string to an unsigned 32-bit seed.

    Args:
        value: Seed text (e.g. "<studentId>_<documentSetId>_<flowOrdinal>")

    Returns:
        Integer in [0, 2**32)
    """
    units = _utf16_units(str(value))
    h = (1779033703 ^ len(units)) & _MASK32
    for unit in units:
        h = _imul(h ^ unit, 3432918353)
        h = ((h << 13) & _MASK32) | (h >> 19)
    h = _imul(h ^ (h >> 16), 2246822507)
    h = _imul(h ^ (h >> 13), 3266489909)
    return (h ^ (h >> 16)) & _MASK32


class SeededRandom:
    """
    Deterministic PRNG (mulberry32).

    Args:
        seed: Integer seed, or any string (hashed with hash_string)
    """

    def __init__(self, seed: Union[int, str]):
        if isinstance(seed, str):
            seed = hash_string(seed)
        self._state = int(seed) & _MASK32

    def random(self) -> float:
        """Next float in [0, 1)"""
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t = t ^ ((t + _imul(t ^ (t >> 7), t | 61)) & _MASK32)
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    def below(self, n: int) -> int:
        """Uniform integer in [0, n)"""
        return int(self.random() * n)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[self.below(len(items))]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Return a Fisher-Yates shuffled copy of items"""
        out = list(items)
        for i in range(len(out) - 1, 0, -1):
            j = self.below(i + 1)
            out[i], out[j] = out[j], out[i]
        return out
