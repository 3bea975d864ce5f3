from __future__ import annotations

import hashlib
import random
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    def random(self) -> float:
        ...


def derive_stream_seed(master_seed: int, stream_name: str) -> int:
    """Derive a deterministic child RNG seed from (master_seed, stream_name)."""
    digest = hashlib.sha256(f"{master_seed}:{stream_name}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def make_rng(seed: int | None, stream_name: str = "rng_game") -> random.Random:
    if seed is None:
        return random.Random()
    return random.Random(derive_stream_seed(master_seed=seed, stream_name=stream_name))


# All draws below consume exactly one rng.random() so scripted sources stay aligned.


def roll_uniform(rng: RandomSource, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def roll_int(rng: RandomSource, low: int, high: int) -> int:
    """Uniform integer in the inclusive range [low, high]."""
    if high < low:
        raise ValueError(f"invalid roll range: [{low}, {high}]")
    span = high - low + 1
    return low + min(int(rng.random() * span), span - 1)


def pick(rng: RandomSource, options: Sequence[T]) -> T:
    if not options:
        raise ValueError("cannot pick from an empty sequence")
    return options[min(int(rng.random() * len(options)), len(options) - 1)]
