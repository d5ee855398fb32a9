import random
import secrets
from typing import List, Sequence, TypeVar

T = TypeVar("T")

def new_seed() -> int:
    return secrets.randbelow(2 ** 31 - 1) + 1

def permute(items: Sequence[T], seed: int, salt: str = "") -> List[T]:
    """Deterministic permutation: the same seed and salt always give the same order."""
    rng = random.Random(f"{seed}:{salt}")
    shuffled = list(items)
    rng.shuffle(shuffled)
    return shuffled
