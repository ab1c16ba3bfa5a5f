from dataclasses import dataclass, field
from typing import Optional

@dataclass(frozen=True, order=True)
class FrontierEntry:
    """
    Data model for a Frontier entry.
    Invariants: url is canonical; ordering is (depth, sequence) so a heap yields
    breadth-first discovery order.
    """
    depth: int
    sequence: int
    url: str = field(compare=False)
    parent: Optional[str] = field(default=None, compare=False)
