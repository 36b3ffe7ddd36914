from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

VoteValue = Union[int, float, str]


@dataclass(frozen=True)
class Deck:
    name: str
    values: Tuple[VoteValue, ...]

    def __contains__(self, value: object) -> bool:
        if value is None or isinstance(value, bool):
            return False
        return value in self.values


DECK_VALUES = [
    ("fibonacci", (1, 2, 3, 5, 8, 13, 21, 34, 55, 100)),
    ("tshirt", ("XS", "S", "M", "L", "XL", "XXL")),
    ("hours", (0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0)),
]

DECKS: Dict[str, Deck] = {name: Deck(name=name, values=values) for name, values in DECK_VALUES}

DEFAULT_DECK_NAME = "fibonacci"


def get_deck(name: Optional[str]) -> Optional[Deck]:
    if not isinstance(name, str):
        return None
    return DECKS.get(name)


def default_deck() -> Deck:
    return DECKS[DEFAULT_DECK_NAME]
