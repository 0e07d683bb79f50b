"""Ordered first-match-wins rule evaluation"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar

C = TypeVar("C")
R = TypeVar("R")


@dataclass(frozen=True)
class Rule(Generic[C, R]):
    """A named predicate paired with the builder of its result"""

    name: str
    predicate: Callable[[C], bool]
    build: Callable[[C], R]


def first_match(rules: Sequence[Rule[C, R]], context: C) -> Optional[R]:
    """Evaluate rules in order and return the result of the first whose predicate holds"""
    for rule in rules:
        if rule.predicate(context):
            return rule.build(context)
    return None
