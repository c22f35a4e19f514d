"""Ordering of rules inside a phase."""

from __future__ import annotations

import logging
import os
from collections import deque
from collections.abc import Sequence
from typing import Any

from sitegraph.core.ports.rule import capabilities_of

logger = logging.getLogger(__name__)


def patterns_overlap(a: str, b: str) -> bool:
    """Coarse match between two glob-ish patterns such as ``*.css`` and ``styles/*.css``.

    Equal non-empty extensions, or either pattern contained in the other.
    """
    ext_a = os.path.splitext(a)[1]
    ext_b = os.path.splitext(b)[1]
    if ext_a and ext_a == ext_b:
        return True
    return a in b or b in a


def topological_sort(rules: Sequence[Any]) -> list[Any]:
    """Order *rules* so producers run before the rules that depend on their outputs.

    Ties keep declaration order. If the dependencies form a cycle a warning is
    logged and the declaration order is returned unchanged.
    """
    rules = list(rules)
    if len(rules) < 2:
        return rules

    caps = [capabilities_of(rule) for rule in rules]
    successors: list[list[int]] = [[] for _ in rules]
    in_degree = [0] * len(rules)

    for j, consumer in enumerate(caps):
        for i, producer in enumerate(caps):
            if i == j:
                continue
            if any(patterns_overlap(dep, out) for dep in consumer.depends_on for out in producer.produces):
                successors[i].append(j)
                in_degree[j] += 1

    ready = deque(i for i, degree in enumerate(in_degree) if degree == 0)
    order: list[int] = []
    while ready:
        i = ready.popleft()
        order.append(i)
        for j in successors[i]:
            in_degree[j] -= 1
            if in_degree[j] == 0:
                ready.append(j)

    if len(order) != len(rules):
        logger.warning("Rule dependencies form a cycle, keeping declaration order")
        return rules
    return [rules[i] for i in order]
