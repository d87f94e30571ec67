"""Root / dependent split that decides node processing order.

This is a one-level partition, not a topological sort: edges are created in
a separate pass once every task has a node, so deeper chains need no
particular visitation order.
"""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

T = TypeVar("T")


def partition_tasks(
    tasks: Sequence[T],
    dependencies_of: Callable[[T], Sequence[str] | None],
) -> tuple[list[T], list[T]]:
    """Split *tasks* into (roots, dependents), preserving relative order.

    dependencies_of: callable returning the task's dependency id list
                     (empty or None → root).
    """
    roots: list[T] = []
    dependents: list[T] = []
    for task in tasks:
        if dependencies_of(task):
            dependents.append(task)
        else:
            roots.append(task)
    return roots, dependents


def processing_order(
    tasks: Sequence[T],
    dependencies_of: Callable[[T], Sequence[str] | None],
) -> list[T]:
    """Return ``[*roots, *dependents]``."""
    roots, dependents = partition_tasks(tasks, dependencies_of)
    return [*roots, *dependents]
