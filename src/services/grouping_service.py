"""Cluster pairwise duplicate judgments into presentation groups."""

import logging
from collections.abc import Iterable

from src.domain.review import DuplicateGroup, PairCandidate
from src.domain.task import TaskSnapshot


logger = logging.getLogger(__name__)


def group(pairs: Iterable[PairCandidate]) -> list[DuplicateGroup]:
    """Build duplicate groups by processing pairs in order.

    The earliest-seen task of a connected set becomes its primary. Groups
    are never merged or rebalanced afterwards: when both tasks of a pair are
    already grouped, the second task is appended to the first task's group
    as well, so the result depends on pair order.
    """
    groups: dict[str, DuplicateGroup] = {}
    task_to_group: dict[str, str] = {}

    def attach(group_id: str, task: TaskSnapshot) -> None:
        target = groups[group_id]
        if task.id == target.primary.id or any(d.id == task.id for d in target.duplicates):
            return
        target.duplicates.append(task)
        task_to_group[task.id] = group_id

    for pair in pairs:
        a, b = pair.task_a, pair.task_b
        if a.id not in task_to_group and b.id not in task_to_group:
            groups[a.id] = DuplicateGroup(primary=a, duplicates=[b])
            task_to_group[a.id] = a.id
            task_to_group[b.id] = a.id
        elif a.id in task_to_group:
            attach(task_to_group[a.id], b)
        else:
            attach(task_to_group[b.id], a)

    result = list(groups.values())
    logger.debug("Grouped duplicate pairs", extra={"groups": len(result)})
    return result
