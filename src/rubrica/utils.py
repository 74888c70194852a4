import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

from rubrica.errors import TimeoutError
from rubrica.models.criterion import Criterion
from rubrica.models.grading import CriterionScore

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], seconds: float, what: str) -> T:
    """Await ``awaitable``, converting a timeout into a structured ``TimeoutError``."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as ex:
        raise TimeoutError(f"{what} timed out after {seconds}s") from ex


def select_criteria(criteria: list[Criterion], selected_ids: Iterable[str]) -> list[Criterion]:
    """Criteria whose id is in ``selected_ids``, in rubric order.

    Ids that no longer exist in the rubric are ignored.
    """
    wanted = set(selected_ids)
    return [c for c in criteria if c.id in wanted]


def total_weight(criteria: Iterable[Criterion]) -> float:
    return sum(c.weight for c in criteria)


def compute_overall_score(criteria: list[Criterion], scores: Iterable[CriterionScore]) -> float:
    """Awarded points as a percentage of the selected criteria's total weight.

    Returns 0 when there is nothing to grade against.
    """
    max_points = total_weight(criteria)
    if max_points <= 0:
        return 0.0
    awarded = sum(s.score for s in scores)
    return 100.0 * awarded / max_points


def criteria_to_markdown(criteria: list[Criterion]) -> str:
    """Render criteria as a markdown bullet list with ids and max points."""
    if not criteria:
        return "(none)"
    return "\n".join(
        f"- **{c.name}** (id: {c.id}, max {c.weight:g} points): {c.description}" for c in criteria
    )
