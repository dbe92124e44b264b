"""Deterministic ordering of a node's outbound choices."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from story_graph.domain.errors import InvalidChoiceSet, ValidationError
from story_graph.domain.models import Choice

MAX_CHOICE_ORDER = 2**31 - 1


def validate_order(order: object) -> int:
    """Return ``order`` when it is an integer in ``0..MAX_CHOICE_ORDER``."""
    if not isinstance(order, int) or isinstance(order, bool):
        raise ValidationError("order must be an integer")
    if not 0 <= order <= MAX_CHOICE_ORDER:
        raise ValidationError(f"order must be between 0 and {MAX_CHOICE_ORDER}")
    return order


def next_order(existing_choices: Iterable[Choice]) -> int:
    """Return one past the highest order, or 0 for a node without choices."""
    orders = [choice.order for choice in existing_choices]
    if not orders:
        return 0
    candidate = max(orders) + 1
    if candidate > MAX_CHOICE_ORDER:
        raise ValidationError(
            "Choice order limit reached; reorder the node's choices or pass an explicit order"
        )
    return candidate


def sort_choices(choices: Iterable[Choice]) -> list[Choice]:
    """Sort by order; equal orders fall back to creation time, then insertion."""
    return sorted(
        choices,
        key=lambda choice: (choice.order, choice.created_at_utc, choice.sequence),
    )


def plan_reorder(
    current_choices: Sequence[Choice], requested_ids: Sequence[str]
) -> dict[str, int]:
    """Map each requested choice id to its new zero-based position.

    Choices of the node that are not listed keep their prior order and are
    absent from the plan.
    """
    owned = {choice.choice_id for choice in current_choices}
    foreign = [choice_id for choice_id in requested_ids if choice_id not in owned]
    if foreign:
        raise InvalidChoiceSet(
            "All choice IDs must belong to the specified node "
            f"(unknown: {', '.join(sorted(set(foreign)))})"
        )
    if len(set(requested_ids)) != len(requested_ids):
        raise InvalidChoiceSet("Choice IDs must not repeat")
    return {choice_id: index for index, choice_id in enumerate(requested_ids)}
