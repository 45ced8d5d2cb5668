"""
Result resolver: maps a pick outcome to its effect on the participant.

Pure calculation, no database access.

    | result                          | effect                      |
    |---------------------------------|-----------------------------|
    | win / draw                      | survives, pick counts       |
    | loss                            | eliminated this round       |
    | postponed + postponed_outcome=W | treated as win              |
    | postponed + postponed_outcome=L | treated as loss             |
"""
from typing import NamedTuple

from models import PickResult, PostponedOutcome


class Resolution(NamedTuple):
    eliminated: bool
    voided: bool


def effective_result(result: PickResult, postponed_outcome: PostponedOutcome) -> PickResult:
    """
    Collapse POSTPONED into WIN or LOSS using the pool configuration.

    Examples:
        effective_result(PickResult.POSTPONED, PostponedOutcome.LOSS) -> PickResult.LOSS
        effective_result(PickResult.DRAW, PostponedOutcome.LOSS)      -> PickResult.DRAW
    """
    if result == PickResult.POSTPONED:
        return PickResult.WIN if postponed_outcome == PostponedOutcome.WIN else PickResult.LOSS
    return result


def resolve(result: PickResult, postponed_outcome: PostponedOutcome) -> Resolution:
    """
    Resolve one recorded result.

    A resolved pick is never voided: its team stays in the player's
    used teams whether the player survived or not.

    Raises:
        ValueError: result is None (unresolved picks are handled by
            the unresolved-pick policy, not here)
    """
    if result is None:
        raise ValueError("Cannot resolve a pick without a result")

    outcome = effective_result(result, postponed_outcome)
    return Resolution(eliminated=outcome == PickResult.LOSS, voided=False)
