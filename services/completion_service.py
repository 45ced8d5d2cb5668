"""
Completion evaluator: decides what happens to a pool after a round closes.

Pure calculation over the pool configuration and the names of the
participants still active. Applying the decision (completing the pool,
opening the next round) is up to the caller.
"""
from enum import Enum
from typing import List, NamedTuple, Sequence

from models import Pool, RolloverMode, WinnerMode


class Decision(str, Enum):
    ADVANCE = "advance"              # play another round
    COMPLETE = "complete"            # pool ends with winners
    WIPEOUT_NO_WINNER = "wipeout_no_winner"  # everyone out, rollover_mode=pool
    WIPEOUT_ROLLOVER = "wipeout_rollover"    # everyone out, rollover_mode=round


class CompletionDecision(NamedTuple):
    decision: Decision
    winners: List[str]


def evaluate(
    winner_mode: WinnerMode,
    max_winners: int,
    rollover_mode: RolloverMode,
    active_names: Sequence[str]
) -> CompletionDecision:
    """
    Rules:
    - nobody active              -> wipeout, handled by rollover_mode
    - SINGLE, exactly one active -> complete with that winner
    - MULTIPLE, 1..max_winners   -> complete, all active are joint winners
    - otherwise                  -> advance

    Examples:
        evaluate(SINGLE, None, POOL, ["Ann"])           -> COMPLETE ["Ann"]
        evaluate(MULTIPLE, 3, POOL, ["Ann", "Bob"])     -> COMPLETE ["Ann", "Bob"]
        evaluate(SINGLE, None, ROUND, [])               -> WIPEOUT_ROLLOVER
    """
    active = sorted(active_names)

    if not active:
        if rollover_mode == RolloverMode.POOL:
            return CompletionDecision(Decision.WIPEOUT_NO_WINNER, [])
        return CompletionDecision(Decision.WIPEOUT_ROLLOVER, [])

    if winner_mode == WinnerMode.SINGLE:
        limit = 1
    else:
        limit = max_winners or 1

    if len(active) <= limit:
        return CompletionDecision(Decision.COMPLETE, active)

    return CompletionDecision(Decision.ADVANCE, [])


def evaluate_pool(pool: Pool, active_names: Sequence[str]) -> CompletionDecision:
    return evaluate(pool.winner_mode, pool.max_winners, pool.rollover_mode, active_names)
