"""
Round lifecycle tests - picks, finalize, results, close, completion
"""
import pytest

from models import Participant, Pick, PoolStatus, Round, RoundStatus
from core.pool_manager import PoolManager
from core.round_manager import RoundManager
from core.exceptions import (
    ConflictError,
    PoolCompleted,
    RoundClosed,
    ValidationError,
)
from services.completion_service import Decision
from services.used_teams import used_team_ids, used_teams_by_player


def _participant(db, pool_id, name):
    return db.query(Participant).filter(
        Participant.pool_id == pool_id,
        Participant.player_name == name
    ).one()


class TestPickLedger:
    """upsert_picks / used teams"""

    def test_used_team_is_rejected_but_rest_of_batch_saved(self, db, catalogue, make_pool, play_round):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        play_round(pool.id, picks={"Ann": teams["Arsenal"].id, "Bob": teams["Chelsea"].id},
                   results={"Ann": "win", "Bob": "win"})

        round_id = PoolManager.get_pool(db, pool.id).current_round_id
        outcome = RoundManager.upsert_picks(db, round_id, [
            ("Ann", teams["Arsenal"].id),
            ("Bob", teams["Arsenal"].id),
        ])

        assert [p.player_name for p in outcome.saved] == ["Bob"]
        assert len(outcome.rejected) == 1
        assert outcome.rejected[0]["player_name"] == "Ann"
        assert "already used" in outcome.rejected[0]["reason"]

    def test_unknown_team_and_non_participant_rejected(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        outcome = RoundManager.upsert_picks(db, pool.current_round_id, [
            ("Ann", 9999),
            ("Zed", 1),
        ])
        assert outcome.saved == []
        assert {r["player_name"] for r in outcome.rejected} == {"Ann", "Zed"}

    def test_changing_pick_frees_previous_team(self, db, catalogue, make_pool):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        round_id = pool.current_round_id

        RoundManager.upsert_picks(db, round_id, [("Ann", teams["Arsenal"].id)])
        outcome = RoundManager.upsert_picks(db, round_id, [("Ann", teams["Chelsea"].id)])

        assert len(outcome.saved) == 1
        assert db.query(Pick).filter(Pick.round_id == round_id).count() == 1
        assert used_team_ids(db, pool.id, "Ann") == {teams["Chelsea"].id}

    def test_manual_edit_clears_auto_assigned(self, db, catalogue, make_pool):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        round_id = pool.current_round_id
        RoundManager.finalize_picks(db, round_id)

        RoundManager.upsert_picks(db, round_id, [("Ann", teams["Chelsea"].id)])
        pick = db.query(Pick).filter(Pick.round_id == round_id, Pick.player_name == "Ann").one()
        assert pick.auto_assigned is False
        assert pick.team_name == "Chelsea"

    def test_closed_round_is_immutable(self, db, catalogue, make_pool, play_round):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        first_round = pool.current_round_id
        play_round(pool.id, results={"Ann": "win", "Bob": "win"})

        with pytest.raises(RoundClosed):
            RoundManager.upsert_picks(db, first_round, [("Ann", teams["Chelsea"].id)])
        with pytest.raises(RoundClosed):
            RoundManager.finalize_picks(db, first_round)

    def test_used_teams_only_grow_without_duplicates(self, db, catalogue, make_pool, play_round):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob", "Cat"])
        seen = {}
        for _ in range(3):
            play_round(pool.id, results={"Ann": "win", "Bob": "draw", "Cat": "win"})
            ledger = used_teams_by_player(db, pool.id)
            for name, team_ids in ledger.items():
                assert len(team_ids) == len(set(team_ids))
                assert set(seen.get(name, [])) <= set(team_ids)
            seen = ledger
        assert all(len(ids) == 3 for ids in seen.values())


class TestFinalize:
    """finalize_picks and the auto-assigner"""

    def test_assigns_first_unused_team_alphabetically(self, db, catalogue, make_pool, play_round):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        play_round(pool.id, picks={"Ann": teams["Arsenal"].id, "Bob": teams["Chelsea"].id},
                   results={"Ann": "win", "Bob": "win"})

        round_id = PoolManager.get_pool(db, pool.id).current_round_id
        outcome = RoundManager.finalize_picks(db, round_id)

        picks = {p.player_name: p for p in RoundManager.get_picks(db, round_id)}
        assert outcome.auto_assigned_count == 2
        assert picks["Ann"].team_name == "Brentford"
        assert picks["Bob"].team_name == "Arsenal"
        assert all(p.auto_assigned for p in picks.values())

    def test_finalize_twice_assigns_nothing_new(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        round_id = pool.current_round_id

        first = RoundManager.finalize_picks(db, round_id)
        before = [(p.id, p.team_id) for p in RoundManager.get_picks(db, round_id)]
        second = RoundManager.finalize_picks(db, round_id)
        after = [(p.id, p.team_id) for p in RoundManager.get_picks(db, round_id)]

        assert first.auto_assigned_count == 2
        assert second.auto_assigned_count == 0
        assert before == after

    def test_player_out_of_teams_gets_bye(self, db, catalogue, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        for _ in range(3):
            play_round(pool.id, results={"Ann": "win", "Bob": "win"})
        ledger_before = used_teams_by_player(db, pool.id)

        round_id = PoolManager.get_pool(db, pool.id).current_round_id
        outcome = RoundManager.finalize_picks(db, round_id)

        assert outcome.auto_assigned_count == 0
        assert outcome.byes == ["Ann", "Bob"]
        assert db.query(Pick).filter(Pick.round_id == round_id).count() == 0
        assert used_teams_by_player(db, pool.id) == ledger_before

    def test_bye_survives_close(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        for _ in range(3):
            play_round(pool.id, results={"Ann": "win", "Bob": "win"})

        outcome = play_round(pool.id)

        assert outcome.eliminated == []
        assert outcome.completion.decision == Decision.ADVANCE
        assert _participant(db, pool.id, "Ann").is_active is True


class TestResults:
    """record_results"""

    def test_requires_finalized_round(self, db, catalogue, make_pool):
        _, teams = catalogue
        pool = make_pool(["Ann", "Bob"])
        outcome = RoundManager.upsert_picks(db, pool.current_round_id, [("Ann", teams["Arsenal"].id)])

        with pytest.raises(ConflictError):
            RoundManager.record_results(db, pool.current_round_id, [(outcome.saved[0].id, "win")])

    def test_bad_result_value_rejected(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        RoundManager.finalize_picks(db, pool.current_round_id)
        pick = RoundManager.get_picks(db, pool.current_round_id)[0]

        with pytest.raises(ValidationError):
            RoundManager.record_results(db, pool.current_round_id, [(pick.id, "abandoned")])

    def test_results_do_not_eliminate(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        RoundManager.finalize_picks(db, pool.current_round_id)
        picks = RoundManager.get_picks(db, pool.current_round_id)
        RoundManager.record_results(db, pool.current_round_id, [(p.id, "loss") for p in picks])

        assert all(p.is_active for p in db.query(Participant).filter(Participant.pool_id == pool.id))


class TestCloseRound:
    """close_round resolution and completion"""

    def test_postponed_counts_as_loss_when_configured(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob", "Cat"], postponed_outcome="loss")
        round_number = db.query(Round).filter(Round.id == pool.current_round_id).one().round_number

        outcome = play_round(pool.id, results={"Ann": "postponed", "Bob": "win", "Cat": "win"})

        ann = _participant(db, pool.id, "Ann")
        assert outcome.eliminated == ["Ann"]
        assert ann.is_active is False
        assert ann.eliminated_in_round == round_number

    def test_postponed_counts_as_win_when_configured(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob", "Cat"], postponed_outcome="win")
        round_id = pool.current_round_id

        play_round(pool.id, results={"Ann": "postponed", "Bob": "win", "Cat": "win"})

        ann_pick = db.query(Pick).filter(Pick.round_id == round_id, Pick.player_name == "Ann").one()
        assert _participant(db, pool.id, "Ann").is_active is True
        assert ann_pick.voided is False
        assert ann_pick.team_id in used_team_ids(db, pool.id, "Ann")

    def test_last_player_standing_wins(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        outcome = play_round(pool.id, results={"Ann": "loss", "Bob": "draw"})

        pool = PoolManager.get_pool(db, pool.id)
        assert outcome.completion.decision == Decision.COMPLETE
        assert pool.status == PoolStatus.COMPLETED
        assert pool.winner_names == ["Bob"]
        assert outcome.next_round is None

    def test_multiple_winners_within_limit(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob", "Cat"], winner_mode="multiple", max_winners=2)
        play_round(pool.id, results={"Ann": "win", "Bob": "loss", "Cat": "win"})

        pool = PoolManager.get_pool(db, pool.id)
        assert pool.status == PoolStatus.COMPLETED
        assert pool.winner_names == ["Ann", "Cat"]

    def test_advance_opens_next_round_automatically(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob", "Cat"])
        outcome = play_round(pool.id, results={"Ann": "win", "Bob": "loss", "Cat": "win"})

        pool = PoolManager.get_pool(db, pool.id)
        assert outcome.next_round is not None
        assert outcome.next_round.round_number == 2
        assert pool.current_round_id == outcome.next_round.id
        assert pool.status == PoolStatus.ACTIVE

    def test_unresolved_picks_block_close(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        RoundManager.finalize_picks(db, pool.current_round_id)

        with pytest.raises(ConflictError):
            RoundManager.close_round(db, pool.current_round_id)

    def test_close_requires_finalize(self, db, make_pool):
        pool = make_pool(["Ann", "Bob"])
        with pytest.raises(ConflictError):
            RoundManager.close_round(db, pool.current_round_id)

    def test_failed_close_rolls_back_everything(self, db, make_pool, monkeypatch):
        pool = make_pool(["Ann", "Bob", "Cat"])
        round_id = pool.current_round_id
        RoundManager.finalize_picks(db, round_id)
        picks = {p.player_name: p.id for p in RoundManager.get_picks(db, round_id)}
        RoundManager.record_results(db, round_id, [
            (picks["Ann"], "loss"), (picks["Bob"], "loss"), (picks["Cat"], "win"),
        ])

        def boom(*args, **kwargs):
            raise RuntimeError("connection dropped")

        monkeypatch.setattr("core.round_manager.evaluate_pool", boom)
        with pytest.raises(RuntimeError):
            RoundManager.close_round(db, round_id)

        assert db.query(Round).filter(Round.id == round_id).one().status == RoundStatus.OPEN
        assert db.query(Participant).filter(
            Participant.pool_id == pool.id,
            Participant.eliminated_in_round.isnot(None)
        ).count() == 0

    def test_closing_twice_conflicts(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        round_id = pool.current_round_id
        play_round(pool.id, results={"Ann": "win", "Bob": "win"})

        with pytest.raises(RoundClosed):
            RoundManager.close_round(db, round_id)


class TestForceClose:
    """Unresolved picks at a force close"""

    def _setup(self, db, make_pool):
        pool = make_pool(["Ann", "Bob", "Cat"])
        round_id = pool.current_round_id
        RoundManager.finalize_picks(db, round_id)
        picks = {p.player_name: p for p in RoundManager.get_picks(db, round_id)}
        RoundManager.record_results(db, round_id, [
            (picks["Ann"].id, "win"), (picks["Cat"].id, "loss"),
        ])
        return pool, round_id, picks["Bob"].team_id

    def test_discard_frees_the_team(self, db, make_pool):
        pool, round_id, bob_team = self._setup(db, make_pool)

        outcome = RoundManager.close_round(db, round_id, force=True, unresolved_policy="discard")

        bob_pick = db.query(Pick).filter(Pick.round_id == round_id, Pick.player_name == "Bob").one()
        assert _participant(db, pool.id, "Bob").is_active is True
        assert bob_pick.voided is True
        assert bob_team not in used_team_ids(db, pool.id, "Bob")
        assert db.query(Pick).filter(
            Pick.round_id == outcome.next_round.id, Pick.player_name == "Bob"
        ).count() == 0

    def test_carry_moves_the_pick_into_next_round(self, db, make_pool):
        pool, round_id, bob_team = self._setup(db, make_pool)

        outcome = RoundManager.close_round(db, round_id, force=True, unresolved_policy="carry")

        carried = db.query(Pick).filter(
            Pick.round_id == outcome.next_round.id, Pick.player_name == "Bob"
        ).one()
        assert carried.team_id == bob_team
        assert carried.result is None
        assert used_teams_by_player(db, pool.id)["Bob"] == [bob_team]

    def test_unknown_policy_is_rejected_and_round_stays_open(self, db, make_pool):
        pool, round_id, _ = self._setup(db, make_pool)

        with pytest.raises(ValidationError):
            RoundManager.close_round(db, round_id, force=True, unresolved_policy="keep")

        assert db.query(Round).filter(Round.id == round_id).one().status == RoundStatus.OPEN
        assert _participant(db, pool.id, "Cat").is_active is True


class TestAdvanceAndRollover:
    """advance() and the wipeout branch"""

    def test_wipeout_keeps_pool_active_without_winner(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], winner_mode="single", rollover_mode="round")
        outcome = play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})

        pool = PoolManager.get_pool(db, pool.id)
        active = db.query(Participant).filter(
            Participant.pool_id == pool.id, Participant.is_active == True  # noqa: E712
        ).count()
        assert active == 0
        assert outcome.completion.decision == Decision.WIPEOUT_ROLLOVER
        assert pool.status == PoolStatus.ACTIVE
        assert pool.winner_names == []
        assert pool.rollover_pending is True
        assert outcome.next_round is None

    def test_wipeout_with_pool_rollover_completes_without_winner(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], rollover_mode="pool")
        play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})

        pool = PoolManager.get_pool(db, pool.id)
        assert pool.status == PoolStatus.COMPLETED
        assert pool.winner_names == []

    def test_reinstate_strategy_restores_cohort_and_keeps_used_teams(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], rollover_mode="round")
        play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})
        ledger = used_teams_by_player(db, pool.id)

        next_round = PoolManager.advance(db, pool.id, rollover_strategy="reinstate")

        assert next_round.round_number == 2
        for name in ("Ann", "Bob"):
            participant = _participant(db, pool.id, name)
            assert participant.is_active is True
            assert participant.eliminated_in_round is None
        assert used_teams_by_player(db, pool.id) == ledger

    def test_replay_strategy_frees_wiped_round_teams(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], rollover_mode="round")
        play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})

        PoolManager.advance(db, pool.id, rollover_strategy="replay")

        assert used_teams_by_player(db, pool.id) == {}
        assert _participant(db, pool.id, "Ann").is_active is True

    def test_players_added_after_wipeout_join_restored_cohort(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], winner_mode="single", rollover_mode="round")
        play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})
        PoolManager.add_participants(db, pool.id, ["Cat"])

        next_round = PoolManager.advance(db, pool.id, rollover_strategy="reinstate")

        states = {
            p.player_name: (p.is_active, p.eliminated_in_round, p.joined_round)
            for p in db.query(Participant).filter(Participant.pool_id == pool.id)
        }
        assert states == {"Ann": (True, None, 1), "Bob": (True, None, 1), "Cat": (True, None, 2)}
        assert next_round.round_number == 2
        assert PoolManager.get_pool(db, pool.id).rollover_pending is False

    def test_declare_winners_waits_for_pending_rollover(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"], rollover_mode="round")
        play_round(pool.id, results={"Ann": "loss", "Bob": "loss"})
        PoolManager.add_participants(db, pool.id, ["Cat"])

        with pytest.raises(ConflictError):
            PoolManager.declare_winners(db, pool.id)
        assert PoolManager.get_pool(db, pool.id).status == PoolStatus.ACTIVE

    def test_rollover_only_restores_the_wiped_round(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob", "Cat"], rollover_mode="round")
        play_round(pool.id, results={"Ann": "win", "Bob": "loss", "Cat": "win"})
        play_round(pool.id, results={"Ann": "loss", "Cat": "loss"})

        PoolManager.advance(db, pool.id)

        assert _participant(db, pool.id, "Bob").is_active is False
        assert _participant(db, pool.id, "Bob").eliminated_in_round == 1
        assert _participant(db, pool.id, "Ann").is_active is True

    def test_second_advance_conflicts(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        play_round(pool.id, results={"Ann": "win", "Bob": "win"}, auto_advance=False)

        PoolManager.advance(db, pool.id)
        with pytest.raises(ConflictError):
            PoolManager.advance(db, pool.id)
        assert db.query(Round).filter(Round.pool_id == pool.id).count() == 2

    def test_advance_on_completed_pool(self, db, make_pool, play_round):
        pool = make_pool(["Ann", "Bob"])
        play_round(pool.id, results={"Ann": "win", "Bob": "loss"})

        with pytest.raises(PoolCompleted):
            PoolManager.advance(db, pool.id)
