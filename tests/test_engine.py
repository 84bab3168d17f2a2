"""Tests for the progression engine entry points."""

import random
from datetime import timedelta

import pytest

from conftest import StubRandom
from study_progression.config import Settings
from study_progression.models.events import BadgeUnlocked, LevelUp, SpinResult, StreakBonus
from study_progression.models.profile import Mission, Profile, SpinKind
from study_progression.progression.engine import ProgressionEngine
from study_progression.progression.errors import (
    AlreadyClaimedToday,
    InvalidClaim,
    InvalidEquip,
    InvalidProfileState,
    MissionNotComplete,
)

WHEEL_VALUES = {700, 50, 150, 0, 100, 300, 25, 50}


class TestScenarios:
    def test_scenario_a_first_answer(self, engine, profile, day1):
        after, events = engine.record_correct_answer(profile, 400, day1)
        assert after.streak == 1
        assert after.xp == 450
        assert after.level == engine.curve.level_for(450) == 1
        assert after.last_activity_date == day1
        assert events == [StreakBonus(amount=50, streak=1)]

    def test_scenario_b_same_day(self, engine, profile, day1):
        after_a, _ = engine.record_correct_answer(profile, 400, day1)
        after_b, events = engine.record_correct_answer(after_a, 400, day1)
        assert after_b.streak == 1
        assert after_b.xp == 850
        assert not any(isinstance(e, StreakBonus) for e in events)
        assert events == [LevelUp(new_level=2, previous_level=1)]

    def test_scenario_c_next_day(self, engine, profile, day1):
        p, _ = engine.record_correct_answer(profile, 400, day1)
        p, _ = engine.record_correct_answer(p, 400, day1)
        p, events = engine.record_correct_answer(p, 400, day1 + timedelta(days=1))
        assert p.streak == 2
        assert p.xp == 1320
        assert p.level == 3
        assert events == [
            StreakBonus(amount=70, streak=2),
            LevelUp(new_level=3, previous_level=2),
            BadgeUnlocked(key="xp_hunter"),
        ]
        assert "xp_hunter" in p.unclaimed_badges

    def test_scenario_d_gap_resets(self, engine, profile, day1):
        p, _ = engine.record_correct_answer(profile, 400, day1)
        p, _ = engine.record_correct_answer(p, 400, day1)
        p, _ = engine.record_correct_answer(p, 400, day1 + timedelta(days=1))
        p, events = engine.record_correct_answer(p, 400, day1 + timedelta(days=4))
        assert p.streak == 1
        assert p.xp == 1320 + 450
        assert StreakBonus(amount=50, streak=1) in events

    def test_scenario_e_free_spin_once(self, engine, profile, day1):
        p, events = engine.claim_spin(profile, SpinKind.FREE, day1, random.Random(11))
        assert len(events) >= 1
        result = events[0]
        assert isinstance(result, SpinResult)
        assert result.xp_value in WHEEL_VALUES
        assert p.xp == result.xp_value
        with pytest.raises(AlreadyClaimedToday):
            engine.claim_spin(p, SpinKind.FREE, day1, random.Random(12))


class TestRecordCorrectAnswer:
    def test_input_not_mutated(self, engine, profile, day1):
        engine.record_correct_answer(profile, 400, day1)
        assert profile == Profile.new("student_1")

    def test_result_shares_no_dicts_with_input(self, engine, day1):
        p = Profile(user_id="u", stats={"notes_saved": 1})
        after, _ = engine.record_correct_answer(p, 10, day1)
        after.stats["notes_saved"] = 99
        after.spin_state.spins_claimed_today[SpinKind.FREE] = True
        assert p.stats == {"notes_saved": 1}
        assert not p.spin_state.spin_claimed(SpinKind.FREE)

    def test_at_most_one_bonus_per_day(self, engine, profile, day1):
        bonuses = []
        p = profile
        for _ in range(5):
            p, events = engine.record_correct_answer(p, 10, day1)
            bonuses.extend(e for e in events if isinstance(e, StreakBonus))
        assert len(bonuses) == 1

    def test_continuation_law(self, engine, day1):
        p = Profile(user_id="u", streak=4, last_activity_date=day1)
        after, _ = engine.record_correct_answer(p, 0, day1 + timedelta(days=1))
        assert after.streak == 5

    @pytest.mark.parametrize("gap", [2, 3, 30])
    def test_reset_law(self, engine, day1, gap):
        p = Profile(user_id="u", streak=12, last_activity_date=day1)
        after, _ = engine.record_correct_answer(p, 0, day1 + timedelta(days=gap))
        assert after.streak == 1

    def test_streak_master_goes_to_unclaimed_pool(self, engine, day1):
        p = Profile(user_id="u", streak=6, last_activity_date=day1)
        after, events = engine.record_correct_answer(p, 0, day1 + timedelta(days=1))
        assert after.streak == 7
        assert StreakBonus(amount=200, streak=7) in events
        assert BadgeUnlocked(key="streak_master") in events
        assert "streak_master" in after.unclaimed_badges
        assert "streak_master" not in after.badges

    def test_level_invariant_over_random_walk(self, engine, profile, day1):
        rng = random.Random(7)
        p = profile
        day = day1
        previous_level = p.level
        for _ in range(200):
            day += timedelta(days=rng.choice([0, 0, 1, 1, 3]))
            p, _ = engine.record_correct_answer(p, rng.randint(0, 600), day)
            assert p.level == engine.curve.level_for(p.xp)
            assert p.level >= previous_level
            previous_level = p.level

    def test_negative_base_xp_rejected(self, engine, profile, day1):
        with pytest.raises(ValueError):
            engine.record_correct_answer(profile, -1, day1)


class TestClaimBadge:
    def test_claim(self, engine):
        p = Profile(user_id="u", xp=1000, unclaimed_badges=frozenset(["xp_hunter"]))
        after, events = engine.claim_badge(p, "xp_hunter")
        assert after.badges == frozenset(["xp_hunter"])
        assert after.unclaimed_badges == frozenset()
        assert events == []

    def test_invalid_claim(self, engine, profile):
        with pytest.raises(InvalidClaim):
            engine.claim_badge(profile, "legend")

    def test_fifth_claim_unlocks_elite_learner(self, engine):
        keys = ["legend", "the_goat", "mock_warrior", "note_ninja", "accuracy_ace"]
        p = Profile(user_id="u", unclaimed_badges=frozenset(keys))
        for key in keys[:-1]:
            p, events = engine.claim_badge(p, key)
            assert events == []
        p, events = engine.claim_badge(p, keys[-1])
        assert events == [BadgeUnlocked(key="elite_learner")]
        assert "elite_learner" in p.unclaimed_badges

    def test_equip(self, engine):
        p = Profile(user_id="u", badges=frozenset(["legend"]))
        assert engine.equip_badge(p, "legend").equipped_badge == "legend"
        with pytest.raises(InvalidEquip):
            engine.equip_badge(p, "the_goat")


class TestClaimSpin:
    def test_mock_test_requires_mission(self, engine, day1):
        for streak in (0, 5):
            p = Profile(user_id="u", xp=900, streak=streak)
            with pytest.raises(MissionNotComplete):
                engine.claim_spin(p, SpinKind.MOCK_TEST, day1, StubRandom(0.0))

    def test_mock_test_after_mission(self, engine, profile, day1):
        p = engine.complete_mission(profile, Mission.MOCK_TEST, day1)
        p, events = engine.claim_spin(p, SpinKind.MOCK_TEST, day1, StubRandom(0.0))
        assert events[0] == SpinResult(kind=SpinKind.MOCK_TEST, xp_value=700, segment_index=0)
        assert p.spin_state.spin_claimed(SpinKind.MOCK_TEST)

    def test_mission_does_not_carry_over(self, engine, profile, day1):
        p = engine.complete_mission(profile, Mission.PRACTICE_SESSION, day1)
        with pytest.raises(MissionNotComplete):
            engine.claim_spin(p, SpinKind.PRACTICE_SESSION, day1 + timedelta(days=1), StubRandom(0.0))

    def test_login_streak_spin(self, engine, day1):
        p = Profile(user_id="u", streak=3, last_activity_date=day1)
        p, events = engine.claim_spin(p, SpinKind.LOGIN_STREAK, day1, StubRandom(0.4))
        assert events == [SpinResult(kind=SpinKind.LOGIN_STREAK, xp_value=0, segment_index=3)]
        assert p.xp == 0

    def test_spin_can_level_up_and_unlock(self, engine, day1):
        p = Profile(user_id="u", xp=450, level=1)
        p, events = engine.claim_spin(p, "free", day1, StubRandom(0.0))
        assert p.xp == 1150
        assert events == [
            SpinResult(kind=SpinKind.FREE, xp_value=700, segment_index=0),
            LevelUp(new_level=2, previous_level=1),
            BadgeUnlocked(key="xp_hunter"),
        ]

    def test_earlier_day_does_not_reopen_spins(self, engine, profile, day1):
        day2 = day1 + timedelta(days=1)
        p, _ = engine.claim_spin(profile, SpinKind.FREE, day2, StubRandom(0.1))
        p = engine.complete_mission(p, Mission.MOCK_TEST, day2)

        p, _ = engine.record_correct_answer(p, 10, day1)
        assert p.spin_state.day == day2
        assert p.spin_state.mission_completed(Mission.MOCK_TEST)
        with pytest.raises(AlreadyClaimedToday):
            engine.claim_spin(p, SpinKind.FREE, day2, StubRandom(0.1))

    def test_daily_reset_without_explicit_call(self, engine, profile, day1):
        p, _ = engine.claim_spin(profile, SpinKind.FREE, day1, StubRandom(0.1))
        p = engine.complete_mission(p, Mission.MOCK_TEST, day1)
        p, _ = engine.claim_spin(p, SpinKind.MOCK_TEST, day1, StubRandom(0.1))
        assert p.spin_state.spin_claimed(SpinKind.FREE)

        day2 = day1 + timedelta(days=1)
        assert engine.available_spins(p, day2) == {
            SpinKind.FREE: True,
            SpinKind.PRACTICE_SESSION: False,
            SpinKind.MOCK_TEST: False,
            SpinKind.LOGIN_STREAK: False,
        }
        p, _ = engine.claim_spin(p, SpinKind.FREE, day2, StubRandom(0.1))
        assert p.spin_state.day == day2


class TestReportStat:
    def test_increments_and_unlocks(self, engine, profile):
        p, events = engine.report_stat(profile, "logins")
        assert p.stat("logins") == 1
        assert events == [BadgeUnlocked(key="welcome_rookie")]

    def test_accumulates(self, engine, profile):
        p = profile
        for _ in range(9):
            p, events = engine.report_stat(p, "mock_tests_completed")
            assert events == []
        p, events = engine.report_stat(p, "mock_tests_completed")
        assert p.stat("mock_tests_completed") == 10
        assert events == [BadgeUnlocked(key="mock_warrior")]

    def test_delta(self, engine, profile):
        p, events = engine.report_stat(profile, "questions_generated", 100)
        assert events == [BadgeUnlocked(key="legend")]

    def test_unknown_stat_is_tracked(self, engine, profile):
        p, events = engine.report_stat(profile, "flashcards_flipped", 3)
        assert p.stat("flashcards_flipped") == 3
        assert events == []

    @pytest.mark.parametrize("key", ["xp", "streak", "badges"])
    def test_reserved_keys_rejected(self, engine, profile, key):
        with pytest.raises(ValueError):
            engine.report_stat(profile, key)

    def test_negative_delta_rejected(self, engine, profile):
        with pytest.raises(ValueError):
            engine.report_stat(profile, "notes_saved", -1)


class TestNormalize:
    def test_level_recomputed(self, engine, day1):
        p = Profile(user_id="u", xp=0, level=9)
        after, _ = engine.record_correct_answer(p, 10, day1)
        assert after.level == 1

    def test_overlapping_badges_repaired(self, engine):
        p = Profile(
            user_id="u",
            badges=frozenset(["legend"]),
            unclaimed_badges=frozenset(["legend", "the_goat"]),
            equipped_badge="the_goat",
        )
        fixed = engine.normalize(p)
        assert fixed.unclaimed_badges == frozenset(["the_goat"])
        assert fixed.equipped_badge is None

    def test_consistent_profile_returned_as_is(self, engine, profile):
        assert engine.normalize(profile) is profile

    def test_negative_xp_cannot_be_repaired(self, engine):
        p = Profile.model_construct(user_id="u", xp=-5)
        with pytest.raises(InvalidProfileState):
            engine.normalize(p)


class TestFromSettings:
    def test_custom_settings(self, day1):
        settings = Settings(
            max_level=3,
            streak_bonus_tiers=[5, 10],
            login_streak_threshold=2,
            wheel_segments=[(40, 1.0)],
        )
        engine = ProgressionEngine.from_settings(settings)
        assert engine.curve.max_level == 3
        assert engine.wheel.values == [40]
        assert engine.wheel.curve is engine.curve

        p, events = engine.record_correct_answer(Profile.new("u"), 0, day1)
        assert events == [StreakBonus(amount=5, streak=1)]

    def test_current_streak(self, engine, day1):
        p = Profile(user_id="u", streak=4, last_activity_date=day1)
        assert engine.current_streak(p, day1 + timedelta(days=1)) == 4
        assert engine.current_streak(p, day1 + timedelta(days=2)) == 0
