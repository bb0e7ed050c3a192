"""Daily streak rules."""

from datetime import date

from techrec.gamification.streak_service import is_streak_milestone, next_streak, streak_bonus

TODAY = date(2026, 3, 10)


class TestNextStreak:
    def test_first_activity(self):
        assert next_streak(0, None, TODAY) == 1

    def test_same_day_unchanged(self):
        assert next_streak(4, date(2026, 3, 10), TODAY) == 4

    def test_next_day_extends(self):
        assert next_streak(4, date(2026, 3, 9), TODAY) == 5

    def test_one_missed_day_soft_decrement(self):
        assert next_streak(4, date(2026, 3, 8), TODAY) == 3

    def test_soft_decrement_floor_is_one(self):
        assert next_streak(1, date(2026, 3, 8), TODAY) == 1

    def test_long_gap_resets(self):
        assert next_streak(20, date(2026, 3, 1), TODAY) == 1

    def test_month_boundary(self):
        assert next_streak(2, date(2026, 2, 28), date(2026, 3, 1)) == 3


class TestMilestones:
    def test_fixed_milestones(self):
        for streak in (3, 7, 14, 30, 60, 90):
            assert is_streak_milestone(streak)

    def test_every_30_after_90(self):
        assert is_streak_milestone(120)
        assert is_streak_milestone(150)
        assert not is_streak_milestone(100)

    def test_non_milestones(self):
        for streak in (1, 2, 4, 8, 29, 31, 89):
            assert not is_streak_milestone(streak)


class TestStreakBonus:
    def test_bonus_values(self):
        assert streak_bonus(3) == 5
        assert streak_bonus(7) == 15
        assert streak_bonus(14) == 35

    def test_bonus_capped(self):
        assert streak_bonus(30) == 50
        assert streak_bonus(365) == 50
