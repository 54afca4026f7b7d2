import random

import pytest

from perkwallet.services.spin_service import SpinRandomizer


class TestFloor:
    def test_perk_minimum_wins_over_ratio(self, randomizer):
        # ceil(0.2 * 100) = 20 < 30
        assert randomizer.floor_days(30, 100) == 30

    def test_ratio_wins_over_small_minimum(self, randomizer):
        assert randomizer.floor_days(10, 100) == 20

    def test_floor_is_exact(self, randomizer):
        # 0.2 * 35 is exactly 7
        assert randomizer.floor_days(1, 35) == 7
        assert randomizer.floor_days(1, 36) == 8

    def test_single_day_wheel(self, randomizer):
        assert randomizer.floor_days(1, 1) == 1

    def test_invalid_ranges(self, randomizer):
        with pytest.raises(ValueError):
            randomizer.floor_days(0, 0)
        with pytest.raises(ValueError):
            randomizer.floor_days(50, 40)

    def test_invalid_ratio(self):
        with pytest.raises(ValueError):
            SpinRandomizer(random.Random(1), floor_ratio=0)
        with pytest.raises(ValueError):
            SpinRandomizer(random.Random(1), floor_ratio=1.5)


class TestDraw:
    def test_draws_stay_in_range(self, randomizer):
        results = [randomizer.draw(30, 100) for _ in range(1000)]

        assert all(30 <= r.days <= 100 for r in results)
        assert all(r.floor_days == 30 and r.max_days == 100 for r in results)
        # Uniform over 71 values: both ends of the wheel get hit
        assert min(r.days for r in results) < 40
        assert max(r.days for r in results) > 90

    def test_seeded_draws_repeat(self):
        first = SpinRandomizer(random.Random(7), floor_ratio=0.2)
        second = SpinRandomizer(random.Random(7), floor_ratio=0.2)
        assert [first.draw(1, 35).days for _ in range(20)] == [second.draw(1, 35).days for _ in range(20)]

    def test_small_wheel_respects_floor(self, randomizer):
        assert all(7 <= randomizer.draw(1, 35).days <= 35 for _ in range(500))
