"""Rounding helper tests. Halves round up, unlike round()."""

from habit_tracker.admin.metrics import one_decimal, percentage, round_half_up


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(2.49) == 2

    def test_one_decimal(self):
        assert round_half_up(1.25, 1) == 1.3
        assert round_half_up(1.24, 1) == 1.2


class TestPercentage:
    def test_zero_whole_is_zero(self):
        assert percentage(0, 0) == 0
        assert percentage(5, 0) == 0

    def test_exact(self):
        assert percentage(3, 4) == 75

    def test_half_up(self):
        # 1/8 = 12.5%
        assert percentage(1, 8) == 13

    def test_returns_int_in_range(self):
        for part in range(0, 8):
            value = percentage(part, 7)
            assert isinstance(value, int)
            assert 0 <= value <= 100


class TestOneDecimal:
    def test_zero_denominator(self):
        assert one_decimal(5, 0) == 0

    def test_ratio(self):
        assert one_decimal(7, 3) == 2.3
        assert one_decimal(5, 2) == 2.5
