"""Unit tests for the VIP level table."""

from vipserver import vip


class TestVipTable:

    def test_levels_are_contiguous_from_zero(self):
        assert [v.level for v in vip.VIP_LEVELS] == list(range(len(vip.VIP_LEVELS)))

    def test_level_zero_is_free_and_earns_nothing(self):
        free = vip.get_level(0)
        assert free.price == 0
        assert vip.daily_reward(0) == 0

    def test_price_and_profit_increase_with_level(self):
        paid = vip.VIP_LEVELS[1:]
        assert all(a.price < b.price for a, b in zip(paid, paid[1:]))
        assert all(a.daily_profit < b.daily_profit for a, b in zip(paid, paid[1:]))

    def test_unknown_level(self):
        assert vip.get_level(42) is None
        assert vip.daily_reward(42) == 0.0

    def test_list_levels_is_serializable(self):
        levels = vip.list_levels()
        assert levels[1] == {
            "level": 1,
            "price": vip.VIP_LEVELS[1].price,
            "daily_profit": vip.VIP_LEVELS[1].daily_profit,
            "daily_tasks": vip.VIP_LEVELS[1].daily_tasks,
        }
