"""
Pool 테스트

현재 구간 계산, 네 가지 거래, move_price, 수수료 분배, 스냅샷을 테스트합니다.
"""

import logging
import math

import pytest

from ..config import PoolConfig
from ..errors import (
    InvalidArgumentError,
    PositionNotFoundError,
    OutOfRangeError,
    InsufficientLiquidityError,
)
from ..pool import ConcentratedLiquidityPool
from ..types import Balance, Direction


def total_balance(pool):
    """열린 포지션 잔고 합"""
    total = Balance()
    for position in pool.positions.values():
        total = total + position.balance
    return total


@pytest.fixture
def pool():
    """수수료 없는 Pool, 가격 1, 범위 [1/1.1, 1.1]에 (100, 100) 예치"""
    pool = ConcentratedLiquidityPool(initial_price=1.0)
    pool.enter_position((1 / 1.1, 1.1), balance=Balance(x=100, y=100))
    return pool


@pytest.fixture
def fee_pool():
    """0.3% 수수료 Pool"""
    pool = ConcentratedLiquidityPool(initial_price=1.0, fee_rate=0.003)
    pool.enter_position((1 / 1.1, 1.1), balance=Balance(x=100, y=100))
    return pool


class TestConstruction:
    """생성, 설정"""

    def test_defaults(self):
        pool = ConcentratedLiquidityPool()
        assert pool.price == 1.0
        assert pool.fee_rate == 0.0
        assert pool.positions == {}

    def test_sqrt_price(self):
        pool = ConcentratedLiquidityPool(initial_price=4.0)
        assert pool.sqrt_price == 2.0
        assert pool.price == 4.0

    def test_invalid_arguments(self):
        with pytest.raises(InvalidArgumentError):
            ConcentratedLiquidityPool(initial_price=0)
        with pytest.raises(InvalidArgumentError):
            ConcentratedLiquidityPool(fee_rate=1.0)
        with pytest.raises(InvalidArgumentError):
            ConcentratedLiquidityPool(fee_rate=-0.01)

    def test_from_config(self):
        pool = ConcentratedLiquidityPool.from_config(PoolConfig(initial_price=1500, fee_rate=0.003))
        assert pool.price == pytest.approx(1500)
        assert pool.fee_rate == 0.003

    def test_set_price(self):
        pool = ConcentratedLiquidityPool()
        pool.set_price(2.25)
        assert pool.sqrt_price == 1.5
        with pytest.raises(InvalidArgumentError):
            pool.set_price(0)


class TestPositions:
    """포지션 예치/종료/조회"""

    def test_enter_and_exit(self, pool):
        position = next(iter(pool.positions.values()))
        assert pool.get_position(position.id) is position

        amounts = pool.exit_position(position.id)

        assert amounts.x == pytest.approx(100, rel=1e-9)
        assert amounts.y == pytest.approx(100, rel=1e-9)
        assert pool.get_position(position.id) is None
        assert pool.positions == {}

    def test_enter_with_dict_balance(self):
        pool = ConcentratedLiquidityPool()
        position = pool.enter_position((1 / 1.1, 1.1), balance={"x": 100, "y": 100})
        # L = 100 / (1 - 1/√1.1)
        assert position.liquidity == pytest.approx(2148.808848170151, rel=1e-12)

    def test_enter_with_sqrt_range(self):
        pool = ConcentratedLiquidityPool()
        position = pool.enter_position(sqrt_range=(0.5, 2.0), liquidity=10)
        assert position.range == (0.25, 4.0)

    def test_exit_unknown(self, pool):
        with pytest.raises(PositionNotFoundError):
            pool.exit_position("missing")
        # KeyError로도 잡을 수 있음
        with pytest.raises(KeyError):
            pool.exit_position("missing")

    def test_exit_twice(self, pool):
        position_id = next(iter(pool.positions))
        pool.exit_position(position_id)
        with pytest.raises(PositionNotFoundError):
            pool.exit_position(position_id)

    def test_enter_logs(self, caplog):
        pool = ConcentratedLiquidityPool()
        with caplog.at_level(logging.DEBUG, logger="clamm.pool.pool"):
            position = pool.enter_position((0.81, 1.21), liquidity=10)
        assert position.id in caplog.text


class TestCurrentRange:
    """현재 구간, 활성 유동성"""

    def test_single_position(self, pool):
        position = next(iter(pool.positions.values()))
        assert pool.get_current_range() == position.sqrt_range

    def test_intersection(self, pool):
        inner = pool.enter_position((1, 1.21), liquidity=500)

        lo, hi = pool.get_current_range(Direction.UP)
        assert lo == 1.0
        assert hi == pytest.approx(math.sqrt(1.1))

        # DOWN 방향에서 inner는 하한 경계에 있으므로 비활성
        assert inner not in pool.get_positions_in_range(Direction.DOWN)

        pool.set_price(1.1)
        assert pool.get_positions_in_range(Direction.UP) == [inner]
        assert pool.get_current_range(Direction.UP) == inner.sqrt_range

    def test_liquidity_adds_up(self, pool):
        single = pool.get_liquidity_in_current_range(Direction.UP)
        pool.enter_position((1 / 1.1, 1.1), balance=Balance(x=100, y=100))
        assert pool.get_liquidity_in_current_range(Direction.UP) == pytest.approx(2 * single)

    def test_shared_boundary_not_double_counted(self):
        """공유 경계에서 방향별로 한쪽만 활성"""
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        upper = pool.enter_position((1, 4), liquidity=10)
        lower = pool.enter_position((0.25, 1), liquidity=20)

        assert pool.get_positions_in_range(Direction.UP) == [upper]
        assert pool.get_positions_in_range(Direction.DOWN) == [lower]
        assert pool.get_liquidity_in_current_range(Direction.UP) == 10
        assert pool.get_liquidity_in_current_range(Direction.DOWN) == 20

    def test_out_of_range(self):
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        with pytest.raises(OutOfRangeError):
            pool.get_current_range()

        pool.enter_position((1.21, 1.44), liquidity=10)
        assert pool.get_liquidity_in_current_range(Direction.UP) == 0
        with pytest.raises(OutOfRangeError):
            pool.get_current_range()


class TestSwapsNoFee:
    """수수료 없는 거래"""

    def test_sell_y(self, pool):
        liquidity = pool.get_liquidity_in_current_range(Direction.UP)
        x_out = pool.sell_y(10)

        # Δ√P = 10/L, Δx = L·Δ√P/(1 + Δ√P)
        assert x_out == pytest.approx(10 / (1 + 10 / liquidity), rel=1e-12)
        assert pool.sqrt_price == pytest.approx(1 + 10 / liquidity, rel=1e-12)

    def test_sell_directions(self, pool):
        pool.sell_y(1)
        assert pool.price > 1
        pool.sell_x(2)
        assert pool.price < 1

    def test_sell_round_trip(self, pool):
        x_out = pool.sell_y(10)
        y_out = pool.sell_x(x_out)

        assert y_out == pytest.approx(10, abs=1e-12)
        assert pool.sqrt_price == pytest.approx(1.0, abs=1e-12)

    def test_buy_round_trip(self, pool):
        x_paid = pool.buy_y(10)
        assert pool.price < 1
        y_paid = pool.buy_x(x_paid)

        assert y_paid == pytest.approx(10, abs=1e-12)
        assert pool.sqrt_price == pytest.approx(1.0, abs=1e-12)

    def test_sell_then_buy_same_token(self, pool):
        """y를 판 뒤 같은 양의 y를 사면 원래 가격으로"""
        x_out = pool.sell_y(10)
        x_paid = pool.buy_y(10)

        assert x_paid == pytest.approx(x_out, abs=1e-13)
        assert pool.sqrt_price == pytest.approx(1.0, abs=1e-15)

    def test_sell_then_buy_x(self, pool):
        """x를 판 뒤 같은 양의 x를 사면 원래 가격으로"""
        y_out = pool.sell_x(10)
        y_paid = pool.buy_x(10)

        assert y_paid == pytest.approx(y_out, abs=1e-13)
        assert pool.sqrt_price == pytest.approx(1.0, abs=1e-15)

    def test_sell_and_buy_agree(self):
        """y를 팔아 받는 x와 같은 x를 사는 비용은 같음"""
        a = ConcentratedLiquidityPool()
        a.enter_position((1 / 1.1, 1.1), balance=Balance(x=100, y=100))
        b = ConcentratedLiquidityPool()
        b.enter_position((1 / 1.1, 1.1), balance=Balance(x=100, y=100))

        x_out = a.sell_y(10)
        y_paid = b.buy_x(x_out)

        assert y_paid == pytest.approx(10, abs=1e-12)
        assert a.sqrt_price == pytest.approx(b.sqrt_price, abs=1e-14)

    def test_conservation(self, pool):
        before = total_balance(pool)
        x_out = pool.sell_y(25)
        after = total_balance(pool)

        assert after.y - before.y == pytest.approx(25, abs=1e-11)
        assert before.x - after.x == pytest.approx(x_out, abs=1e-11)

    def test_invalid_amounts(self, pool):
        for trade in (pool.sell_y, pool.buy_y, pool.sell_x, pool.buy_x):
            with pytest.raises(InvalidArgumentError):
                trade(0)
            with pytest.raises(InvalidArgumentError):
                trade(-1)


class TestMultiSegment:
    """범위 경계를 넘는 거래"""

    def test_cross_into_adjacent_range(self):
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        a = pool.enter_position((1 / 1.1, 1.1), liquidity=1000)
        b = pool.enter_position((1.1, 1.21), liquidity=1000)
        before = total_balance(pool)

        # a의 y 용량은 1000·(√1.1 - 1) ≈ 48.8
        x_out = pool.sell_y(80)
        after = total_balance(pool)

        assert 1.1 < pool.price < 1.21
        assert a.balance.x == 0
        assert b.balance.y > 0
        assert after.y - before.y == pytest.approx(80, abs=1e-9)
        assert before.x - after.x == pytest.approx(x_out, abs=1e-9)

    def test_enters_position_starting_inside_range(self):
        """구간 중간에서 시작하는 포지션의 경계에서 구간을 나눔"""
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        wide = pool.enter_position((0.81, 1.44), liquidity=1000)
        inner = pool.enter_position((1.1, 1.21), liquidity=1000)
        before = total_balance(pool)

        x_out = pool.sell_y(150)
        after = total_balance(pool)

        assert 1.1 < pool.price < 1.21
        assert inner.balance.y > 0
        assert wide.rewards == Balance()
        assert after.y - before.y == pytest.approx(150, abs=1e-9)
        assert before.x - after.x == pytest.approx(x_out, abs=1e-9)

    def test_insufficient_liquidity_keeps_progress(self):
        """유동성이 바닥나면 실패하고 처리된 구간은 유지"""
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        position = pool.enter_position((0.81, 1.21), liquidity=100)

        with pytest.raises(InsufficientLiquidityError):
            pool.sell_x(1000)

        # 하한 경계에 정확히 멈춤
        assert pool.sqrt_price == position.sqrt_range[0]
        assert position.balance.y == 0

    def test_buy_y_beyond_boundary(self, pool):
        """y 잔고보다 많이 사면 하한에서 실패"""
        position = next(iter(pool.positions.values()))

        with pytest.raises(InsufficientLiquidityError):
            pool.buy_y(150)
        assert pool.sqrt_price == position.sqrt_range[0]

    @pytest.mark.parametrize("x_desired", [150, 3000])
    def test_buy_x_beyond_boundary(self, pool, x_desired):
        """x 잔고보다 많이 사면 상한에서 실패 (L/√P 이상 포함)"""
        position = next(iter(pool.positions.values()))
        assert position.liquidity < 3000

        with pytest.raises(InsufficientLiquidityError):
            pool.buy_x(x_desired)
        assert pool.sqrt_price == position.sqrt_range[1]
        assert position.balance.x == 0

    def test_buy_x_equal_to_liquidity(self):
        """L/√P와 정확히 같은 x 구매"""
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        position = pool.enter_position((1 / 1.1, 1.1), liquidity=1000)

        with pytest.raises(InsufficientLiquidityError):
            pool.buy_x(1000)
        assert pool.sqrt_price == position.sqrt_range[1]

    def test_buy_x_crosses_into_next_range(self):
        """상한을 넘으면 인접 구간 유동성으로 계속"""
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        pool.enter_position((1 / 1.1, 1.1), liquidity=1000)
        pool.enter_position((1.1, 4), liquidity=5000)
        before = total_balance(pool)

        y_paid = pool.buy_x(1000)
        after = total_balance(pool)

        assert y_paid > 0
        assert pool.price > 1.1
        assert before.x - after.x == pytest.approx(1000, abs=1e-9)
        assert after.y - before.y == pytest.approx(y_paid, abs=1e-9)

    def test_move_price_beyond_liquidity(self, pool):
        with pytest.raises(InsufficientLiquidityError):
            pool.move_price(2.0)

    def test_conservation_multiple_positions(self):
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        pool.enter_position((0.81, 1.21), liquidity=1000)
        pool.enter_position((0.9, 1.44), liquidity=500)
        pool.enter_position((1.0, 1.1), liquidity=2000)

        before = total_balance(pool)
        result = pool.move_price(1.3)
        after = total_balance(pool)

        assert pool.price == pytest.approx(1.3, abs=1e-12)
        assert result.delta.x == pytest.approx(after.x - before.x, abs=1e-9)
        assert result.delta.y == pytest.approx(after.y - before.y, abs=1e-9)

        before = after
        result = pool.move_price(0.85)
        after = total_balance(pool)

        assert pool.price == pytest.approx(0.85, abs=1e-12)
        assert result.delta.x == pytest.approx(after.x - before.x, abs=1e-9)
        assert result.delta.y == pytest.approx(after.y - before.y, abs=1e-9)


class TestMovePrice:
    """move_price"""

    def test_same_price(self, pool):
        result = pool.move_price(1.0)
        assert result.delta == Balance()

    def test_invalid_price(self, pool):
        with pytest.raises(InvalidArgumentError):
            pool.move_price(0)
        with pytest.raises(InvalidArgumentError):
            pool.move_price(-1)

    def test_delta_signs(self, pool):
        up = pool.move_price(1.05)
        # 가격 상승: 풀이 y를 받고 x를 지급
        assert up.delta.y > 0
        assert up.delta.x < 0

        down = pool.move_price(1.0)
        assert down.delta.y < 0
        assert down.delta.x > 0

        assert up.delta.x + down.delta.x == pytest.approx(0, abs=1e-11)
        assert up.delta.y + down.delta.y == pytest.approx(0, abs=1e-11)

    def test_delta_matches_liquidity(self, pool):
        liquidity = pool.get_liquidity_in_current_range(Direction.UP)
        result = pool.move_price(1.05)
        d_sqrt_price = math.sqrt(1.05) - 1

        assert result.delta.y == pytest.approx(liquidity * d_sqrt_price, rel=1e-9)
        assert result.delta.x == pytest.approx(
            liquidity * (1 / math.sqrt(1.05) - 1), rel=1e-9
        )

    def test_sample_scenario(self):
        """가격 1500 → 1650 이동 (0.3% 수수료)"""
        pool = ConcentratedLiquidityPool(initial_price=1500, fee_rate=0.003)
        position = pool.enter_position(
            (1500 / 1.1, 1500 * 1.1), balance={"x": 10, "y": 15000}
        )

        result = pool.move_price(1650)

        assert position.balance.x == pytest.approx(0, abs=1e-9)
        assert position.balance.y == pytest.approx(30732.13, abs=0.01)
        assert position.rewards.x == 0
        assert position.rewards.y == pytest.approx(47.34, abs=0.01)
        assert result.delta.y == pytest.approx(
            position.balance.y - position.initial_balance.y + position.rewards.y, abs=1e-6
        )

        amounts = pool.exit_position(position.id)
        assert amounts.x == pytest.approx(0, abs=1e-9)
        assert amounts.y == pytest.approx(30779.47, abs=0.01)


class TestFees:
    """수수료 누적과 분배"""

    def test_sell_y_fee(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        liquidity = position.liquidity
        x_out = fee_pool.sell_y(10)

        # 수수료를 먼저 떼고 9.97만 스왑
        assert x_out == pytest.approx(9.97 / (1 + 9.97 / liquidity), rel=1e-12)
        assert position.rewards.y == pytest.approx(0.03, rel=1e-9)
        assert position.rewards.x == 0

    def test_sell_x_fee(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        fee_pool.sell_x(10)

        assert position.rewards.x == pytest.approx(0.03, rel=1e-9)
        assert position.rewards.y == 0

    def test_buy_y_fee(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        x_paid = fee_pool.buy_y(10)

        # 지급액 = 스왑량 / (1 - f)
        assert position.rewards.x == pytest.approx(x_paid * 0.003, rel=1e-9)
        assert position.rewards.y == 0

    def test_buy_x_fee(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        y_paid = fee_pool.buy_x(10)

        assert position.rewards.y == pytest.approx(y_paid * 0.003, rel=1e-9)
        assert position.rewards.x == 0

    def test_fee_costs_trader(self, pool, fee_pool):
        assert fee_pool.sell_y(10) < pool.sell_y(10)
        assert fee_pool.buy_y(10) > pool.buy_y(10)

    def test_move_price_fee_token(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))

        fee_pool.move_price(1.05)
        assert position.rewards.y > 0
        assert position.rewards.x == 0

        fee_pool.move_price(1.0)
        assert position.rewards.x > 0

    def test_split_by_liquidity(self):
        """활성 포지션에 유동성 비율로 분배, 범위 밖 포지션은 0"""
        pool = ConcentratedLiquidityPool(initial_price=1.0, fee_rate=0.003)
        a = pool.enter_position((1 / 1.1, 1.1), liquidity=1000)
        b = pool.enter_position((1 / 1.1, 1.1), liquidity=3000)
        c = pool.enter_position((1.21, 1.44), liquidity=1000)

        pool.sell_y(1)

        assert a.rewards.y == pytest.approx(0.00075, rel=1e-9)
        assert b.rewards.y == pytest.approx(0.00225, rel=1e-9)
        assert c.rewards == Balance()

    def test_multi_segment_fee_total(self):
        """여러 구간에 걸쳐도 판매 수수료 합은 a·f"""
        pool = ConcentratedLiquidityPool(initial_price=1.0, fee_rate=0.003)
        a = pool.enter_position((1 / 1.1, 1.1), liquidity=1000)
        b = pool.enter_position((1.1, 1.21), liquidity=1000)

        pool.sell_y(80)

        assert pool.price > 1.1
        assert a.rewards.y > 0
        assert b.rewards.y > 0
        assert a.rewards.y + b.rewards.y == pytest.approx(80 * 0.003, rel=1e-9)

    def test_untradable_remainder_keeps_fee(self, caplog):
        """Δ√P로 표현되지 않는 판매량도 수수료는 분배"""
        pool = ConcentratedLiquidityPool(initial_price=1.0, fee_rate=0.003)
        position = pool.enter_position((1 / 1.1, 1.1), liquidity=1e300)

        with caplog.at_level(logging.DEBUG, logger="clamm.pool.pool"):
            x_out = pool.sell_y(1e-30)

        assert x_out == 0
        assert pool.sqrt_price == 1.0
        assert position.rewards.y == pytest.approx(1e-30 * 0.003, rel=1e-9)
        assert "untraded remainder" in caplog.text

    def test_exit_includes_rewards(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        fee_pool.sell_y(10)
        balance = position.balance
        rewards = position.rewards.copy()

        amounts = fee_pool.exit_position(position.id)

        assert amounts.x == pytest.approx(balance.x + rewards.x)
        assert amounts.y == pytest.approx(balance.y + rewards.y)


class TestSnapshot:
    """snapshot / restore"""

    def test_restore(self, fee_pool):
        position = next(iter(fee_pool.positions.values()))
        snapshot = fee_pool.snapshot()

        fee_pool.sell_y(10)
        extra = fee_pool.enter_position((0.81, 1.21), liquidity=10)
        fee_pool.restore(snapshot)

        assert fee_pool.sqrt_price == 1.0
        assert position.rewards == Balance()
        assert extra.id not in fee_pool.positions
        assert not extra.is_open

    def test_restore_after_failed_trade(self):
        pool = ConcentratedLiquidityPool(initial_price=1.0)
        pool.enter_position((0.81, 1.21), liquidity=100)
        snapshot = pool.snapshot()

        with pytest.raises(InsufficientLiquidityError):
            pool.sell_x(1000)
        pool.restore(snapshot)

        assert pool.price == 1.0

    def test_restore_after_exit(self, pool):
        snapshot = pool.snapshot()
        pool.exit_position(next(iter(pool.positions)))

        with pytest.raises(PositionNotFoundError):
            pool.restore(snapshot)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
