"""
Concentrated Liquidity Pool - 구간 분할 스왑 엔진

하나의 거래쌍(x = token0, y = token1)에 대한 집중화 유동성 풀.
가격 P는 x 1개를 사는 데 필요한 y 수량이며, 내부적으로는 √P만 저장합니다.

스왑과 가격 이동은 활성 유동성이 일정한 구간(segment) 단위로 나누어 처리합니다.
각 구간에서:
    1. 현재 방향의 활성 포지션, 총 유동성 L, 유동성이 일정한 범위 [lo, hi] 계산
    2. 남은 수량으로 갈 수 있는 Δ√P를 구하고 범위 경계에서 자름
    3. Δy = Δ√P·L, Δx = L·Δ(1/√P)
    4. 구간 수수료를 활성 포지션에 유동성 비율로 분배
    5. √P 이동, 남은 수량 갱신

중간 구간에서 유동성이 부족해 실패해도 이미 처리된 구간의 가격/보상 변화는
되돌리지 않습니다. 원자성이 필요하면 snapshot()/restore()로 감싸세요.
"""

import logging
import math
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from ..config import PoolConfig, settings
from ..constants import DEFAULT_INITIAL_PRICE, DEFAULT_FEE_RATE
from ..errors import (
    InvalidArgumentError,
    PositionNotFoundError,
    OutOfRangeError,
    InsufficientLiquidityError,
)
from ..math.sqrt_price_math import get_d_inv_sqrt_price, get_d_sqrt_price
from ..types import Balance, Direction, Range, SqrtRange
from .position import ConcentratedLiquidityPosition

logger = logging.getLogger(__name__)


class PriceMoveResult(NamedTuple):
    """move_price 결과

    delta: 가격 이동에 필요한 토큰 변화량 (양수 = 풀이 받음, 음수 = 풀이 지급)
    """
    delta: Balance


class PoolSnapshot(NamedTuple):
    """snapshot() 시점의 가변 상태"""
    sqrt_price: float
    position_ids: Set[str]
    rewards: Dict[str, Balance]


class ConcentratedLiquidityPool:
    """집중화 유동성 풀 (Uniswap V3 스타일, 연속 가격)

    사용법:
        pool = ConcentratedLiquidityPool(initial_price=1500, fee_rate=0.003)
        position = pool.enter_position((1500 / 1.1, 1500 * 1.1), balance=Balance(10, 15000))
        x_received = pool.sell_y(100)
        result = pool.move_price(1650)
        amounts = pool.exit_position(position.id)
    """

    def __init__(
        self,
        initial_price: float = DEFAULT_INITIAL_PRICE,
        fee_rate: float = DEFAULT_FEE_RATE
    ):
        """
        Args:
            initial_price: 초기 가격 (> 0)
            fee_rate: 거래마다 부과하는 수수료율 (0 <= fee_rate < 1)

        Raises:
            InvalidArgumentError: 가격 또는 수수료율이 유효 범위를 벗어난 경우
        """
        config = PoolConfig(initial_price=initial_price, fee_rate=fee_rate)
        config.validate()

        self.positions: Dict[str, ConcentratedLiquidityPosition] = {}
        self._sqrt_price = math.sqrt(config.initial_price)
        self._fee_rate = config.fee_rate

    @classmethod
    def from_config(cls, config: Optional[PoolConfig] = None) -> "ConcentratedLiquidityPool":
        """PoolConfig로 생성. None이면 환경변수 설정(settings) 사용"""
        if config is None:
            config = settings.pool_config()
        return cls(initial_price=config.initial_price, fee_rate=config.fee_rate)

    # ------------------------------------------------------------------
    # 가격
    # ------------------------------------------------------------------

    @property
    def sqrt_price(self) -> float:
        """현재 √P"""
        return self._sqrt_price

    @property
    def price(self) -> float:
        """현재 가격 (x 1개당 y 수량)"""
        return self._sqrt_price ** 2

    @property
    def fee_rate(self) -> float:
        return self._fee_rate

    def set_price(self, price: float):
        """토큰 정산 없이 가격을 직접 설정

        경계 위 상태를 재현하는 테스트/시뮬레이션용입니다.
        토큰 보존이 필요하면 move_price를 사용하세요.
        """
        if not price > 0:
            raise InvalidArgumentError("가격은 양수여야 합니다")
        self._sqrt_price = math.sqrt(price)

    # ------------------------------------------------------------------
    # 포지션
    # ------------------------------------------------------------------

    def enter_position(
        self,
        price_range: Optional[Range] = None,
        *,
        sqrt_range: Optional[SqrtRange] = None,
        liquidity: Optional[float] = None,
        balance: Optional[Balance] = None
    ) -> ConcentratedLiquidityPosition:
        """유동성 예치

        balance로 예치하면 현재 √P 기준으로 요청 수량을 넘지 않는 최대 유동성을 만듭니다.

        Args:
            price_range: 가격 범위 (P_a, P_b)
            sqrt_range: √가격 범위
            liquidity: 유동성 직접 지정
            balance: 예치할 토큰 수량 (Balance 또는 {"x": .., "y": ..})

        Returns:
            생성된 포지션
        """
        if isinstance(balance, dict):
            balance = Balance.from_dict(balance)

        position = ConcentratedLiquidityPosition(
            self,
            price_range,
            sqrt_range=sqrt_range,
            liquidity=liquidity,
            balance=balance,
            sqrt_price=self._sqrt_price if balance is not None else None,
        )
        self.positions[position.id] = position
        logger.debug(
            "enter position %s range=%s liquidity=%.12g",
            position.id, position.range, position.liquidity
        )
        return position

    def exit_position(self, position_id: str) -> Balance:
        """포지션 종료: 현재 토큰 수량 + 누적 수수료 반환

        Raises:
            PositionNotFoundError: 존재하지 않는 id
        """
        position = self.positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)

        amounts = position.balance + position.rewards
        del self.positions[position_id]
        position._detach()

        logger.debug("exit position %s amounts=%s", position_id, amounts)
        return amounts

    def get_position(self, position_id: str) -> Optional[ConcentratedLiquidityPosition]:
        """id로 포지션 조회 (없으면 None)"""
        return self.positions.get(position_id)

    def get_positions_in_range(self, direction: Direction) -> List[ConcentratedLiquidityPosition]:
        """현재 √P에서 해당 방향으로 활성인 포지션 목록

        공유 경계에서 유동성을 중복/누락하지 않도록 방향별 반개구간을 사용합니다.
            UP:   lo <= √P < hi
            DOWN: lo < √P <= hi
        """
        return [
            position for position in self.positions.values()
            if position.contains(self._sqrt_price, direction)
        ]

    def get_liquidity_in_current_range(self, direction: Direction) -> float:
        """현재 활성 구간의 총 유동성"""
        return sum(position.liquidity for position in self.get_positions_in_range(direction))

    def get_current_range(self, direction: Direction = Direction.UP) -> SqrtRange:
        """활성 포지션 범위들의 교집합 (유동성이 일정한 구간)

        Raises:
            OutOfRangeError: 현재 가격을 포함하는 포지션이 없는 경우
        """
        return self._intersect(self.get_positions_in_range(direction))

    @staticmethod
    def _intersect(positions: List[ConcentratedLiquidityPosition]) -> SqrtRange:
        if not positions:
            raise OutOfRangeError("범위를 벗어났습니다. 유동성이 없습니다.")

        lo, hi = positions[0].sqrt_range
        for position in positions[1:]:
            lo = max(lo, position.sqrt_range[0])
            hi = min(hi, position.sqrt_range[1])
        return lo, hi

    # ------------------------------------------------------------------
    # 스냅샷
    # ------------------------------------------------------------------

    def snapshot(self) -> PoolSnapshot:
        """가격, 포지션 목록, 보상 상태 저장"""
        return PoolSnapshot(
            sqrt_price=self._sqrt_price,
            position_ids=set(self.positions),
            rewards={pid: p.rewards.copy() for pid, p in self.positions.items()},
        )

    def restore(self, snapshot: PoolSnapshot):
        """snapshot() 시점으로 복원

        스냅샷 이후 생성된 포지션은 제거됩니다.

        Raises:
            PositionNotFoundError: 스냅샷 이후 종료된 포지션이 있는 경우
        """
        missing = snapshot.position_ids - set(self.positions)
        if missing:
            raise PositionNotFoundError(sorted(missing)[0])

        for position_id in list(self.positions):
            if position_id not in snapshot.position_ids:
                self.positions.pop(position_id)._detach()

        for position_id, rewards in snapshot.rewards.items():
            position = self.positions[position_id]
            position.rewards.x = rewards.x
            position.rewards.y = rewards.y
        self._sqrt_price = snapshot.sqrt_price

    # ------------------------------------------------------------------
    # 거래
    # ------------------------------------------------------------------

    def sell_y(self, y_with_fees: float) -> float:
        """y를 팔고 x를 받음 (가격 상승)

        수수료는 투입 y에서 먼저 떼어내고, 구간마다 처리한 비율만큼 분배합니다.

        Returns:
            받는 x 수량
        """
        _require_positive(y_with_fees, "판매")
        fees = y_with_fees * self._fee_rate
        y_net = y_with_fees - fees
        delta = self._walk(
            Direction.UP,
            remaining=y_net,
            sign=1,
            next_step=lambda dy, liquidity: dy / liquidity,
            consumed=lambda dy, partial: dy - partial.y,
            segment_fee=lambda partial: (fees * partial.y) / y_net,
            fee_token="y",
        )
        return -delta.x

    def buy_y(self, y_desired: float) -> float:
        """y를 사고 x를 지급 (가격 하락)

        수수료는 지급할 x 위에 추가됩니다.

        Returns:
            지급할 x 수량
        """
        _require_positive(y_desired, "구매")
        delta = self._walk(
            Direction.DOWN,
            remaining=-y_desired,
            sign=-1,
            next_step=lambda dy, liquidity: dy / liquidity,
            consumed=lambda dy, partial: dy - partial.y,
            segment_fee=lambda partial: self._fee_on_top(partial.x),
            fee_token="x",
            fee_on_top=True,
        )
        return delta.x

    def sell_x(self, x_with_fees: float) -> float:
        """x를 팔고 y를 받음 (가격 하락)

        Returns:
            받는 y 수량
        """
        _require_positive(x_with_fees, "판매")
        fees = x_with_fees * self._fee_rate
        x_net = x_with_fees - fees
        delta = self._walk(
            Direction.DOWN,
            remaining=x_net,
            sign=1,
            next_step=self._x_step,
            consumed=lambda dx, partial: dx - partial.x,
            segment_fee=lambda partial: (fees * partial.x) / x_net,
            fee_token="x",
        )
        return -delta.y

    def buy_x(self, x_desired: float) -> float:
        """x를 사고 y를 지급 (가격 상승)

        Returns:
            지급할 y 수량
        """
        _require_positive(x_desired, "구매")
        delta = self._walk(
            Direction.UP,
            remaining=-x_desired,
            sign=-1,
            next_step=self._x_step,
            consumed=lambda dx, partial: dx - partial.x,
            segment_fee=lambda partial: self._fee_on_top(partial.y),
            fee_token="y",
            fee_on_top=True,
        )
        return delta.y

    def move_price(self, target_price: float) -> PriceMoveResult:
        """외부 요인(예: 다른 거래소와의 차익거래)으로 가격을 target_price로 이동

        풀을 상대방으로 하는 거래로 보고 암묵적 수수료를 부과합니다.
        상승 이동은 y 쪽, 하락 이동은 x 쪽에 buy와 같은 방식으로 부과합니다.

        Returns:
            PriceMoveResult(delta): 수수료 포함 토큰 변화량
        """
        if not target_price > 0:
            raise InvalidArgumentError("가격은 양수여야 합니다")

        sqrt_target_price = math.sqrt(target_price)
        if self._sqrt_price == sqrt_target_price:
            return PriceMoveResult(delta=Balance())

        up = sqrt_target_price > self._sqrt_price
        implied_fee_factor = 1 / (1 - self._fee_rate) - 1
        fee_token = "y" if up else "x"

        delta = self._walk(
            Direction.UP if up else Direction.DOWN,
            remaining=sqrt_target_price - self._sqrt_price,
            sign=1 if up else -1,
            next_step=lambda d_sqrt_price, liquidity: d_sqrt_price,
            consumed=lambda d_sqrt_price, partial: sqrt_target_price - self._sqrt_price,
            segment_fee=lambda partial: getattr(partial, fee_token) * implied_fee_factor,
            fee_token=fee_token,
            fee_on_top=True,
        )
        return PriceMoveResult(delta=delta)

    # ------------------------------------------------------------------
    # 내부 구현
    # ------------------------------------------------------------------

    def _walk(
        self,
        direction: Direction,
        remaining: float,
        sign: int,
        next_step: Callable[[float, float], float],
        consumed: Callable[[float, Balance], float],
        segment_fee: Callable[[Balance], float],
        fee_token: str,
        fee_on_top: bool = False
    ) -> Balance:
        """구간 분할 실행 (네 가지 거래와 move_price 공통)

        Args:
            direction: √P 이동 방향
            remaining: 남은 수량 (거래 방향에 따라 부호 있음)
            sign: remaining * sign > 0 인 동안 반복
            next_step: (remaining, L) → 경계를 고려하지 않은 Δ√P
            consumed: (remaining, 구간 변화량) → 구간 처리 후 남은 수량
            segment_fee: 구간 변화량 → 구간 수수료
            fee_token: 수수료 토큰 ("x" 또는 "y")
            fee_on_top: True면 구간 수수료를 결과 변화량에 더함 (buy, move_price)

        Returns:
            누적 토큰 변화량 (풀 기준: 양수 = 풀이 받음)

        Raises:
            InsufficientLiquidityError: 남은 수량이 있는데 활성 유동성이 0인 경우
        """
        delta = Balance()
        while remaining * sign > 0:
            positions = self.get_positions_in_range(direction)
            liquidity = sum(position.liquidity for position in positions)
            if liquidity == 0:
                raise InsufficientLiquidityError(
                    f"유동성이 부족합니다 (√P={self._sqrt_price}, 남은 수량={remaining})"
                )
            lo, hi = self._segment_range(positions, direction)

            step = next_step(remaining, liquidity)
            if math.isnan(step) or (step < 0 if direction is Direction.UP else step > 0):
                # 방향과 맞지 않는 Δ√P는 경계까지 가는 것으로 처리
                step = math.inf if direction is Direction.UP else -math.inf
            boundary = hi if direction is Direction.UP else lo
            cap = boundary - self._sqrt_price
            if direction is Direction.UP:
                d_sqrt_price = min(step, cap)
            else:
                d_sqrt_price = max(step, cap)
            capped = d_sqrt_price == cap
            if d_sqrt_price == 0:
                # 남은 수량이 표현 가능한 Δ√P보다 작음
                logger.debug("walk stopped with untraded remainder %.6e", remaining)
                if not fee_on_top:
                    # 미리 뗀 수수료 중 남은 수량 몫도 현재 구간에 분배
                    leftover = Balance()
                    setattr(leftover, fee_token, remaining)
                    self._add_fees_to_positions(
                        positions, segment_fee(leftover), liquidity, fee_token
                    )
                break

            partial = Balance(
                x=liquidity * get_d_inv_sqrt_price(self._sqrt_price, d_sqrt_price),
                y=d_sqrt_price * liquidity
            )
            fee = segment_fee(partial)
            self._add_fees_to_positions(positions, fee, liquidity, fee_token)

            charged = partial.copy()
            if fee_on_top:
                setattr(charged, fee_token, getattr(charged, fee_token) + fee)
            delta.x += charged.x
            delta.y += charged.y

            # 경계에서 멈춘 구간은 정확히 경계 위에 놓음
            self._sqrt_price = boundary if capped else self._sqrt_price + d_sqrt_price
            remaining = consumed(remaining, partial)

            logger.debug(
                "segment %s L=%.12g d_sqrt_price=%.6e fee=%.6e%s capped=%s remaining=%.6e",
                direction.value, liquidity, d_sqrt_price, fee, fee_token, capped, remaining
            )

        return delta

    def _x_step(self, dx: float, liquidity: float) -> float:
        """x 수량 → Δ√P

        x를 사는 양이 L/√P 이상이면 1/√P가 0 이하가 되어야 하므로
        현재 구간으로는 불가능합니다. 이때 무한대를 반환해 경계에서 멈추게 합니다.
        """
        d_inv_sqrt_price = dx / liquidity
        if 1 + d_inv_sqrt_price * self._sqrt_price <= 0:
            return math.inf
        return get_d_sqrt_price(self._sqrt_price, d_inv_sqrt_price)

    def _segment_range(
        self,
        positions: List[ConcentratedLiquidityPosition],
        direction: Direction
    ) -> SqrtRange:
        """유동성이 일정한 구간

        활성 포지션 범위의 교집합에서, 이동 방향으로 아직 활성이 아닌 포지션이
        시작되는 경계가 있으면 그 경계까지로 줄입니다.
        """
        lo, hi = self._intersect(positions)
        for position in self.positions.values():
            p_lo, p_hi = position.sqrt_range
            if direction is Direction.UP and self._sqrt_price < p_lo < hi:
                hi = p_lo
            elif direction is Direction.DOWN and lo < p_hi < self._sqrt_price:
                lo = p_hi
        return lo, hi

    def _add_fees_to_positions(
        self,
        positions: List[ConcentratedLiquidityPosition],
        fees_to_split: float,
        total_liquidity: float,
        token: str
    ):
        """구간 수수료를 활성 포지션에 유동성 비율로 분배"""
        for position in positions:
            fees_for_position = (position.liquidity / total_liquidity) * fees_to_split
            if token == "x":
                position.rewards.x += fees_for_position
            else:
                position.rewards.y += fees_for_position

    def _fee_on_top(self, amount: float) -> float:
        """지급액에 추가되는 수수료: amount / (1 - f) - amount"""
        return amount / (1 - self._fee_rate) - amount

    def __repr__(self) -> str:
        return (
            f"ConcentratedLiquidityPool(price={self.price}, fee_rate={self._fee_rate}, "
            f"positions={len(self.positions)})"
        )


def _require_positive(amount: float, action: str):
    if not amount > 0:
        raise InvalidArgumentError(f"{action} 수량은 양수여야 합니다: {amount}")
