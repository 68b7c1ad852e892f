"""
Concentrated Liquidity Position

하나의 유동성 예치를 나타냅니다.
- sqrt_range: 생성 후 변하지 않는 √가격 범위
- liquidity: 생성 시 고정되는 유동성
- rewards: 누적 수수료 (Pool만 갱신)
- balance: 소유 Pool의 현재 가격으로 매번 계산되는 토큰 수량 (캐시하지 않음)
"""

import uuid
from typing import Optional, TYPE_CHECKING

from ..errors import InvalidArgumentError, PositionNotFoundError
from ..math.liquidity_math import (
    validate_range,
    to_sqrt_range,
    get_max_liquidity,
    get_token_amounts,
)
from ..types import Balance, Direction, Range, SqrtRange

if TYPE_CHECKING:
    from .pool import ConcentratedLiquidityPool


class ConcentratedLiquidityPosition:
    """집중화 유동성 포지션

    범위는 price_range(가격 공간) 또는 sqrt_range(√가격 공간) 중 하나로,
    유동성은 liquidity 또는 (balance, sqrt_price) 중 하나로 지정합니다.

    사용법:
        position = pool.enter_position((1 / 1.1, 1.1), balance=Balance(100, 100))
        position.balance   # 현재 가격 기준 토큰 수량
        position.rewards   # 누적 수수료
    """

    def __init__(
        self,
        pool: "ConcentratedLiquidityPool",
        price_range: Optional[Range] = None,
        *,
        sqrt_range: Optional[SqrtRange] = None,
        liquidity: Optional[float] = None,
        balance: Optional[Balance] = None,
        sqrt_price: Optional[float] = None,
        id: Optional[str] = None
    ):
        """
        Args:
            pool: 소유 Pool (현재 가격 조회용)
            price_range: 가격 범위 (P_a, P_b)
            sqrt_range: √가격 범위 (√P_a, √P_b)
            liquidity: 유동성 직접 지정
            balance: 예치할 토큰 수량
            sqrt_price: balance로 유동성을 계산할 때 기준 √P
            id: 포지션 id. None이면 uuid4 생성

        Raises:
            InvalidArgumentError: 상호 배타적인 파라미터를 둘 다 주거나 둘 다 생략한 경우
        """
        if (price_range is None) == (sqrt_range is None):
            raise InvalidArgumentError("price_range, sqrt_range 중 정확히 하나만 지정해야 합니다")
        if (liquidity is None) == (balance is None):
            raise InvalidArgumentError("liquidity, balance 중 정확히 하나만 지정해야 합니다")
        if balance is not None and sqrt_price is None:
            raise InvalidArgumentError("balance로 예치할 때는 sqrt_price가 필요합니다")

        self.id = id if id is not None else str(uuid.uuid4())
        self._pool = pool

        if sqrt_range is not None:
            self.sqrt_range = validate_range(sqrt_range, "sqrt_range")
        else:
            self.sqrt_range = to_sqrt_range(price_range)

        if liquidity is not None:
            if liquidity < 0:
                raise InvalidArgumentError(f"유동성은 음수일 수 없습니다: {liquidity}")
            self.liquidity = float(liquidity)
            self.initial_balance = self.balance
        else:
            if sqrt_price <= 0:
                raise InvalidArgumentError("가격은 양수여야 합니다")
            self.liquidity = get_max_liquidity(balance, self.sqrt_range, sqrt_price)
            current = self.balance
            self.initial_balance = Balance(
                x=min(current.x, balance.x),
                y=min(current.y, balance.y)
            )

        self.rewards = Balance()

    @property
    def range(self) -> Range:
        """가격 공간 범위 (P_a, P_b)"""
        lo, hi = self.sqrt_range
        return lo ** 2, hi ** 2

    @property
    def balance(self) -> Balance:
        """소유 Pool의 현재 가격 기준 토큰 수량

        Raises:
            PositionNotFoundError: 이미 종료된 포지션
        """
        if self._pool is None:
            raise PositionNotFoundError(self.id)
        return get_token_amounts(self.liquidity, self.sqrt_range, self._pool.sqrt_price)

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def contains(self, sqrt_price: float, direction: Direction) -> bool:
        """방향을 고려한 범위 포함 여부

        UP: lo <= √P < hi, DOWN: lo < √P <= hi
        """
        lo, hi = self.sqrt_range
        if direction is Direction.DOWN:
            return lo < sqrt_price <= hi
        return lo <= sqrt_price < hi

    def _detach(self):
        """Pool에서 제거된 뒤 호출"""
        self._pool = None

    def __repr__(self) -> str:
        return (
            f"ConcentratedLiquidityPosition(id={self.id!r}, range={self.range}, "
            f"liquidity={self.liquidity}, rewards={self.rewards})"
        )
