"""
Liquidity Math - 유동성 계산

집중화된 유동성(Concentrated Liquidity)에서 토큰 수량과 유동성 간의 변환.
모든 범위 연산은 √가격 공간에서 수행합니다.

References:
- 백서 Section 6.2.1: Concentrated Liquidity
- 백서 식 (2.2): 가상 잔고 불변식

핵심 공식:
    (x + L/√P_b) · (y + L·√P_a) = L²     # 범위 [P_a, P_b]의 불변식
    x = L/√P - L/√P_b                     # P_a <= P <= P_b
    y = L·√P - L·√P_a
"""

import math
from typing import Optional

from ..constants import LIQUIDITY_SAFETY_MARGIN
from ..errors import InvalidArgumentError
from ..types import Balance, Range, SqrtRange


def validate_range(value: Range, name: str = "range") -> Range:
    """범위 검증: 0 < lo < hi

    Raises:
        InvalidArgumentError: (하한, 상한) 쌍이 아니거나 경계가 잘못된 경우
    """
    try:
        lo, hi = value
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{name}는 (하한, 상한) 쌍이어야 합니다: {value!r}")

    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise InvalidArgumentError(f"{name}의 경계는 유한한 값이어야 합니다: ({lo}, {hi})")
    if not (lo > 0 and hi > 0):
        raise InvalidArgumentError(f"{name}의 경계는 양수여야 합니다: ({lo}, {hi})")
    if not lo < hi:
        raise InvalidArgumentError(f"{name}의 하한이 상한보다 작아야 합니다: ({lo}, {hi})")

    return float(lo), float(hi)


def to_sqrt_range(price_range: Range) -> SqrtRange:
    """가격 범위 → √가격 범위

    Args:
        price_range: (P_a, P_b)

    Returns:
        (√P_a, √P_b)
    """
    lo, hi = validate_range(price_range)
    return math.sqrt(lo), math.sqrt(hi)


def get_liquidity(balance: Balance, sqrt_range: SqrtRange) -> float:
    """토큰 수량에서 유동성 계산

    불변식 (x + L/pb)(y + L·pa) = L² 을 L에 대해 정리한 2차식

        a·L² + b·L + c = 0
        a = pa/pb - 1,  b = x·pa + y/pb,  c = x·y

    의 근 중 음이 아닌 근 (-b - √(b² - 4ac)) / 2a 를 반환합니다.

    Args:
        balance: 예치할 토큰 수량
        sqrt_range: (√P_a, √P_b)

    Returns:
        유동성 L

    Raises:
        InvalidArgumentError: 폭이 0인 범위 (a == 0) 또는 음수 수량
    """
    pa, pb = validate_range(sqrt_range, "sqrt_range")
    if balance.x < 0 or balance.y < 0:
        raise InvalidArgumentError(f"토큰 수량은 음수일 수 없습니다: {balance}")

    x, y = balance.x, balance.y
    a = pa / pb - 1
    b = x * pa + y / pb
    c = x * y
    D = math.sqrt(b ** 2 - 4 * a * c)
    return (-b - D) / (2 * a)


def get_token_amounts(
    liquidity: float,
    sqrt_range: SqrtRange,
    sqrt_price: float
) -> Balance:
    """유동성에서 토큰 수량 계산

    √P를 범위 안으로 클램프한 뒤 계산합니다.
    - 범위 아래: token0(x)만 보유
    - 범위 위: token1(y)만 보유

    Args:
        liquidity: 유동성 L
        sqrt_range: (√P_a, √P_b)
        sqrt_price: 현재 √P

    Returns:
        Balance(x, y)
    """
    lo, hi = sqrt_range
    if sqrt_price > hi:
        clamped = hi
    elif sqrt_price < lo:
        clamped = lo
    else:
        clamped = sqrt_price

    return Balance(
        x=liquidity / clamped - liquidity / hi,
        y=liquidity * clamped - liquidity * lo
    )


def _fill_ratio(actual: float, requested: float) -> float:
    """실제 필요 수량 / 요청 수량"""
    if requested > 0:
        return actual / requested
    # 요청이 0인 토큰: 필요하면 무한대, 아니면 비교 대상에서 제외 (NaN)
    return math.inf if actual > 0 else math.nan


def get_max_token_amounts(
    tokens: Balance,
    sqrt_range: SqrtRange,
    sqrt_price: float
) -> Balance:
    """요청 수량 중 실제로 예치 가능한 최대 수량

    요청 수량 전체로 만든 유동성이 현재 가격에서 요구하는 토큰 비율을 구하고,
    비율에 비해 과다 공급된 토큰을 줄여 두 토큰의 비율을 맞춥니다.

    Args:
        tokens: 요청 수량
        sqrt_range: (√P_a, √P_b)
        sqrt_price: 현재 √P

    Returns:
        조정된 예치 수량 (각 토큰이 요청 수량 이하)
    """
    rebalanced = get_token_amounts(
        get_liquidity(tokens, sqrt_range), sqrt_range, sqrt_price
    )
    ratio_x = _fill_ratio(rebalanced.x, tokens.x)
    ratio_y = _fill_ratio(rebalanced.y, tokens.y)

    deposited = tokens.copy()
    if ratio_x < ratio_y:
        deposited.x = (rebalanced.x / rebalanced.y) * tokens.y
    elif rebalanced.x > 0:
        deposited.y = (rebalanced.y / rebalanced.x) * tokens.x
    return deposited


def get_max_liquidity(
    tokens: Balance,
    sqrt_range: SqrtRange,
    sqrt_price: float
) -> float:
    """요청 수량을 넘지 않는 최대 유동성

    get_max_token_amounts로 조정한 수량의 유동성에서
    LIQUIDITY_SAFETY_MARGIN을 뺀 값을 반환합니다.

    Args:
        tokens: 요청 수량
        sqrt_range: (√P_a, √P_b)
        sqrt_price: 현재 √P

    Returns:
        유동성 L (0 이상)
    """
    deposited = get_max_token_amounts(tokens, sqrt_range, sqrt_price)
    liquidity = get_liquidity(deposited, sqrt_range) - LIQUIDITY_SAFETY_MARGIN
    return max(liquidity, 0.0)


def get_range(
    balance: Balance,
    sqrt_price: float,
    pa: Optional[float] = None,
    pb: Optional[float] = None
) -> SqrtRange:
    """한쪽 경계가 주어졌을 때 잔고를 모두 쓰는 나머지 경계 계산

    √가격 공간에서 계산합니다. pa, pb 중 정확히 하나만 지정해야 합니다.

    공식:
        √P_a = y·(√P - √P_b) / (x·√P·√P_b) + √P
        √P_b = y·√P / ((√P_a - √P)·x·√P + y)

    Args:
        balance: 예치할 토큰 수량 (x, y 모두 양수)
        sqrt_price: 현재 √P
        pa: 하한 √P_a
        pb: 상한 √P_b

    Returns:
        (√P_a, √P_b)

    Raises:
        InvalidArgumentError: 경계 지정 오류 또는 유효한 범위가 나오지 않는 경우
    """
    if (pa is None) == (pb is None):
        raise InvalidArgumentError("pa, pb 중 정확히 하나만 지정해야 합니다")
    if balance.x <= 0 or balance.y <= 0:
        raise InvalidArgumentError(f"양쪽 토큰 수량이 모두 양수여야 합니다: {balance}")
    if sqrt_price <= 0:
        raise InvalidArgumentError("가격은 양수여야 합니다")

    if pb is not None:
        lower = (balance.y * (sqrt_price - pb)) / (balance.x * sqrt_price * pb) + sqrt_price
        result = (lower, pb)
    else:
        denominator = (pa - sqrt_price) * balance.x * sqrt_price + balance.y
        if denominator <= 0:
            raise InvalidArgumentError(
                f"하한 {pa}에서 잔고 {balance}를 모두 쓰는 상한이 없습니다"
            )
        result = (pa, (balance.y * sqrt_price) / denominator)

    return validate_range(result, "계산된 범위")
