"""
clamm 상수 정의

시뮬레이터 전반에서 사용하는 상수들:
- DEFAULT_INITIAL_PRICE / DEFAULT_FEE_RATE: Pool 생성 기본값
- LIQUIDITY_SAFETY_MARGIN: 예치 시 유동성에서 차감하는 안전 마진
- FEE_TIERS: Uniswap 수수료 티어 (bps → 수수료율)
"""

from typing import Dict

import numpy as np

from .errors import InvalidArgumentError

# Pool 생성 기본값
DEFAULT_INITIAL_PRICE: float = 1.0
DEFAULT_FEE_RATE: float = 0.0

# float64 machine epsilon
FLOAT_EPSILON: float = float(np.finfo(np.float64).eps)

# 반올림 오차로 예치액보다 많이 청구되지 않도록 유동성에서 빼는 값
LIQUIDITY_SAFETY_MARGIN: float = 1000 * FLOAT_EPSILON

# 수수료 티어 (basis points → 수수료율)
# 500 = 0.05%, 3000 = 0.30%, 10000 = 1.00%
FEE_TIERS: Dict[int, float] = {
    100: 0.0001,   # 1 bps
    500: 0.0005,   # 5 bps
    3000: 0.003,   # 30 bps
    10000: 0.01,   # 100 bps
}


def fee_rate_from_tier(fee_tier: int) -> float:
    """수수료 티어(bps) → 수수료율

    Args:
        fee_tier: 수수료 티어 (100, 500, 3000, 10000)

    Returns:
        수수료율 (예: 3000 → 0.003)

    Raises:
        InvalidArgumentError: 지원하지 않는 티어
    """
    if fee_tier not in FEE_TIERS:
        raise InvalidArgumentError(
            f"지원하지 않는 수수료 티어: {fee_tier}. "
            f"지원 티어: {', '.join(str(t) for t in FEE_TIERS)}"
        )
    return FEE_TIERS[fee_tier]
