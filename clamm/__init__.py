"""
clamm - Concentrated Liquidity AMM Simulator

연속 가격 범위에 예치된 유동성으로 동작하는 Uniswap V3 스타일 AMM 시뮬레이터.
스왑/가격 이동 시 상대 토큰 수량과 포지션별 수수료 분배를 계산합니다.
"""

__version__ = "0.1.0"

from .constants import DEFAULT_INITIAL_PRICE, DEFAULT_FEE_RATE, FEE_TIERS, fee_rate_from_tier
from .errors import (
    ConcentratedLiquidityError,
    InvalidArgumentError,
    PositionNotFoundError,
    OutOfRangeError,
    InsufficientLiquidityError,
)
from .types import Balance, Direction, Range, SqrtRange
from .config import PoolConfig, Settings, settings, configure_logging
from .pool import ConcentratedLiquidityPool, ConcentratedLiquidityPosition, PriceMoveResult, PoolSnapshot
