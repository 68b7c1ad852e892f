"""
Pool layer for clamm

집중화 유동성 풀과 포지션.
"""

from .position import ConcentratedLiquidityPosition
from .pool import ConcentratedLiquidityPool, PriceMoveResult, PoolSnapshot
