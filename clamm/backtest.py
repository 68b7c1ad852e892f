"""
Price Path Replay - 가격 경로 재생

외부 가격 경로(예: 시간별 종가)를 따라 move_price를 반복 호출하고
각 단계의 토큰 변화량, 활성 유동성, 누적 수수료를 DataFrame으로 기록합니다.
"""

import logging
from typing import Any, Dict, Iterable

import numpy as np
import pandas as pd

from .errors import InvalidArgumentError
from .pool import ConcentratedLiquidityPool
from .types import Direction

logger = logging.getLogger(__name__)

COLUMNS = [
    "step", "price", "delta_x", "delta_y", "liquidity",
    "rewards_x", "rewards_y", "cum_delta_x", "cum_delta_y",
]


def replay_price_path(
    pool: ConcentratedLiquidityPool,
    prices: Iterable[float]
) -> pd.DataFrame:
    """가격 경로 재생

    Args:
        pool: 대상 Pool (가격과 포지션 보상이 변경됨)
        prices: 순서대로 이동할 가격 목록

    Returns:
        단계별 DataFrame
        - delta_x, delta_y: 해당 단계 move_price 변화량 (풀 기준)
        - liquidity: 이동 후 UP 방향 활성 유동성
        - rewards_x, rewards_y: 현재 열린 포지션들의 누적 수수료 합
        - cum_delta_x, cum_delta_y: 변화량 누적합

    Raises:
        InvalidArgumentError: 0 이하 가격이 포함된 경우
        InsufficientLiquidityError: 경로가 유동성 범위를 벗어나는 경우
    """
    price_array = np.asarray(list(prices), dtype=float)
    if np.any(~(price_array > 0)):
        raise InvalidArgumentError("가격은 양수여야 합니다")

    records = []
    for step, price in enumerate(price_array):
        result = pool.move_price(float(price))
        rewards_x = sum(p.rewards.x for p in pool.positions.values())
        rewards_y = sum(p.rewards.y for p in pool.positions.values())
        records.append({
            "step": step,
            "price": pool.price,
            "delta_x": result.delta.x,
            "delta_y": result.delta.y,
            "liquidity": pool.get_liquidity_in_current_range(Direction.UP),
            "rewards_x": rewards_x,
            "rewards_y": rewards_y,
        })

    df = pd.DataFrame.from_records(records, columns=COLUMNS[:7])
    df["cum_delta_x"] = np.cumsum(df["delta_x"].to_numpy())
    df["cum_delta_y"] = np.cumsum(df["delta_y"].to_numpy())

    logger.debug("replayed %d prices", len(df))
    return df[COLUMNS]


def summarize_replay(df: pd.DataFrame) -> Dict[str, Any]:
    """재생 결과 요약

    Returns:
        {steps, net_x, net_y, fees_x, fees_y}
    """
    if df.empty:
        return {"steps": 0, "net_x": 0.0, "net_y": 0.0, "fees_x": 0.0, "fees_y": 0.0}

    last = df.iloc[-1]
    return {
        "steps": int(len(df)),
        "net_x": float(df["delta_x"].sum()),
        "net_y": float(df["delta_y"].sum()),
        "fees_x": float(last["rewards_x"]),
        "fees_y": float(last["rewards_y"]),
    }
