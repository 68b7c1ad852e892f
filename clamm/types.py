"""
clamm 데이터 타입 정의

토큰 잔고, 가격 범위, 가격 이동 방향을 Python dataclass/Enum으로 정의.
모든 수량은 float (틱 이산화 없음, 연속 가격).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

# (하한, 상한). 가격 공간 또는 √가격 공간
Range = Tuple[float, float]
SqrtRange = Tuple[float, float]


class Direction(Enum):
    """가격 이동 방향

    범위 경계에서 어느 포지션이 활성인지 결정합니다:
    - UP: lo <= √P < hi
    - DOWN: lo < √P <= hi
    """
    UP = "up"
    DOWN = "down"


@dataclass
class Balance:
    """두 토큰의 수량 (x = token0, y = token1)"""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Balance") -> "Balance":
        return Balance(x=self.x + other.x, y=self.y + other.y)

    def __sub__(self, other: "Balance") -> "Balance":
        return Balance(x=self.x - other.x, y=self.y - other.y)

    def copy(self) -> "Balance":
        return Balance(x=self.x, y=self.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> "Balance":
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0))
        )
