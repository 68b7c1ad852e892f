"""
Math layer for clamm

연속 가격(틱 없음) 집중화 유동성 수학 함수들:
- liquidity_math: 토큰 수량 ↔ 유동성 변환
- sqrt_price_math: Δ√P ↔ Δ(1/√P) 변환
"""

from .liquidity_math import (
    validate_range,
    to_sqrt_range,
    get_liquidity,
    get_token_amounts,
    get_max_token_amounts,
    get_max_liquidity,
    get_range,
)
from .sqrt_price_math import (
    get_d_inv_sqrt_price,
    get_d_sqrt_price,
)
