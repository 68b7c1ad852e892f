"""
Sqrt Price Math - √가격 / 역√가격 변화량 변환

유동성 L이 일정한 구간에서
    Δy = L · Δ√P
    Δx = L · Δ(1/√P)
이므로 스왑 한 구간은 Δ√P 하나로 두 토큰 변화량이 결정됩니다.

두 함수는 서로의 정확한 역함수입니다. 새 역수를 매번 계산하지 않고
닫힌 형태로 변환하여 반복 나눗셈의 반올림 오차 누적을 피합니다.

핵심 공식:
    Δ(1/√P) = -Δ√P / (√P² + √P·Δ√P)
    Δ√P     = -Δ(1/√P) · (√P² / (1 + Δ(1/√P)·√P))
"""


def get_d_inv_sqrt_price(sqrt_price: float, d_sqrt_price: float) -> float:
    """Δ√P → Δ(1/√P)

    Args:
        sqrt_price: 현재 √P
        d_sqrt_price: √P 변화량

    Returns:
        1/√P 변화량
    """
    return -d_sqrt_price / (sqrt_price ** 2 + sqrt_price * d_sqrt_price)


def get_d_sqrt_price(sqrt_price: float, d_inv_sqrt_price: float) -> float:
    """Δ(1/√P) → Δ√P

    Args:
        sqrt_price: 현재 √P
        d_inv_sqrt_price: 1/√P 변화량

    Returns:
        √P 변화량
    """
    return -d_inv_sqrt_price * (
        sqrt_price ** 2 / (1 + d_inv_sqrt_price * sqrt_price)
    )
