"""
clamm 예외 정의

모든 예외는 호출한 연산에서 즉시 발생하며 내부에서 재시도하지 않습니다.
여러 구간에 걸친 거래가 중간에 실패해도 이미 처리된 구간은 되돌리지 않습니다.
"""


class ConcentratedLiquidityError(Exception):
    """clamm 예외의 공통 부모"""
    pass


class InvalidArgumentError(ConcentratedLiquidityError, ValueError):
    """잘못된 입력 (0 이하 수량, 잘못된 범위, 파라미터 조합 오류)"""
    pass


class PositionNotFoundError(ConcentratedLiquidityError, KeyError):
    """존재하지 않는 포지션 id"""

    def __init__(self, position_id: str):
        super().__init__(position_id)
        self.position_id = position_id

    def __str__(self) -> str:
        return f"포지션이 존재하지 않습니다: {self.position_id}"


class OutOfRangeError(ConcentratedLiquidityError):
    """현재 가격을 포함하는 포지션이 없음"""
    pass


class InsufficientLiquidityError(ConcentratedLiquidityError):
    """현재 구간의 유동성이 0"""
    pass
