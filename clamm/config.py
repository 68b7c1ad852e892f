"""
Configuration settings for clamm

Pool 생성 설정과 환경변수 기반 기본값.
Pool 자체는 환경변수를 읽지 않으며, from_config()를 호출할 때만 사용됩니다.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .constants import DEFAULT_INITIAL_PRICE, DEFAULT_FEE_RATE
from .errors import InvalidArgumentError

# Load environment variables from .env file
load_dotenv()


@dataclass
class PoolConfig:
    """Pool 생성 설정"""
    initial_price: float = DEFAULT_INITIAL_PRICE
    fee_rate: float = DEFAULT_FEE_RATE

    def validate(self) -> "PoolConfig":
        """
        Raises:
            InvalidArgumentError: initial_price <= 0 또는 fee_rate가 [0, 1) 밖인 경우
        """
        if not self.initial_price > 0:
            raise InvalidArgumentError(f"초기 가격은 양수여야 합니다: {self.initial_price}")
        if not 0 <= self.fee_rate < 1:
            raise InvalidArgumentError(f"수수료율은 [0, 1) 범위여야 합니다: {self.fee_rate}")
        return self


class Settings:
    """Application settings"""

    DEFAULT_INITIAL_PRICE: float = float(os.getenv("CLAMM_INITIAL_PRICE", DEFAULT_INITIAL_PRICE))
    DEFAULT_FEE_RATE: float = float(os.getenv("CLAMM_FEE_RATE", DEFAULT_FEE_RATE))

    # Logging
    LOG_LEVEL: str = os.getenv("CLAMM_LOG_LEVEL", "WARNING").upper()
    LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    def pool_config(self) -> PoolConfig:
        """환경변수 기본값으로 만든 PoolConfig"""
        return PoolConfig(
            initial_price=self.DEFAULT_INITIAL_PRICE,
            fee_rate=self.DEFAULT_FEE_RATE
        ).validate()


# Create global settings instance
settings = Settings()


def configure_logging(level: Optional[str] = None):
    """스크립트/노트북용 로깅 설정. 라이브러리는 핸들러를 추가하지 않습니다."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=settings.LOG_FORMAT
    )
