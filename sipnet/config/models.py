"""설정 모델 정의

Pydantic을 사용한 타입 안전 설정 검증 모델
"""

from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class TransportType(str, Enum):
    """SIP 트랜스포트 타입"""
    UDP = "udp"
    TCP = "tcp"
    TLS = "tls"


class LogLevel(str, Enum):
    """로그 레벨"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """로그 포맷"""
    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """로깅 설정"""
    level: LogLevel = Field(default=LogLevel.INFO, description="로그 레벨")
    format: LogFormat = Field(default=LogFormat.JSON, description="로그 포맷")
    output: str = Field(default="stdout", description="로그 출력 (stdout, file)")


class SIPConfig(BaseModel):
    """SIP 소켓 바인드 설정

    바인드 순서: default_port → fallback_port_start..fallback_port_end → 0 (ephemeral)
    """
    default_port: int = Field(default=5060, ge=1, le=65535, description="SIP 기본 포트")
    tls_port: int = Field(default=5061, ge=1, le=65535, description="SIPS/TLS 기본 포트")
    fallback_port_start: int = Field(default=5062, ge=1, le=65535, description="대체 포트 시작")
    fallback_port_end: int = Field(default=5100, ge=1, le=65535, description="대체 포트 끝 (포함)")
    allow_ephemeral: bool = Field(default=True, description="모든 포트 실패 시 OS 할당 포트 사용")
    transport: TransportType = Field(default=TransportType.UDP, description="기본 전송 프로토콜")

    @field_validator('fallback_port_end')
    @classmethod
    def validate_fallback_range(cls, v: int, info) -> int:
        """대체 포트 범위 검증"""
        if 'fallback_port_start' in info.data and v < info.data['fallback_port_start']:
            raise ValueError(
                f"fallback end port ({v}) must be >= fallback start port "
                f"({info.data['fallback_port_start']})"
            )
        return v

    def candidate_ports(self, transport: Optional[str] = None) -> list[int]:
        """바인드 시도 포트 순서 (ephemeral 0 포함)

        Args:
            transport: "tls"면 default_port 대신 tls_port부터 시도
        """
        if isinstance(transport, Enum):
            transport = transport.value
        first = self.tls_port if (transport or "").lower() == TransportType.TLS.value else self.default_port
        ports = [first]
        ports.extend(
            p for p in range(self.fallback_port_start, self.fallback_port_end + 1)
            if p != first
        )
        if self.allow_ephemeral:
            ports.append(0)
        return ports


class RTPConfig(BaseModel):
    """RTP/RTCP 소켓 쌍 할당 설정"""
    min_port: int = Field(default=2000, ge=1, le=65535, description="최소 포트")
    max_port: Optional[int] = Field(default=None, ge=1, le=65535, description="최대 포트 (None=min_port+10000)")
    port_range: int = Field(default=2, ge=1, le=16, description="연속 할당 소켓 수 (RTP+RTCP=2)")
    tries: int = Field(default=1000, ge=1, le=100000, description="최대 시도 횟수")
    deadline: Optional[float] = Field(default=None, gt=0, description="할당 제한 시간 (초, None=무제한)")

    @field_validator('max_port')
    @classmethod
    def validate_port_range(cls, v: Optional[int], info) -> Optional[int]:
        """포트 범위 검증"""
        if v is not None and 'min_port' in info.data and v < info.data['min_port']:
            raise ValueError(f"max port ({v}) must be >= min port ({info.data['min_port']})")
        return v

    @property
    def effective_max_port(self) -> int:
        """max_port 미지정 시 min_port + 10000 (65535 상한)"""
        if self.max_port is not None:
            return self.max_port
        return min(self.min_port + 10000, 65535)


class Config(BaseModel):
    """전체 설정"""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sip: SIPConfig = Field(default_factory=SIPConfig)
    rtp: RTPConfig = Field(default_factory=RTPConfig)
