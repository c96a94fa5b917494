"""주소 데이터 모델

host:port 파싱 결과와 URI에서 유도한 소켓 정보를 담는 데이터 클래스
"""

import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AddressFamily(str, Enum):
    """IP 주소 패밀리"""
    IPV4 = "ipv4"
    IPV6 = "ipv6"

    @property
    def socket_family(self) -> int:
        """socket 모듈의 AF_* 상수"""
        return socket.AF_INET if self is AddressFamily.IPV4 else socket.AF_INET6

    @classmethod
    def from_socket_family(cls, family: int) -> "AddressFamily":
        if family == socket.AF_INET:
            return cls.IPV4
        if family == socket.AF_INET6:
            return cls.IPV6
        raise ValueError(f"Unsupported socket family: {family}")


@dataclass(frozen=True)
class AddressRecord:
    """host[:port] 파싱 결과

    host는 원본 호스트 문자열, addr는 host가 IP 리터럴인 경우에만
    설정되는 정규화된 주소다. family가 설정되면 addr도 반드시 설정된다.

    예: "[2001:DB8::1]:5060" -> host="2001:DB8::1", addr="2001:db8::1", port=5060
    """
    host: str
    addr: Optional[str] = None
    port: Optional[int] = None
    family: Optional[AddressFamily] = None

    def __post_init__(self):
        if (self.family is None) != (self.addr is None):
            raise ValueError("family and addr must be set together")

    @property
    def is_ip(self) -> bool:
        """host가 IP 리터럴인지 여부"""
        return self.addr is not None

    def __repr__(self) -> str:
        return (f"AddressRecord(host={self.host}, addr={self.addr}, "
                f"port={self.port}, family={self.family.value if self.family else None})")


@dataclass
class SockInfo:
    """SIP URI에서 유도한 소켓 연결 정보

    proto가 None이면 URI에 transport가 명시되지 않은 것이며
    기본값(일반적으로 udp) 선택은 호출자 몫이다.
    """
    proto: Optional[str]
    host: str
    port: Optional[int] = None
    family: Optional[AddressFamily] = None
