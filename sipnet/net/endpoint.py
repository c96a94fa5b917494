"""Endpoint Allocator

로컬 주소 탐색 및 SIP 소켓 바인드 (포트 fallback)

바인드 순서 (기본 설정):
- 5060 (SIP well-known, tls는 5061)
- 5062 ~ 5100 순차 시도
- 0 (OS가 할당하는 ephemeral 포트)
"""

import errno
import socket
from typing import Optional, Tuple

from sipnet.config.models import SIPConfig, TransportType
from sipnet.net.address import canonicalize, classify, format_address, parse_address, resolve
from sipnet.net.models import AddressFamily, AddressRecord
from sipnet.common.exceptions import AddressInUseError, EndpointError, RoutingError
from sipnet.common.logger import get_logger

logger = get_logger(__name__)

# 다른 포트로 재시도할 가치가 있는 bind 에러
_RETRYABLE_BIND_ERRORS = {errno.EADDRINUSE, errno.EACCES}

_SOCKET_TYPES = {
    "udp": socket.SOCK_DGRAM,
    "tcp": socket.SOCK_STREAM,
    "tls": socket.SOCK_STREAM,
}


def _transport_name(proto) -> str:
    name = (proto.value if isinstance(proto, TransportType) else str(proto)).lower()
    if name not in _SOCKET_TYPES:
        raise ValueError(f"Unsupported transport: {proto}")
    return name


def _resolve_ip(record: AddressRecord) -> Tuple[str, AddressFamily]:
    if record.is_ip:
        return record.addr, record.family
    ip = resolve(record.host)[0]
    return ip, classify(ip)


def discover_local_address(destination: str) -> str:
    """목적지로 패킷을 보낼 때 사용될 로컬 IP 탐색

    연결된 UDP 소켓을 만들어 라우팅 테이블이 고른 소스 주소를 읽는다.
    UDP connect는 패킷을 전송하지 않는다.

    Args:
        destination: "host[:port]" (포트 생략 시 5060)

    Returns:
        정규화된 로컬 IP

    Raises:
        RoutingError: 목적지로 가는 경로가 없는 경우
        ResolutionError: 목적지 호스트 이름 해석 실패
    """
    record = parse_address(destination)
    ip, family = _resolve_ip(record)
    port = record.port or SIPConfig().default_port

    try:
        with socket.socket(family.socket_family, socket.SOCK_DGRAM) as probe:
            probe.connect((ip, port))
            local_ip = probe.getsockname()[0]
    except OSError as e:
        logger.warning("local_address_discovery_failed",
                       destination=destination,
                       error=str(e))
        raise RoutingError(f"No route to {destination}: {e}", e) from e

    local_ip = canonicalize(local_ip, family)
    logger.debug("local_address_discovered", destination=destination, local_addr=local_ip)
    return local_ip


def bind_socket(
    address: str,
    proto: str = "udp",
    port: Optional[int] = None,
    config: Optional[SIPConfig] = None,
) -> Tuple[socket.socket, str]:
    """로컬 주소에 SIP 소켓 바인드

    포트가 사용 중이면 설정된 fallback 포트를 순서대로 시도한다.
    TCP 소켓은 바인드 후 listen 상태가 된다.

    Args:
        address: 로컬 IP (또는 호스트 이름, "ip:port" 형식이면 해당 포트 우선)
        proto: "udp", "tcp" 또는 "tls" (tls는 TCP 소켓)
        port: 가장 먼저 시도할 포트
        config: SIP 설정 (None이면 기본값)

    Returns:
        (바인드된 소켓, "ip:port") - 소켓 소유권은 호출자에게 있음

    Raises:
        AddressInUseError: 모든 포트가 사용 중인 경우
        EndpointError: 그 외 소켓 생성/바인드 실패 (errno 보존)
    """
    config = config or SIPConfig()
    proto = _transport_name(proto)
    sock_type = _SOCKET_TYPES[proto]
    record = parse_address(address)
    ip, family = _resolve_ip(record)

    candidates = []
    for candidate in [port, record.port, *config.candidate_ports(proto)]:
        if candidate is not None and candidate not in candidates:
            candidates.append(candidate)

    last_error: Optional[OSError] = None
    for candidate in candidates:
        try:
            sock = socket.socket(family.socket_family, sock_type)
        except OSError as e:
            raise EndpointError(f"Cannot create {proto} socket: {e}", e) from e

        try:
            sock.bind((ip, candidate))
            if sock_type == socket.SOCK_STREAM:
                sock.listen(10)
        except OSError as e:
            sock.close()
            last_error = e
            if e.errno not in _RETRYABLE_BIND_ERRORS:
                logger.warning("socket_bind_failed", host=ip, port=candidate, proto=proto, error=str(e))
                raise EndpointError(f"Cannot bind {proto} socket to {ip}:{candidate}: {e}", e) from e
            logger.debug("socket_bind_port_busy", host=ip, port=candidate, proto=proto)
            continue

        bound_port = sock.getsockname()[1]
        local_addr = format_address(AddressRecord(host=ip, addr=ip, port=bound_port, family=family))
        if candidate != candidates[0]:
            logger.info("socket_bound_fallback_port", local_addr=local_addr, proto=proto,
                        preferred_port=candidates[0])
        else:
            logger.info("socket_bound", local_addr=local_addr, proto=proto)
        return sock, local_addr

    logger.warning("socket_bind_exhausted", host=ip, proto=proto, attempts=len(candidates))
    message = f"No free port for {proto} socket on {ip}: {last_error}"
    if last_error is not None and last_error.errno == errno.EADDRINUSE:
        raise AddressInUseError(message, last_error) from last_error
    raise EndpointError(message, last_error) from last_error


def create_socket_to(
    destination: str,
    proto: str = "udp",
    config: Optional[SIPConfig] = None,
) -> Tuple[socket.socket, str]:
    """목적지에 도달 가능한 로컬 주소로 소켓 생성

    Returns:
        (바인드된 소켓, "ip:port")
    """
    local_ip = discover_local_address(destination)
    return bind_socket(local_ip, proto=proto, config=config)


class EndpointAllocator:
    """설정 기반 SIP 소켓 할당자

    SIPConfig의 포트 순서와 기본 트랜스포트를 사용한다.
    생성된 소켓의 소유권은 호출자에게 넘어가며 할당자는 참조를 보관하지 않는다.
    """

    def __init__(self, config: Optional[SIPConfig] = None):
        """초기화

        Args:
            config: SIP 설정 (None이면 기본값)
        """
        self.config = config or SIPConfig()

    def local_address_for(self, destination: str) -> str:
        """목적지에 대한 로컬 소스 IP"""
        return discover_local_address(destination)

    def bind(self, address: str, proto: Optional[str] = None,
             port: Optional[int] = None) -> Tuple[socket.socket, str]:
        """로컬 주소에 바인드 (proto 생략 시 설정의 transport)"""
        return bind_socket(address, proto=proto or self.config.transport, port=port, config=self.config)

    def socket_to(self, destination: str, proto: Optional[str] = None) -> Tuple[socket.socket, str]:
        """목적지에 도달 가능한 로컬 주소로 바인드"""
        return create_socket_to(destination, proto=proto or self.config.transport, config=self.config)
