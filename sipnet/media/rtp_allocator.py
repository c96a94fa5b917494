"""RTP Socket Allocator

RTP/RTCP UDP 소켓 쌍 할당 (짝수 시작 포트, 랜덤 탐색, 재시도 횟수 제한)
"""

import random
import socket
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, List, Optional

from sipnet.config.models import RTPConfig
from sipnet.net.address import classify, parse_address, resolve
from sipnet.net.models import AddressFamily
from sipnet.common.exceptions import MediaError, RTPPortExhaustedError
from sipnet.common.logger import get_logger

logger = get_logger(__name__)

MAX_PORT = 65535


@dataclass
class RtpAllocation:
    """RTP 소켓 할당 결과

    sockets[i]는 start_port + i 에 바인드되어 있다.
    (기본 2개: RTP 짝수 포트, RTCP 홀수 포트)
    소켓 소유권은 호출자에게 있으며 close()로 해제한다.
    """
    start_port: int
    sockets: List[socket.socket] = field(default_factory=list)

    @property
    def ports(self) -> List[int]:
        return [self.start_port + offset for offset in range(len(self.sockets))]

    def close(self) -> None:
        for sock in self.sockets:
            sock.close()

    def __enter__(self) -> "RtpAllocation":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RtpAllocation(start_port={self.start_port}, ports={self.ports})"


def _random_even_port(low: int, high: int) -> int:
    """[low, high] 범위의 균등 분포 짝수 포트"""
    first = low + (low % 2)
    return first + 2 * random.randint(0, (high - first) // 2)


def _bind_consecutive(ip: str, family: AddressFamily, start_port: int,
                      count: int) -> Optional[List[socket.socket]]:
    """start_port부터 count개 연속 포트에 UDP 소켓 바인드

    하나라도 실패하면 이번 시도에서 연 소켓을 모두 닫고 None 반환
    """
    with ExitStack() as stack:
        sockets = []
        for offset in range(count):
            try:
                sock = stack.enter_context(socket.socket(family.socket_family, socket.SOCK_DGRAM))
            except OSError as e:
                raise MediaError(f"Cannot create RTP socket: {e}") from e
            try:
                sock.bind((ip, start_port + offset))
            except OSError as e:
                logger.debug("rtp_port_busy", host=ip, port=start_port + offset, error=str(e))
                return None
            sockets.append(sock)
        # 성공: 소유권을 호출자에게 이전
        stack.pop_all()
        return sockets


def allocate_rtp_pair(
    local_addr: str,
    port_range: int = 2,
    min_port: int = 2000,
    max_port: Optional[int] = None,
    tries: int = 1000,
    deadline: Optional[float] = None,
) -> Optional[RtpAllocation]:
    """연속 RTP/RTCP 소켓 할당

    [min_port, max_port]에서 균등 분포 짝수 포트 p를 고르고
    p, p+1, ..., p+port_range-1 에 바인드를 시도한다.
    실패하면 이번 시도의 소켓을 모두 닫고 새 포트로 재시도한다.

    Args:
        local_addr: 바인드할 로컬 IP
        port_range: 연속 소켓 수 (기본 2: RTP+RTCP)
        min_port: 최소 포트
        max_port: 최대 포트 (None이면 min_port + 10000)
        tries: 최대 시도 횟수
        deadline: 시도 제한 시간 (초, None이면 시도 횟수로만 제한)

    Returns:
        RtpAllocation 또는 None (재시도 소진 - 포트 부족 상황의 정상 결과)

    Raises:
        ValueError: 잘못된 인자 (범위 안에 짝수 포트 없음 등)
        MediaError: 소켓 자체를 생성할 수 없는 경우
    """
    if port_range < 1:
        raise ValueError(f"port_range must be >= 1: {port_range}")
    if tries < 1:
        raise ValueError(f"tries must be >= 1: {tries}")
    if max_port is None:
        max_port = min(min_port + 10000, MAX_PORT)

    # 마지막 소켓이 65535를 넘지 않도록 시작 포트 상한 제한
    highest_start = min(max_port, MAX_PORT - port_range + 1)
    first_even = min_port + (min_port % 2)
    if first_even > highest_start:
        raise ValueError(f"No even start port in range [{min_port}, {max_port}]")

    record = parse_address(local_addr)
    if record.is_ip:
        ip, family = record.addr, record.family
    else:
        ip = resolve(record.host)[0]
        family = classify(ip)

    started = time.monotonic()
    attempts = 0
    while attempts < tries:
        if deadline is not None and time.monotonic() - started >= deadline:
            logger.warning("rtp_allocation_deadline_exceeded",
                           host=ip,
                           attempts=attempts,
                           deadline=deadline)
            break
        attempts += 1

        start_port = _random_even_port(min_port, highest_start)
        sockets = _bind_consecutive(ip, family, start_port, port_range)
        if sockets is not None:
            allocation = RtpAllocation(start_port=start_port, sockets=sockets)
            logger.info("rtp_pair_allocated",
                        host=ip,
                        ports=allocation.ports,
                        attempts=attempts)
            return allocation

    logger.warning("rtp_ports_exhausted",
                   host=ip,
                   min_port=min_port,
                   max_port=max_port,
                   attempts=attempts)
    return None


class RTPSocketAllocator:
    """설정 기반 RTP 소켓 할당자

    RTPConfig의 포트 범위/시도 횟수/제한 시간을 사용하며
    할당 결과 통계를 유지한다 (소켓 참조는 보관하지 않음).
    """

    def __init__(self, config: Optional[RTPConfig] = None):
        """초기화

        Args:
            config: RTP 설정 (None이면 기본값)
        """
        self.config = config or RTPConfig()
        self._lock = RLock()
        self._allocated = 0
        self._exhausted = 0

        logger.info("rtp_socket_allocator_initialized",
                    min_port=self.config.min_port,
                    max_port=self.config.effective_max_port,
                    port_range=self.config.port_range,
                    tries=self.config.tries)

    def try_allocate(self, local_addr: str) -> Optional[RtpAllocation]:
        """소켓 할당 (실패 시 None)"""
        allocation = allocate_rtp_pair(
            local_addr,
            port_range=self.config.port_range,
            min_port=self.config.min_port,
            max_port=self.config.effective_max_port,
            tries=self.config.tries,
            deadline=self.config.deadline,
        )
        with self._lock:
            if allocation is None:
                self._exhausted += 1
            else:
                self._allocated += 1
        return allocation

    def allocate(self, local_addr: str) -> RtpAllocation:
        """소켓 할당

        Raises:
            RTPPortExhaustedError: 재시도 소진
        """
        allocation = self.try_allocate(local_addr)
        if allocation is None:
            raise RTPPortExhaustedError(
                f"No free RTP ports on {local_addr} in "
                f"[{self.config.min_port}, {self.config.effective_max_port}] "
                f"after {self.config.tries} tries"
            )
        return allocation

    def get_stats(self) -> Dict[str, Any]:
        """통계 정보"""
        with self._lock:
            return {
                "allocated": self._allocated,
                "exhausted": self._exhausted,
                "port_range": f"{self.config.min_port}-{self.config.effective_max_port}",
            }
