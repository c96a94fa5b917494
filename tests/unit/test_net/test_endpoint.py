"""Endpoint Allocator 단위 테스트

실제 loopback 소켓을 사용한다.
"""

import errno
import socket

import pytest

from sipnet.config.models import SIPConfig, TransportType
from sipnet.net.endpoint import (
    EndpointAllocator,
    bind_socket,
    create_socket_to,
    discover_local_address,
)
from sipnet.common.exceptions import AddressInUseError, EndpointError, RoutingError
from sipnet.common.logger import setup_logging


@pytest.fixture(scope="module", autouse=True)
def setup_test_logging():
    """테스트용 로깅 설정"""
    setup_logging(level="DEBUG", format_type="text")


@pytest.fixture
def high_port_config():
    """테스트용 SIP 설정 (충돌이 적은 높은 포트 대역)"""
    return SIPConfig(
        default_port=47060,
        fallback_port_start=47062,
        fallback_port_end=47066,
        allow_ephemeral=False,
    )


class TestDiscoverLocalAddress:
    """로컬 주소 탐색 테스트"""

    def test_loopback_destination(self):
        assert discover_local_address("127.0.0.1:5060") == "127.0.0.1"

    def test_default_port(self):
        assert discover_local_address("127.0.0.1") == "127.0.0.1"

    def test_no_route(self, monkeypatch):
        """connect 실패는 RoutingError (errno 보존)"""
        def _fail(self, address):
            raise OSError(errno.ENETUNREACH, "Network is unreachable")

        monkeypatch.setattr(socket.socket, "connect", _fail)

        with pytest.raises(RoutingError) as exc_info:
            discover_local_address("192.0.2.1:5060")

        assert exc_info.value.errno == errno.ENETUNREACH


class TestBindSocket:
    """SIP 소켓 바인드 테스트"""

    def test_bind_udp(self, high_port_config):
        sock, local_addr = bind_socket("127.0.0.1", config=high_port_config)
        try:
            assert sock.type == socket.SOCK_DGRAM
            assert local_addr == f"127.0.0.1:{sock.getsockname()[1]}"
            assert sock.getsockname()[1] == 47060
        finally:
            sock.close()

    def test_bind_tls_starts_at_tls_port(self, high_port_config):
        """tls는 default_port 대신 tls_port부터 바인드"""
        config = high_port_config.model_copy(update={"tls_port": 47061})
        sock, local_addr = bind_socket("127.0.0.1", proto="tls", config=config)
        try:
            assert sock.type == socket.SOCK_STREAM
            assert local_addr == "127.0.0.1:47061"
        finally:
            sock.close()

    def test_bind_tcp_listens(self, high_port_config):
        sock, local_addr = bind_socket("127.0.0.1", proto="tcp", config=high_port_config)
        try:
            assert sock.type == socket.SOCK_STREAM
            # listen 상태여야 connect 가능
            with socket.create_connection(("127.0.0.1", sock.getsockname()[1]), timeout=2):
                pass
        finally:
            sock.close()

    def test_fallback_order(self, occupy_udp_ports, high_port_config):
        """기본 포트와 앞쪽 fallback 포트가 사용 중이면 다음 포트"""
        occupy_udp_ports("127.0.0.1", [47060, 47062, 47063, 47064])

        sock, local_addr = bind_socket("127.0.0.1", config=high_port_config)
        try:
            assert local_addr == "127.0.0.1:47065"
        finally:
            sock.close()

    def test_default_fallback_to_5065(self, occupy_udp_ports):
        """기본 설정: 5060, 5062-5064 사용 중이면 5065"""
        # 5065가 다른 프로세스에 점유되어 있으면 skip
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            try:
                probe.bind(("127.0.0.1", 5065))
            except OSError:
                pytest.skip("UDP port 5065 not available on this host")
        occupy_udp_ports("127.0.0.1", [5060, 5062, 5063, 5064])

        sock, local_addr = bind_socket("127.0.0.1")
        try:
            assert local_addr == "127.0.0.1:5065"
        finally:
            sock.close()

    def test_ephemeral_when_all_busy(self, occupy_udp_ports):
        config = SIPConfig(default_port=47070, fallback_port_start=47071,
                           fallback_port_end=47072, allow_ephemeral=True)
        occupy_udp_ports("127.0.0.1", [47070, 47071, 47072])

        sock, _ = bind_socket("127.0.0.1", config=config)
        try:
            assert sock.getsockname()[1] not in (0, 47070, 47071, 47072)
        finally:
            sock.close()

    def test_all_busy_raises_address_in_use(self, occupy_udp_ports):
        config = SIPConfig(default_port=47080, fallback_port_start=47081,
                           fallback_port_end=47082, allow_ephemeral=False)
        occupy_udp_ports("127.0.0.1", [47080, 47081, 47082])

        with pytest.raises(AddressInUseError) as exc_info:
            bind_socket("127.0.0.1", config=config)

        assert exc_info.value.errno == errno.EADDRINUSE

    def test_explicit_port_first(self, high_port_config):
        sock, local_addr = bind_socket("127.0.0.1", port=47090, config=high_port_config)
        try:
            assert local_addr == "127.0.0.1:47090"
        finally:
            sock.close()

    def test_port_in_address_string(self, high_port_config):
        sock, local_addr = bind_socket("127.0.0.1:47091", config=high_port_config)
        try:
            assert local_addr == "127.0.0.1:47091"
        finally:
            sock.close()

    def test_non_local_address(self, high_port_config):
        """로컬이 아닌 주소는 재시도 없이 EndpointError"""
        with pytest.raises(EndpointError) as exc_info:
            bind_socket("192.0.2.123", config=high_port_config)

        assert exc_info.value.errno == errno.EADDRNOTAVAIL

    def test_unsupported_transport(self):
        with pytest.raises(ValueError):
            bind_socket("127.0.0.1", proto="sctp")


class TestEndpointAllocator:
    """설정 기반 할당자 테스트"""

    def test_socket_to(self, high_port_config):
        allocator = EndpointAllocator(high_port_config)
        sock, local_addr = allocator.socket_to("127.0.0.1:5060")
        try:
            assert local_addr.startswith("127.0.0.1:")
        finally:
            sock.close()

    def test_transport_from_config(self):
        config = SIPConfig(default_port=47100, fallback_port_start=47101,
                           fallback_port_end=47102, transport=TransportType.TCP)
        sock, _ = EndpointAllocator(config).bind("127.0.0.1")
        try:
            assert sock.type == socket.SOCK_STREAM
        finally:
            sock.close()

    def test_create_socket_to(self, high_port_config):
        sock, local_addr = create_socket_to("127.0.0.1", config=high_port_config)
        try:
            assert local_addr == f"127.0.0.1:{sock.getsockname()[1]}"
        finally:
            sock.close()

    def test_local_address_for(self):
        assert EndpointAllocator().local_address_for("127.0.0.1") == "127.0.0.1"
