"""SockAddr Codec 단위 테스트"""

import socket
import struct

import pytest

from sipnet.net.address import parse_address
from sipnet.net.models import AddressFamily, AddressRecord
from sipnet.net.sockaddr import (
    SOCKADDR_IN6_SIZE,
    SOCKADDR_IN_SIZE,
    from_sockaddr,
    sockaddr_to_string,
    string_to_sockaddr,
    to_sockaddr,
)
from sipnet.common.exceptions import (
    MalformedAddressError,
    MalformedSockAddrError,
    UnsupportedFamilyError,
)
from sipnet.common.logger import setup_logging


@pytest.fixture(scope="module", autouse=True)
def setup_test_logging():
    """테스트용 로깅 설정"""
    setup_logging(level="DEBUG", format_type="text")


class TestToSockAddr:
    """AddressRecord -> sockaddr 테스트"""

    def test_ipv4_layout(self):
        """sockaddr_in 레이아웃 (16 bytes)"""
        data = to_sockaddr(parse_address("192.168.1.100:5060"))

        assert len(data) == SOCKADDR_IN_SIZE
        assert struct.unpack('=H', data[0:2])[0] == socket.AF_INET
        assert data[2:4] == b'\x13\xc4'  # 5060 network order
        assert data[4:8] == bytes([192, 168, 1, 100])
        assert data[8:] == b'\x00' * 8

    def test_ipv6_layout(self):
        """sockaddr_in6 레이아웃 (28 bytes)"""
        data = to_sockaddr(parse_address("[2001:db8::1]:5061"))

        assert len(data) == SOCKADDR_IN6_SIZE
        assert struct.unpack('=H', data[0:2])[0] == socket.AF_INET6
        assert struct.unpack('!H', data[2:4])[0] == 5061
        assert data[8:24] == socket.inet_pton(socket.AF_INET6, "2001:db8::1")

    def test_missing_port_encodes_zero(self):
        data = to_sockaddr(parse_address("10.0.0.1"))
        assert data[2:4] == b'\x00\x00'

    def test_hostname_unsupported_family(self):
        """패밀리를 추론할 수 없는 호스트 이름"""
        with pytest.raises(UnsupportedFamilyError):
            to_sockaddr(parse_address("sip.example.com:5060"))

    def test_explicit_family_mismatch(self):
        with pytest.raises(MalformedAddressError):
            to_sockaddr(parse_address("10.0.0.1:5060"), AddressFamily.IPV6)

    def test_family_inferred_from_host(self):
        """family 없는 레코드도 host가 IP면 추론"""
        data = to_sockaddr(AddressRecord(host="::1", port=5060))
        assert len(data) == SOCKADDR_IN6_SIZE


class TestFromSockAddr:
    """sockaddr -> AddressRecord 테스트"""

    def test_round_trip_ipv4(self):
        record = parse_address("10.20.30.40:40000")
        assert from_sockaddr(to_sockaddr(record)) == record

    def test_round_trip_ipv6(self):
        record = from_sockaddr(to_sockaddr(parse_address("[2001:DB8:0:0::1]:5060")))
        assert record.addr == "2001:db8::1"
        assert record.host == "2001:db8::1"
        assert record.port == 5060
        assert record.family is AddressFamily.IPV6

    def test_invalid_length(self):
        with pytest.raises(MalformedSockAddrError):
            from_sockaddr(b'\x00' * 10)

    def test_explicit_family_length_mismatch(self):
        data = to_sockaddr(parse_address("10.0.0.1:5060"))
        with pytest.raises(MalformedSockAddrError):
            from_sockaddr(data, AddressFamily.IPV6)

    def test_family_tag_mismatch(self):
        data = bytearray(to_sockaddr(parse_address("10.0.0.1:5060")))
        data[0:2] = struct.pack('=H', socket.AF_INET6)
        with pytest.raises(MalformedSockAddrError):
            from_sockaddr(bytes(data))


class TestStringConversions:
    """문자열 <-> sockaddr 편의 함수 테스트"""

    def test_string_round_trip(self):
        assert sockaddr_to_string(string_to_sockaddr("[::1]:5062")) == "[::1]:5062"
        assert sockaddr_to_string(string_to_sockaddr("127.0.0.1:5060")) == "127.0.0.1:5060"

    def test_format_kwargs_forwarded(self):
        data = string_to_sockaddr("127.0.0.1:5060")
        assert sockaddr_to_string(data, default_port=5060) == "127.0.0.1"
