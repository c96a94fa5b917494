"""SockAddr Codec

AddressRecord <-> 바이너리 sockaddr 구조체 변환

레이아웃 (Linux):
- sockaddr_in  (16 bytes): family(2, host order) + port(2, network order) + addr(4) + zero(8)
- sockaddr_in6 (28 bytes): family(2) + port(2) + flowinfo(4) + addr(16) + scope_id(4)
"""

import socket
import struct
from typing import Optional

from sipnet.net.address import canonicalize, classify, format_address, parse_address
from sipnet.net.models import AddressFamily, AddressRecord
from sipnet.common.exceptions import (
    MalformedAddressError,
    MalformedSockAddrError,
    UnsupportedFamilyError,
)

SOCKADDR_IN_SIZE = 16
SOCKADDR_IN6_SIZE = 28

_SOCKADDR_SIZES = {
    AddressFamily.IPV4: SOCKADDR_IN_SIZE,
    AddressFamily.IPV6: SOCKADDR_IN6_SIZE,
}


def _family_for(record: AddressRecord, family: Optional[AddressFamily]) -> AddressFamily:
    if family is not None:
        return family
    if record.family is not None:
        return record.family
    # IP로 인식되지 않은 host에서 추론 시도
    inferred = classify(record.host)
    if inferred is None:
        raise UnsupportedFamilyError(f"Cannot determine address family for {record.host!r}")
    return inferred


def to_sockaddr(record: AddressRecord, family: Optional[AddressFamily] = None) -> bytes:
    """AddressRecord를 sockaddr 바이트열로 변환

    Args:
        record: 주소 레코드 (port가 None이면 0)
        family: 명시적 패밀리 (None이면 레코드에서 추론)

    Returns:
        16 bytes (IPv4) 또는 28 bytes (IPv6)

    Raises:
        UnsupportedFamilyError: 패밀리를 결정할 수 없는 경우
        MalformedAddressError: 주소가 해당 패밀리로 파싱되지 않는 경우
    """
    family = _family_for(record, family)
    ip = canonicalize(record.addr if record.addr is not None else record.host, family)
    port = record.port or 0

    try:
        packed_ip = socket.inet_pton(family.socket_family, ip.split('%', 1)[0])
    except (OSError, ValueError) as e:
        raise MalformedAddressError(f"{ip!r} is not a valid {family.value} address") from e

    if family is AddressFamily.IPV4:
        return struct.pack('=H', socket.AF_INET) + struct.pack('!H4s8x', port, packed_ip)
    return (struct.pack('=H', socket.AF_INET6)
            + struct.pack('!HI16s', port, 0, packed_ip)
            + struct.pack('=I', 0))


def from_sockaddr(data: bytes, family: Optional[AddressFamily] = None) -> AddressRecord:
    """sockaddr 바이트열을 AddressRecord로 변환

    Args:
        data: sockaddr 바이트열
        family: 명시적 패밀리 (None이면 길이로 판별)

    Returns:
        AddressRecord (host와 addr 모두 정규화된 IP)

    Raises:
        MalformedSockAddrError: 길이 또는 family 태그 불일치
    """
    data = bytes(data)
    if family is None:
        for candidate, size in _SOCKADDR_SIZES.items():
            if len(data) == size:
                family = candidate
                break
        else:
            raise MalformedSockAddrError(f"Invalid sockaddr length: {len(data)}")
    elif len(data) != _SOCKADDR_SIZES[family]:
        raise MalformedSockAddrError(
            f"Invalid {family.value} sockaddr length: {len(data)} "
            f"(expected {_SOCKADDR_SIZES[family]})"
        )

    tag = struct.unpack('=H', data[0:2])[0]
    if tag != family.socket_family:
        raise MalformedSockAddrError(f"sockaddr family tag {tag} does not match {family.value}")

    if family is AddressFamily.IPV4:
        port, packed_ip = struct.unpack('!H4s', data[2:8])
    else:
        port, _flowinfo, packed_ip = struct.unpack('!HI16s', data[2:24])

    ip = canonicalize(socket.inet_ntop(family.socket_family, packed_ip), family)
    return AddressRecord(host=ip, addr=ip, port=port, family=family)


def sockaddr_to_string(data: bytes, family: Optional[AddressFamily] = None, **format_kwargs) -> str:
    """sockaddr 바이트열 -> 주소 문자열 ("ip:port")"""
    return format_address(from_sockaddr(data, family), **format_kwargs)


def string_to_sockaddr(text: str, family: Optional[AddressFamily] = None) -> bytes:
    """주소 문자열 -> sockaddr 바이트열 (이름 해석 없음)"""
    return to_sockaddr(parse_address(text), family)
