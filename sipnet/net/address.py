"""Address Codec

host[:port] 문자열 <-> AddressRecord 변환, IP 정규화, 역방향 DNS 이름
"""

import ipaddress
import re
import socket
from typing import List, Optional

from sipnet.net.models import AddressFamily, AddressRecord
from sipnet.common.exceptions import MalformedAddressError, ResolutionError
from sipnet.common.logger import get_logger

logger = get_logger(__name__)

_IPV4_RE = re.compile(r'^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})$')
_HOSTNAME_RE = re.compile(r'^[A-Za-z0-9](?:[A-Za-z0-9\-.]*[A-Za-z0-9.])?$')
# [host] 또는 [host]:port
_BRACKET_RE = re.compile(r'^\[([^\[\]\s]+)\](?::([^:\s]*))?$')
_PORT_RE = re.compile(r'^[0-9]+$')


def _canonical_ipv4(ip: str) -> Optional[str]:
    match = _IPV4_RE.match(ip)
    if not match:
        return None
    octets = [int(part) for part in match.groups()]
    if any(octet > 255 for octet in octets):
        return None
    return '.'.join(str(octet) for octet in octets)


def _canonical_ipv6(ip: str) -> Optional[str]:
    if ':' not in ip:
        return None
    try:
        # RFC 5952: 소문자, 가장 긴(동률이면 가장 왼쪽) 0 그룹 압축
        return ipaddress.IPv6Address(ip).compressed
    except ValueError:
        return None


def classify(ip: str) -> Optional[AddressFamily]:
    """IP 리터럴의 패밀리 판별 (이름 해석 없음)

    Args:
        ip: 검사할 문자열

    Returns:
        AddressFamily 또는 None (IP 리터럴이 아닌 경우)
    """
    if not ip:
        return None
    if _canonical_ipv4(ip) is not None:
        return AddressFamily.IPV4
    if _canonical_ipv6(ip) is not None:
        return AddressFamily.IPV6
    return None


def is_ipv4(ip: str) -> bool:
    return classify(ip) is AddressFamily.IPV4


def is_ipv6(ip: str) -> bool:
    return classify(ip) is AddressFamily.IPV6


def is_ip(ip: str) -> bool:
    """IPv4 또는 IPv6 리터럴 여부"""
    return classify(ip) is not None


def canonicalize(ip: str, family: Optional[AddressFamily] = None) -> str:
    """IP 리터럴을 비교용 정규 문자열로 변환

    IPv4: 앞자리 0 없는 점-십진 표기
    IPv6: 소문자 16진수, 가장 긴 0 그룹 연속을 '::'로 압축

    Args:
        ip: IP 리터럴
        family: 기대하는 패밀리 (None이면 자동 판별)

    Returns:
        정규화된 IP 문자열

    Raises:
        MalformedAddressError: 해당 패밀리의 IP 리터럴이 아닌 경우

    Examples:
        >>> canonicalize("2001:0db8:0000:0000:0000:0000:0000:0001")
        '2001:db8::1'
        >>> canonicalize("010.000.000.001")
        '10.0.0.1'
    """
    canonical = None
    if family in (None, AddressFamily.IPV4):
        canonical = _canonical_ipv4(ip or "")
    if canonical is None and family in (None, AddressFamily.IPV6):
        canonical = _canonical_ipv6(ip or "")
    if canonical is None:
        raise MalformedAddressError(
            f"Not an {family.value if family else 'IP'} address: {ip!r}"
        )
    return canonical


def _parse_port(port_text: Optional[str], original: str) -> Optional[int]:
    if not port_text:
        return None
    if not _PORT_RE.match(port_text):
        raise MalformedAddressError(f"Invalid port {port_text!r} in {original!r}")
    port = int(port_text)
    if port > 65535:
        raise MalformedAddressError(f"Port out of range {port} in {original!r}")
    return port


def parse_address(text: str, opaque: bool = False) -> AddressRecord:
    """host[:port] 문자열 파싱

    지원 형식:
    - host, host:port, ipv4, ipv4:port
    - [ipv6], [ipv6]:port, [host]:port
    - 괄호 없는 ipv6 (포트 없음; 콜론 2개 이상이면 포트로 해석하지 않음)

    Args:
        text: 주소 문자열
        opaque: True면 IP가 아닌 호스트에 문법 검사/소문자화를 하지 않음

    Returns:
        AddressRecord

    Raises:
        MalformedAddressError: 호스트 문법 오류 또는 숫자가 아닌 포트
    """
    if text is None or not text.strip():
        raise MalformedAddressError("Empty address")
    text = text.strip()

    if text.startswith('['):
        match = _BRACKET_RE.match(text)
        if not match:
            raise MalformedAddressError(f"Unbalanced brackets in {text!r}")
        host, port_text = match.group(1), match.group(2)
    elif text.count(':') >= 2:
        # 괄호 없는 IPv6 - 끝의 :digits는 IPv6 그룹으로 취급
        host, port_text = text, None
    elif ':' in text:
        host, port_text = text.split(':', 1)
    else:
        host, port_text = text, None

    if not host:
        raise MalformedAddressError(f"Empty host in {text!r}")

    port = _parse_port(port_text, text)

    family = classify(host)
    if family is not None:
        return AddressRecord(host=host, addr=canonicalize(host, family), port=port, family=family)

    if not opaque:
        if not _HOSTNAME_RE.match(host):
            logger.debug("address_parse_failed", host=host, reason="invalid_hostname")
            raise MalformedAddressError(f"Invalid hostname {host!r}")
        host = host.lower()

    return AddressRecord(host=host, port=port)


def format_address(
    record: AddressRecord,
    use_host: bool = False,
    default_port: Optional[int] = None,
    ipv6_brackets: bool = False,
) -> str:
    """AddressRecord를 host[:port] 문자열로 변환

    Args:
        record: 주소 레코드
        use_host: True면 정규화된 addr 대신 원본 host 사용
        default_port: 레코드 포트와 같으면 포트 생략 (예: SIP 5060)
        ipv6_brackets: 포트가 없어도 IPv6를 [] 로 감쌈

    Returns:
        주소 문자열
    """
    host = record.host if (use_host or record.addr is None) else record.addr
    family = record.family
    if family is None:
        family = AddressFamily.IPV6 if ':' in host else AddressFamily.IPV4

    port = record.port
    if port is not None and default_port is not None and port == default_port:
        port = None

    if family is AddressFamily.IPV6 and (port is not None or ipv6_brackets):
        host = f"[{host}]"

    return host if port is None else f"{host}:{port}"


def reverse_dns_name(ip: str, family: Optional[AddressFamily] = None) -> str:
    """PTR 조회용 역방향 DNS 이름

    Examples:
        >>> reverse_dns_name("192.0.2.1")
        '1.2.0.192.in-addr.arpa'
    """
    addr = canonicalize(ip, family).split('%', 1)[0]
    return ipaddress.ip_address(addr).reverse_pointer


def resolve(host: str, family: Optional[AddressFamily] = None) -> List[str]:
    """호스트 이름을 IP 목록으로 해석 (시스템 resolver 사용)

    IP 리터럴은 조회 없이 정규화된 형태로 반환한다.

    Args:
        host: 호스트 이름 또는 IP
        family: 결과를 특정 패밀리로 제한

    Returns:
        정규화된 IP 문자열 리스트 (resolver 순서, 중복 제거)

    Raises:
        ResolutionError: 조회 실패 또는 해당 패밀리 결과 없음
    """
    literal_family = classify(host)
    if literal_family is not None:
        if family is not None and literal_family is not family:
            raise ResolutionError(f"{host} is not an {family.value} address")
        return [canonicalize(host, literal_family)]

    socket_family = family.socket_family if family else socket.AF_UNSPEC
    try:
        infos = socket.getaddrinfo(host, None, socket_family, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        logger.debug("host_resolution_failed", host=host, error=str(e))
        raise ResolutionError(f"Cannot resolve {host}: {e}") from e

    addresses: List[str] = []
    for info_family, _, _, _, sockaddr in infos:
        if info_family not in (socket.AF_INET, socket.AF_INET6):
            continue
        ip = canonicalize(sockaddr[0])
        if family is not None and classify(ip) is not family:
            continue
        if ip not in addresses:
            addresses.append(ip)

    if not addresses:
        raise ResolutionError(f"No {family.value if family else 'IP'} address for {host}")

    logger.debug("host_resolved", host=host, addresses=addresses)
    return addresses
