"""SIP URI 코덱

sip:/sips: URI 파싱/조립, 소켓 정보 변환, URI 동등성 비교

스킴이 없는 문자열(예: "alice@example.com", "10.0.0.1:5060")도 sip:으로
간주해 허용한다. SIP 문법보다 관대한 동작이며 호환성을 위해 유지한다.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from sipnet.config.models import SIPConfig
from sipnet.net.address import canonicalize, classify, format_address, parse_address
from sipnet.net.models import AddressFamily, AddressRecord, SockInfo
from sipnet.sip_core.header import format_header_value, parse_header_value
from sipnet.common.exceptions import (
    MalformedAddressError,
    MalformedHeaderValueError,
    MalformedUriError,
)
from sipnet.common.logger import get_logger

logger = get_logger(__name__)

# SIPConfig 기본값과 동일한 프로토콜 기본 포트
_SIP_DEFAULTS = SIPConfig()
SIP_DEFAULT_PORT = _SIP_DEFAULTS.default_port
SIPS_DEFAULT_PORT = _SIP_DEFAULTS.tls_port

# "Display Name" <sip:...>;tag=... 형식에서 <> 안의 URI만 추출
_NAME_ADDR_RE = re.compile(r'<([^<>]+)>')

_URI_RE = re.compile(r'''^
    (?: (sips?) : )?                            # scheme (생략 시 sip)
    (?: ([^\s@]*) @ )?                          # user
    (
        \[ [^\]\s]+ \] (?: : \w+ )?             # [ipv6|ipv4|host](:port)?
      | [^:\s\[\]@]+ (?: : \w+ )?               # ipv4|host(:port)?
      | [0-9a-f.]* : [0-9a-f.:]* : [0-9a-f.:]*  # 괄호 없는 ipv6
    )
$''', re.IGNORECASE | re.VERBOSE)


@dataclass(frozen=True)
class UriRecord:
    """SIP URI 파싱 결과

    예: "sip:alice@example.COM:5060;transport=UDP"
        -> domain="example.com:5060", user="alice", proto="sip",
           raw_prefix="sip:alice@example.COM:5060", params={"transport": "UDP"}
    """
    domain: str
    user: Optional[str] = None
    proto: str = "sip"
    raw_prefix: str = ""
    params: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def address(self) -> AddressRecord:
        """domain의 host/port 분해 결과"""
        return parse_address(self.domain, opaque=True)

    @property
    def transport(self) -> Optional[str]:
        """유효 트랜스포트 (sips -> tls, 그 외 transport 파라미터)"""
        return _effective_transport(self)

    def __str__(self) -> str:
        return format_uri(self.domain, self.user, self.proto, self.params)


def default_port_for(proto: Optional[str]) -> int:
    """프로토콜별 기본 포트 (tls/sips: 5061, 그 외: 5060)"""
    if proto and proto.lower() in ("tls", "sips"):
        return SIPS_DEFAULT_PORT
    return SIP_DEFAULT_PORT


def _effective_transport(record: UriRecord) -> Optional[str]:
    if record.proto == "sips":
        return "tls"
    transport = record.params.get("transport")
    if transport:
        return transport.lower()
    return None


def _normalize_proto(proto) -> Optional[str]:
    if proto is None:
        return None
    if isinstance(proto, Enum):
        proto = proto.value
    return str(proto).lower()


def parse_uri(text: str) -> UriRecord:
    """SIP URI 파싱

    Args:
        text: URI 문자열 ("<...>" 로 감싼 name-addr 형식도 허용,
              ">" 뒤의 헤더 파라미터(;tag= 등)는 무시)

    Returns:
        UriRecord

    Raises:
        MalformedUriError: 호스트가 비어 있거나 URI 형식이 아닌 경우
    """
    if text is None or not text.strip():
        raise MalformedUriError("Empty URI")
    text = text.strip()

    match = _NAME_ADDR_RE.search(text)
    if match:
        text = match.group(1).strip()

    try:
        value = parse_header_value("uri", text)
    except MalformedHeaderValueError as e:
        raise MalformedUriError(f"Invalid URI parameters in {text!r}: {e}") from e

    match = _URI_RE.match(value.prefix)
    if not match:
        logger.debug("uri_parse_failed", uri=text)
        raise MalformedUriError(f"Invalid SIP URI: {text!r}")

    proto, user, domain = match.groups()
    return UriRecord(
        domain=domain.lower(),
        user=user,
        proto=(proto or "sip").lower(),
        raw_prefix=value.prefix,
        params=dict(value.params),
    )


def format_uri(
    domain: str,
    user: Optional[str] = None,
    proto: str = "sip",
    params: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """URI 조립: proto:user@domain;params

    proto는 항상 명시적으로 출력한다.
    """
    base = f"{proto}:{user + '@' if user else ''}{domain}"
    return format_header_value("uri", base, params)


def uri_to_sock_info(uri: Union[str, UriRecord], opaque: bool = False) -> SockInfo:
    """URI에서 연결 정보 유도

    proto 결정:
    - sips -> "tls"
    - sip + transport 파라미터 -> 해당 값 (소문자)
    - sip + transport 없음 -> None (기본값은 호출자가 결정)

    Args:
        uri: URI 문자열 또는 UriRecord
        opaque: domain 호스트 문법 검사 생략 여부

    Returns:
        SockInfo

    Raises:
        MalformedUriError: URI 파싱 실패
        MalformedAddressError: domain 파싱 실패
    """
    record = uri if isinstance(uri, UriRecord) else parse_uri(uri)
    address = parse_address(record.domain, opaque=opaque)
    return SockInfo(
        proto=_effective_transport(record),
        host=address.addr if address.is_ip else address.host,
        port=address.port,
        family=address.family,
    )


def sock_info_to_uri(
    proto: Optional[str],
    host: str,
    port: Optional[int] = None,
    family: Optional[AddressFamily] = None,
) -> str:
    """연결 정보를 URI로 변환

    tls -> sips:host, tcp/udp -> sip:host;transport=proto, None -> sip:host
    """
    proto = _normalize_proto(proto)
    ip_family = family or classify(host)
    if ip_family is not None:
        record = AddressRecord(host=host, addr=canonicalize(host, ip_family), port=port, family=ip_family)
    else:
        record = AddressRecord(host=host, port=port)
    domain = format_address(record, ipv6_brackets=True)

    if proto == "tls":
        return format_uri(domain, proto="sips")
    if proto is None:
        return format_uri(domain)
    return format_uri(domain, params={"transport": proto})


def uri_equals(uri_a: Union[str, UriRecord], uri_b: Union[str, UriRecord]) -> bool:
    """두 URI의 동등성 비교

    - user: 대소문자 구분
    - domain: 대소문자 무시, 이름 해석 없음 (IP는 정규형 비교)
    - proto: 유효 트랜스포트로 정규화 후 비교 (transport 없으면 udp)
    - port: 생략 시 프로토콜 기본 포트 (5060/5061)

    파싱할 수 없는 URI는 같지 않은 것으로 본다.
    """
    try:
        record_a = uri_a if isinstance(uri_a, UriRecord) else parse_uri(uri_a)
        record_b = uri_b if isinstance(uri_b, UriRecord) else parse_uri(uri_b)
        address_a = record_a.address
        address_b = record_b.address
    except (MalformedUriError, MalformedAddressError) as e:
        logger.debug("uri_compare_unparseable", error=str(e))
        return False

    if (record_a.user or "") != (record_b.user or ""):
        return False

    transport_a = _effective_transport(record_a) or "udp"
    transport_b = _effective_transport(record_b) or "udp"
    if transport_a != transport_b:
        return False

    host_a = address_a.addr if address_a.is_ip else address_a.host.lower()
    host_b = address_b.addr if address_b.is_ip else address_b.host.lower()
    if host_a != host_b:
        return False

    port_a = address_a.port if address_a.port is not None else default_port_for(transport_a)
    port_b = address_b.port if address_b.port is not None else default_port_for(transport_b)
    return port_a == port_b
