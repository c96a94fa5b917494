"""sipnet - SIP 주소/URI/헤더 변환 및 전송 엔드포인트 툴킷"""

from sipnet.net.models import AddressFamily, AddressRecord, SockInfo
from sipnet.net.address import (
    canonicalize,
    classify,
    format_address,
    is_ip,
    is_ipv4,
    is_ipv6,
    parse_address,
    resolve,
    reverse_dns_name,
)
from sipnet.net.sockaddr import (
    from_sockaddr,
    sockaddr_to_string,
    string_to_sockaddr,
    to_sockaddr,
)
from sipnet.net.endpoint import (
    EndpointAllocator,
    bind_socket,
    create_socket_to,
    discover_local_address,
)
from sipnet.sip_core.header import (
    DelimiterPolicy,
    HeaderValue,
    format_header_value,
    parse_header_value,
)
from sipnet.sip_core.uri import (
    UriRecord,
    default_port_for,
    format_uri,
    parse_uri,
    sock_info_to_uri,
    uri_equals,
    uri_to_sock_info,
)
from sipnet.media.rtp_allocator import RTPSocketAllocator, RtpAllocation, allocate_rtp_pair

__version__ = "0.1.0"

__all__ = [
    "AddressFamily",
    "AddressRecord",
    "SockInfo",
    "canonicalize",
    "classify",
    "format_address",
    "is_ip",
    "is_ipv4",
    "is_ipv6",
    "parse_address",
    "resolve",
    "reverse_dns_name",
    "from_sockaddr",
    "sockaddr_to_string",
    "string_to_sockaddr",
    "to_sockaddr",
    "EndpointAllocator",
    "bind_socket",
    "create_socket_to",
    "discover_local_address",
    "DelimiterPolicy",
    "HeaderValue",
    "format_header_value",
    "parse_header_value",
    "UriRecord",
    "default_port_for",
    "format_uri",
    "parse_uri",
    "sock_info_to_uri",
    "uri_equals",
    "uri_to_sock_info",
    "RTPSocketAllocator",
    "RtpAllocation",
    "allocate_rtp_pair",
]
