"""커스텀 예외 클래스

sipnet 툴킷의 모든 커스텀 예외 정의
"""

from typing import Optional


class SIPNetError(Exception):
    """Base exception for all sipnet errors"""
    pass


# Address Exceptions
class AddressError(SIPNetError):
    """주소 변환 관련 에러"""
    pass


class MalformedAddressError(AddressError):
    """잘못된 host[:port] 문자열 또는 IP 리터럴"""
    pass


class MalformedSockAddrError(AddressError):
    """잘못된 sockaddr 바이트열 (길이/패밀리 불일치)"""
    pass


class UnsupportedFamilyError(AddressError):
    """주소 패밀리를 결정할 수 없음"""
    pass


class ResolutionError(AddressError):
    """호스트 이름 해석 실패"""
    pass


# SIP Syntax Exceptions
class SIPSyntaxError(SIPNetError):
    """SIP 문법 관련 에러"""
    pass


class MalformedUriError(SIPSyntaxError):
    """잘못된 SIP URI"""
    pass


class MalformedHeaderValueError(SIPSyntaxError):
    """잘못된 헤더 값 (닫히지 않은 따옴표 등)"""
    pass


# Endpoint Exceptions
class EndpointError(SIPNetError):
    """소켓 생성/바인드 관련 에러

    원본 OSError와 errno를 그대로 보존한다.
    """

    def __init__(self, message: str, os_error: Optional[OSError] = None):
        super().__init__(message)
        self.os_error = os_error
        self.errno = os_error.errno if os_error is not None else None


class RoutingError(EndpointError):
    """목적지로 가는 경로 없음"""
    pass


class AddressInUseError(EndpointError):
    """포트가 이미 사용 중"""
    pass


# Media Exceptions
class MediaError(SIPNetError):
    """미디어 소켓 관련 에러"""
    pass


class RTPPortExhaustedError(MediaError):
    """RTP 포트 쌍 할당 실패 (재시도 횟수 소진)"""
    pass


# Configuration Exceptions
class ConfigurationError(SIPNetError):
    """설정 관련 에러"""
    pass
