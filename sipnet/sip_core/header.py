"""SIP 헤더 값 코덱

헤더 값을 선행 토큰(prefix)과 파라미터 매핑으로 분리/재조립

필드별 구분자:
- 대부분의 필드: ';' (예: To: "A" <sip:a@x>;tag=1)
- 인증 계열 필드: ',' (예: WWW-Authenticate: Digest realm="x", nonce="y")
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from sipnet.common.exceptions import MalformedHeaderValueError
from sipnet.common.logger import get_logger

logger = get_logger(__name__)


class DelimiterPolicy(str, Enum):
    """파라미터 구분자 정책"""
    SEMICOLON = ";"
    COMMA = ","


# 소문자 필드 이름 -> 구분자 (미등록 필드는 SEMICOLON)
FIELD_DELIMITERS: Dict[str, DelimiterPolicy] = {
    "authorization": DelimiterPolicy.COMMA,
    "proxy-authorization": DelimiterPolicy.COMMA,
    "www-authenticate": DelimiterPolicy.COMMA,
    "proxy-authenticate": DelimiterPolicy.COMMA,
}

# 재파싱 시 분리 결과가 달라지는 문자 (<> 는 분리 보호 구간을 연다)
_NEEDS_QUOTING_RE = re.compile(r'[\s;,"\\<>]')
_ESCAPE_RE = re.compile(r'\\(.)', re.DOTALL)


@dataclass(frozen=True)
class HeaderValue:
    """헤더 값 파싱 결과

    params 값이 None이면 값 없는 플래그 파라미터 (예: ;lr)
    """
    prefix: str
    params: Dict[str, Optional[str]] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.params.get(key.lower(), default)

    def __contains__(self, key: str) -> bool:
        return key.lower() in self.params


def delimiter_for(field_name: Optional[str]) -> DelimiterPolicy:
    """필드 이름에 해당하는 구분자 정책"""
    return FIELD_DELIMITERS.get((field_name or "").strip().lower(), DelimiterPolicy.SEMICOLON)


def _split_unprotected(value: str, delimiter: str) -> List[str]:
    """따옴표/꺾쇠 밖의 구분자에서만 분리

    Raises:
        MalformedHeaderValueError: 닫히지 않은 따옴표
    """
    segments: List[str] = []
    current: List[str] = []
    quoted = False
    bracketed = False
    index = 0
    length = len(value)

    while index < length:
        char = value[index]
        if quoted and char == '\\':
            # quoted-pair: 다음 문자는 그대로
            current.append(value[index:index + 2])
            index += 2
            continue
        if char == '"':
            quoted = not quoted
        elif not quoted and char == '<':
            bracketed = True
        elif not quoted and char == '>':
            bracketed = False
        elif char == delimiter and not quoted and not bracketed:
            segments.append(''.join(current))
            current = []
            index += 1
            continue
        current.append(char)
        index += 1

    if quoted:
        raise MalformedHeaderValueError(f"Unterminated quoted string in {value!r}")

    segments.append(''.join(current))
    return segments


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return _ESCAPE_RE.sub(r'\1', value[1:-1])
    return value


def _quote(value: str) -> str:
    if value and not _NEEDS_QUOTING_RE.search(value):
        return value
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def parse_header_value(field_name: str, value: str) -> HeaderValue:
    """헤더 값 파싱

    Args:
        field_name: 소문자 헤더 이름 (구분자 선택용, URI는 "uri")
        value: 원본 헤더 값

    Returns:
        HeaderValue

    Raises:
        MalformedHeaderValueError: 닫히지 않은 따옴표

    Examples:
        >>> parse_header_value("to", '"Silver; John" <silver@example.com>;tag=abc').params
        {'tag': 'abc'}
        >>> parse_header_value("www-authenticate", 'Digest method="md5", qop="auth"').prefix
        'Digest'
    """
    if value is None:
        raise MalformedHeaderValueError("Header value is None")

    policy = delimiter_for(field_name)
    segments = _split_unprotected(value, policy.value)
    prefix = segments.pop(0).strip()

    if policy is DelimiterPolicy.COMMA:
        # "Digest realm=..." - 인증 스킴 다음부터 첫 파라미터
        scheme_and_rest = prefix.split(None, 1)
        if scheme_and_rest and '=' in scheme_and_rest[0]:
            # 스킴 없이 파라미터로 시작 (예: 'realm=a, nonce=b')
            segments.insert(0, prefix)
            prefix = ""
        else:
            prefix = scheme_and_rest[0] if scheme_and_rest else ""
            if len(scheme_and_rest) > 1:
                segments.insert(0, scheme_and_rest[1])

    params: Dict[str, Optional[str]] = {}
    for segment in segments:
        segment = segment.strip()
        if not segment:
            continue
        key, sep, raw_value = segment.partition('=')
        key = key.strip().lower()
        if not key:
            logger.debug("header_param_without_key", field=field_name, segment=segment)
            continue
        params[key] = _unquote(raw_value.strip()) if sep else None

    return HeaderValue(prefix=prefix, params=params)


def format_header_value(
    field_name: str,
    prefix: str,
    params: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """prefix와 파라미터를 헤더 값으로 재조립

    구분자, 따옴표, 공백을 포함한 값은 따옴표로 감싸고 None 값은 플래그로 출력한다.

    Args:
        field_name: 소문자 헤더 이름 (구분자 선택용)
        prefix: 선행 토큰
        params: 파라미터 매핑 (삽입 순서 유지)

    Returns:
        헤더 값 문자열
    """
    policy = delimiter_for(field_name)
    items = []
    for key, value in (params or {}).items():
        if value is None:
            items.append(key)
        else:
            items.append(f"{key}={_quote(str(value))}")

    if not items:
        return prefix

    if policy is DelimiterPolicy.COMMA:
        joined = ", ".join(items)
        return f"{prefix} {joined}" if prefix else joined

    return prefix + "".join(f";{item}" for item in items)
