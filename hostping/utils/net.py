# hostping/utils/net.py
"""
네트워크/권한 유틸
- 관리자/루트 권한 확인 (raw 소켓 사용 가능 여부)
- 호스트 해석(IPv4 우선)
"""
from __future__ import annotations
import ipaddress
import os
import socket
from typing import Optional, Union

from .errors import ConfigError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


# -----------------------
# 권한 유틸
# -----------------------
def is_admin() -> bool:
    if os.name == "nt":
        try:
            import ctypes
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except Exception:
            return False
    else:
        try:
            return os.geteuid() == 0  # type: ignore[attr-defined]
        except Exception:
            return False


# -----------------------
# 해석
# -----------------------
def resolve_host(target: Union[str, IPAddress], family: Optional[int] = None) -> IPAddress:
    """
    호스트 이름/주소 문자열을 ipaddress 객체로 해석.
    - 이미 IP 리터럴이면 그대로 변환
    - family 미지정 시 IPv4 우선, 없으면 IPv6
    - 해석 실패 시 ConfigError
    """
    if isinstance(target, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return target
    host = str(target).strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    try:
        infos = socket.getaddrinfo(host, None, family or socket.AF_UNSPEC, socket.SOCK_RAW)
    except socket.gaierror as e:
        raise ConfigError(f"cannot resolve host {host!r}: {e}") from e

    addrs = [ipaddress.ip_address(sa[0].split("%", 1)[0]) for fam, _, _, _, sa in infos
             if fam in (socket.AF_INET, socket.AF_INET6)]
    if not addrs:
        raise ConfigError(f"no usable address for host {host!r}")
    for a in addrs:
        if a.version == 4:
            return a
    return addrs[0]
