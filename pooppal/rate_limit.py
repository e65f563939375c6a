"""Rate limiting for mutating endpoints.

Requests are keyed by the authenticated user when a bearer token is present,
so one account cannot spread friend-request spam across addresses. Anonymous
requests fall back to the client IP; X-Forwarded-For is honoured only when
the direct peer is a trusted proxy.
"""

import ipaddress
import os

from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

# Override with TRUSTED_PROXY_CIDRS env var (comma-separated CIDRs).
_DEFAULT_TRUSTED_CIDRS = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
]


def _load_trusted_networks() -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] if raw else _DEFAULT_TRUSTED_CIDRS
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            continue
    return networks


_TRUSTED_NETWORKS = _load_trusted_networks()


def _is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in _TRUSTED_NETWORKS)


def get_client_ip(request) -> str:
    """Client IP, using the leftmost X-Forwarded-For entry only behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if _is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
    return direct_ip


def get_rate_limit_key(request) -> str:
    """``user:<sub>`` for bearer requests, ``ip:<addr>`` otherwise.

    The token is not verified here; route dependencies reject bad tokens, and
    an unverifiable subject only changes which bucket a request counts against.
    """
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            subject = jwt.get_unverified_claims(auth[7:].strip()).get("sub")
        except JWTError:
            subject = None
        if subject:
            return f"user:{subject}"
    return f"ip:{get_client_ip(request)}"


limiter = Limiter(key_func=get_rate_limit_key)
