"""
Default gateway discovery.

Best-effort and read-only: returns the IPv4 gateway of the first
operational, non-loopback interface that has one, or None.  Nothing here
raises -- a machine without a discoverable gateway simply probes the
public targets only.
"""
from __future__ import annotations

import ipaddress
import logging
import os
import platform
import re
import socket
import struct
import subprocess
from typing import Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

_PROC_ROUTE = "/proc/net/route"
_SYS_NET = "/sys/class/net"

_RTF_UP = 0x0001
_RTF_GATEWAY = 0x0002

_ROUTE_GET_GATEWAY = re.compile(r"gateway:\s*(\S+)")
_IPCONFIG_GATEWAY = re.compile(r"Default Gateway[ .]*:\s*([\d.]+)?")
_IPV4 = re.compile(r"^\s*(\d{1,3}(?:\.\d{1,3}){3})\s*$")


def _is_ipv4(value: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv4Address)
    except ValueError:
        return False


def _operstate(iface: str) -> str:
    try:
        with open(os.path.join(_SYS_NET, iface, "operstate"), encoding="ascii") as fh:
            return fh.read().strip()
    except OSError:
        return "unknown"


# ---------------------------------------------------------------------------
# Parsers (pure)
# ---------------------------------------------------------------------------

def parse_proc_net_route(
    text: str,
    operstate: Callable[[str], str] = _operstate,
) -> Optional[str]:
    """
    Gateway of the first usable default route in ``/proc/net/route``.

    Skips loopback interfaces, routes that are not up or have no gateway,
    and interfaces whose operstate is ``down``.
    """
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        iface, destination, gateway_hex, flags_hex = fields[:4]
        if iface == "lo" or destination != "00000000":
            continue
        try:
            flags = int(flags_hex, 16)
            gateway_raw = int(gateway_hex, 16)
        except ValueError:
            continue
        if not (flags & _RTF_UP and flags & _RTF_GATEWAY) or gateway_raw == 0:
            continue
        if operstate(iface) == "down":
            continue
        address = socket.inet_ntoa(struct.pack("<L", gateway_raw))
        if _is_ipv4(address) and not ipaddress.ip_address(address).is_loopback:
            return address
    return None


def parse_route_get(text: str) -> Optional[str]:
    """Gateway from BSD/macOS ``route -n get default`` output."""
    match = _ROUTE_GET_GATEWAY.search(text)
    if match and _is_ipv4(match.group(1)):
        return match.group(1)
    return None


def parse_ipconfig(text: str) -> Optional[str]:
    """
    First IPv4 ``Default Gateway`` in Windows ``ipconfig`` output.

    Windows lists IPv6 gateways first and puts IPv4 ones on the following
    indented line, so continuation lines are checked too.
    """
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if "Default Gateway" not in line:
            continue
        candidates: List[str] = []
        match = _IPCONFIG_GATEWAY.search(line)
        if match and match.group(1):
            candidates.append(match.group(1))
        for follow in lines[i + 1:i + 3]:
            cont = _IPV4.match(follow)
            if not cont:
                break
            candidates.append(cont.group(1))
        for candidate in candidates:
            if _is_ipv4(candidate) and candidate != "0.0.0.0":
                return candidate
    return None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def _run(cmd: Iterable[str]) -> str:
    completed = subprocess.run(
        list(cmd),
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
        timeout=5,
        check=False,
    )
    return completed.stdout


def discover_gateway(system: Optional[str] = None) -> Optional[str]:
    """IPv4 default gateway of this host, or None."""
    system = system or platform.system()
    try:
        if system == "Linux":
            with open(_PROC_ROUTE, encoding="ascii") as fh:
                return parse_proc_net_route(fh.read())
        if system == "Windows":
            return parse_ipconfig(_run(["ipconfig"]))
        return parse_route_get(_run(["route", "-n", "get", "default"]))
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Gateway discovery failed: %s", exc)
        return None
