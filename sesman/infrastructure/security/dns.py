"""
逆引きDNSによるIPアドレス検証

クローラーの正当性確認と同じ手順で、IPアドレスの逆引き（PTR）で得た
ホスト名を正引きし、元のIPアドレスに戻るかを確認する。
"""

import ipaddress
import socket

from ...core.logging import get_logger

logger = get_logger(__name__)


def verify_reverse_dns(ip: str) -> bool:
    """
    逆引き・正引きDNSが一致するか検証

    Args:
        ip: 検証するIPアドレス

    Returns:
        逆引きしたホスト名のいずれかが元のIPアドレスに解決される場合True。
        解決エラーが発生した場合は常にFalse。
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        logger.debug(f"Not an IP address literal: {ip}")
        return False

    try:
        hostname, aliases, _ = socket.gethostbyaddr(str(address))
    except OSError as e:
        logger.debug(f"Reverse lookup failed for {ip}: {e}")
        return False

    for name in [hostname, *aliases]:
        try:
            infos = socket.getaddrinfo(name, None)
        except (OSError, UnicodeError) as e:
            logger.debug(f"Forward lookup failed for {name} ({ip}): {e}")
            return False

        for _family, _type, _proto, _canonname, sockaddr in infos:
            # IPv6のスコープID（%eth0）を除去
            resolved = str(sockaddr[0]).split("%", 1)[0]
            try:
                if ipaddress.ip_address(resolved) == address:
                    logger.info(f"IP {ip} verified via {name}")
                    return True
            except ValueError:
                continue

    return False
