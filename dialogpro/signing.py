import hashlib
import hmac
from typing import Optional


def _digest(secret: str, namespace: str, value: str) -> str:
    msg = f"{namespace}:{value}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def sign(secret: str, namespace: str, value: str) -> str:
    """
    Return "<value>.<hmac>" where the MAC covers both namespace and value,
    so a signature minted for one cookie cannot be replayed on another.
    """
    return f"{value}.{_digest(secret, namespace, value)}"


def unsign(secret: str, namespace: str, signed: Optional[str]) -> Optional[str]:
    """
    Return the original value, or None when missing or tampered with.
    """
    if not signed:
        return None
    value, sep, mac = signed.rpartition(".")
    if not sep:
        return None
    if not hmac.compare_digest(mac, _digest(secret, namespace, value)):
        return None
    return value


__all__ = ["sign", "unsign"]
