from cryptography.hazmat.primitives import hashes, hmac
from fastapi import Request


def get_client_ip(request: Request) -> str:
    # first hop of X-Forwarded-For is the original client behind a proxy
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "127.0.0.1"


def hash_ip(ip: str, secret: str) -> str:
    """Keyed SHA-256 of the client IP, hex encoded. Raw IPs are never stored."""
    mac = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    mac.update(ip.encode("utf-8"))
    return mac.finalize().hex()
