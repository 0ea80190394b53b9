import re
from urllib.parse import urljoin, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def canonicalize(url: str | None) -> str | None:
    """Normalize ``url`` for dedup; ``None`` when it cannot be crawled.

    The fragment is dropped and a single trailing slash is stripped unless the
    path is the bare origin ``/``.
    """
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS or not parts.hostname:
        return None

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def is_same_site(seed_url: str, candidate_url: str) -> bool:
    """True iff ``candidate_url`` (resolved against the seed) has exactly the seed's hostname."""
    try:
        seed_host = urlsplit(seed_url).hostname
        candidate_host = urlsplit(urljoin(seed_url, candidate_url)).hostname
    except ValueError:
        return False
    if not seed_host or not candidate_host:
        return False
    return seed_host == candidate_host


def safe_filename(url: str) -> str:
    name = re.sub(r"^https?://", "", url)
    name = re.sub(r"[/:?<>|\"\\*&=#%]", "_", name)
    name = re.sub(r"[^\w.-]", "_", name)
    return name[:180] or "page"
