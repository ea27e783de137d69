"""
Retrieval of source media and subtitle files from URLs or local paths.
"""

import logging
from pathlib import Path

import httpx

from .errors import UpstreamFailed

logger = logging.getLogger("cuedub")


def is_url(source: str | Path) -> bool:
    return str(source).startswith(("http://", "https://"))


def download(
    url: str, dest: str | Path, client: httpx.Client | None = None, timeout: float = 120.0
) -> Path:
    """Stream ``url`` into ``dest``. Any transport or HTTP error is ``UpstreamFailed``."""
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    http = client or httpx.Client(follow_redirects=True, timeout=timeout)
    try:
        with http.stream("GET", url) as r:
            r.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in r.iter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as e:
        logger.error("Download failed for %s: %s", url, e)
        raise UpstreamFailed() from e
    finally:
        if client is None:
            http.close()
    logger.info("Downloaded %s -> %s (%d bytes)", url, dest, dest.stat().st_size)
    return dest


def fetch_to(source: str | Path, dest: str | Path, client: httpx.Client | None = None) -> Path:
    """Return a local path for ``source``, downloading it to ``dest`` if it is a URL."""
    if is_url(source):
        return download(str(source), dest, client=client)
    path = Path(source)
    if not path.is_file():
        raise UpstreamFailed(f"input file not found: {path.name}")
    return path


def read_subtitles(source: str | Path, workdir: str | Path, client: httpx.Client | None = None) -> str:
    """Subtitle text from a path or URL; undecodable bytes are replaced, not fatal."""
    path = fetch_to(source, Path(workdir) / "subtitles.txt", client=client)
    try:
        return path.read_bytes().decode("utf-8-sig", errors="replace")
    except OSError as e:
        raise UpstreamFailed() from e
