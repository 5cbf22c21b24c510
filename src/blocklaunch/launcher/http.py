from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from blocklaunch.common.config import RuntimeConfig
from blocklaunch.common.errors import DownloadError


log = logging.getLogger(__name__)

USER_AGENT = "blocklaunch"


def build_session(runtime: RuntimeConfig) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    retry = Retry(
        total=runtime.transport_retries,
        connect=runtime.transport_retries,
        read=runtime.transport_retries,
        status=runtime.transport_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
    )
    # Large asset batches keep several connections to the same host open.
    adapter = HTTPAdapter(max_retries=retry, pool_maxsize=max(10, runtime.asset_batch_width))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def is_cached(path: Path, size: int | None) -> bool:
    """A file counts as cached when its size matches, or, with no declared size, when non-empty."""
    try:
        actual = path.stat().st_size
    except OSError:
        return False
    if not path.is_file():
        return False
    if size is None:
        return actual > 0
    return actual == size


def download_file(
    session: requests.Session,
    runtime: RuntimeConfig,
    url: str,
    destination: Path,
    progress: Callable[[float], None] | None = None,
    expected_size: int | None = None,
) -> int:
    """Stream ``url`` into ``destination`` and return the number of bytes written.

    Data lands in a ``.part`` sibling first and only replaces the destination
    once the body was read completely, so an interrupted transfer never leaves
    a truncated file that a later size check could mistake for a cached one.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    bytes_done = 0
    try:
        with session.get(
            url,
            stream=True,
            timeout=(runtime.connect_timeout_seconds, runtime.read_timeout_seconds),
        ) as resp:
            if resp.status_code != 200:
                raise DownloadError(
                    f"HTTP {resp.status_code} for {url}",
                    url=url,
                    path=str(destination),
                )
            content_len_raw = str(resp.headers.get("Content-Length", "")).strip()
            bytes_total = int(content_len_raw) if content_len_raw.isdigit() else expected_size
            with partial.open("wb") as fh:
                for chunk in resp.iter_content(chunk_size=runtime.download_chunk_size):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    bytes_done += len(chunk)
                    if progress is not None and bytes_total:
                        progress(min(1.0, bytes_done / bytes_total))
        partial.replace(destination)
    except DownloadError:
        partial.unlink(missing_ok=True)
        raise
    except (requests.RequestException, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {exc}", url=url, path=str(destination)) from exc
    if progress is not None:
        progress(1.0)
    log.debug("Downloaded %s -> %s (%d bytes)", url, destination, bytes_done)
    return bytes_done
