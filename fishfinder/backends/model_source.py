"""Resolve model sources to local files, downloading URLs with progress."""
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from ..core.exceptions import ModelLoadFailure
from .base_backend import ProgressCallback

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 256


def is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def cached_path_for(url: str, cache_dir: str) -> Path:
    """Local cache location for a model URL (by file name)."""
    name = os.path.basename(urlparse(url).path) or "model"
    return Path(cache_dir) / name


def _report(progress_callback: Optional[ProgressCallback], value: float) -> None:
    if progress_callback is not None:
        progress_callback(min(1.0, max(0.0, value)))


def download_model(url: str, destination: Path, progress_callback: Optional[ProgressCallback] = None,
                   timeout: float = 60, session: Optional[requests.Session] = None) -> Path:
    """Stream ``url`` to ``destination``, reporting fractional progress.

    The file is written under a temporary name and renamed once complete so
    that an interrupted download never looks like a cached model.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    http = session or requests

    try:
        with http.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length") or 0)
            received = 0
            _report(progress_callback, 0.0)
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    received += len(chunk)
                    if total:
                        _report(progress_callback, received / total)
        os.replace(partial, destination)
    except (requests.RequestException, OSError) as e:
        if partial.exists():
            partial.unlink()
        raise ModelLoadFailure(url, str(e)) from e

    _report(progress_callback, 1.0)
    logger.info(f"Downloaded model {url} -> {destination} ({received} bytes)")
    return destination


def resolve_model_source(source: str, cache_dir: str, progress_callback: Optional[ProgressCallback] = None,
                         timeout: float = 60, session: Optional[requests.Session] = None) -> Path:
    """Return a local path for ``source``.

    Local paths must exist. URLs are downloaded into ``cache_dir`` unless a
    cached copy is already there. Progress ends at 1.0 either way.
    """
    if not source:
        raise ModelLoadFailure(repr(source), "no model source configured")

    if is_url(source):
        destination = cached_path_for(source, cache_dir)
        if destination.is_file():
            logger.info(f"Using cached model {destination} for {source}")
            _report(progress_callback, 1.0)
            return destination
        return download_model(source, destination, progress_callback, timeout=timeout, session=session)

    path = Path(source)
    if not path.is_file():
        raise ModelLoadFailure(source, "model file not found")
    _report(progress_callback, 1.0)
    return path
