"""Opening CSV sources as text streams.

Both helpers are context managers yielding an open text stream; the importer
only ever sees the stream.
"""

import codecs
import io
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO

import requests

from ingestion.errors import ImportConfigurationError

logger = logging.getLogger(__name__)


@contextmanager
def open_file(file_path: str | Path, encoding: str = "utf-8") -> Iterator[TextIO]:
    """Open a local CSV file, rejecting paths that cannot be read."""
    path = Path(file_path)
    if not path.exists():
        raise ImportConfigurationError(f"Import file does not exist: {path}")
    if not path.is_file():
        raise ImportConfigurationError(f"Import path is not a file: {path}")
    if not os.access(path, os.R_OK):
        raise ImportConfigurationError(f"Import file is not readable: {path}")
    try:
        stream = open(path, newline="", encoding=encoding)
    except LookupError as e:
        raise ImportConfigurationError(f"Unknown encoding {encoding!r}") from e
    except OSError as e:
        raise ImportConfigurationError(f"Cannot open import file {path}: {e}") from e
    with stream:
        yield stream


@contextmanager
def open_url(
    url: str,
    encoding: str = "utf-8",
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    timeout: float = 30,
    session: requests.Session | None = None,
) -> Iterator[TextIO]:
    """Stream a CSV body over HTTP(S), retrying the request with exponential backoff.

    Only establishing the response is retried; once rows are flowing a broken
    connection surfaces to the importer.
    """
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ImportConfigurationError(f"Unknown encoding {encoding!r}") from e

    http = session or requests
    resp = None
    attempts = max(1, max_retries)
    for attempt in range(attempts):
        try:
            resp = http.get(url, stream=True, timeout=timeout)
            resp.raise_for_status()
            break
        except requests.RequestException as e:
            if resp is not None:
                resp.close()
                resp = None
            if attempt < attempts - 1:
                delay = base_delay * (2**attempt)
                logger.warning(
                    "Attempt %d to fetch %s failed: %s. Retrying in %.1fs...",
                    attempt + 1,
                    url,
                    e,
                    delay,
                )
                time.sleep(delay)
            else:
                raise ImportConfigurationError(f"Cannot fetch import source {url}: {e}") from e

    resp.raw.decode_content = True
    stream = io.TextIOWrapper(resp.raw, encoding=encoding, newline="")
    try:
        yield stream
    finally:
        stream.detach()
        resp.close()
