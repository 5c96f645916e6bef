"""
Remote File Downloader - Materializes remote image files as File nodes

Downloads a remote binary into the media directory and records it as a
File node under the given parent. Downloads do not count against the Etsy
API budget, so they bypass the RequestScheduler and are only capped by
their own concurrency limit.
"""
import hashlib
import os
import threading
import time
from typing import Optional
from urllib.parse import urlparse

import requests

from ...exceptions import FileDownloadError
from ...utils.logger import get_logger
from .identity import TYPE_FILE, file_node_id
from .node_store import NodeView

logger = get_logger('file_downloader')


class RemoteFileDownloader:
    """Download remote files and create File nodes for them.

    Example:
        >>> downloader = RemoteFileDownloader(node_store, media_path, session=pool.session)
        >>> file_node = downloader.materialize('https://i.etsystatic.com/x.jpg?lid=42', image_node_id)
    """

    ATTEMPTS = 2          # Download attempts per file
    RETRY_DELAY = 0.5     # Seconds between attempts
    CHUNK_SIZE = 8192

    def __init__(
        self,
        node_store,
        media_path: str,
        session: Optional[requests.Session] = None,
        max_concurrent: int = 4,
        timeout: float = 30.0
    ):
        """Initialize the downloader.

        Args:
            node_store: NodeStore receiving the File nodes
            media_path: Directory downloaded files are written to
            session: requests.Session to download with (a new one if None)
            max_concurrent: Maximum simultaneous downloads
            timeout: Per-request timeout in seconds
        """
        self.node_store = node_store
        self.media_path = media_path
        self.session = session or requests.Session()
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._stats = {'downloaded': 0, 'cached': 0, 'failed': 0}
        self._stats_lock = threading.Lock()

    def materialize(self, source_url: str, parent_node_id: str) -> NodeView:
        """Download ``source_url`` and create its File node under ``parent_node_id``.

        Raises:
            FileDownloadError: If every download attempt failed
        """
        node_id = file_node_id(parent_node_id, source_url)
        filename = f"{node_id}{self._extension(source_url)}"
        filepath = os.path.join(self.media_path, filename)

        if os.path.exists(filepath) and os.path.getsize(filepath) > 0:
            self._count('cached')
        else:
            with self._slots:
                self._download(source_url, filepath)
            self._count('downloaded')

        size, digest = self._file_digest(filepath)
        payload = {
            'url': source_url,
            'name': os.path.splitext(filename)[0],
            'ext': self._extension(source_url),
            'relative_path': filename,
            'media_url': f"/api/media/{filename}",
            'size': size,
        }
        return self.node_store.create(node_id, parent_node_id, TYPE_FILE, digest, payload)

    def _download(self, url: str, filepath: str) -> None:
        os.makedirs(self.media_path, exist_ok=True)
        tmp_path = f"{filepath}.part"
        last_error = None

        for attempt in range(self.ATTEMPTS):
            try:
                with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                    if resp.status_code != 200:
                        raise FileDownloadError(f"HTTP {resp.status_code} for {url}", url=url)
                    with open(tmp_path, 'wb') as f:
                        for chunk in resp.iter_content(self.CHUNK_SIZE):
                            if chunk:
                                f.write(chunk)
                os.replace(tmp_path, filepath)
                logger.debug(f"[RemoteFileDownloader] Downloaded {url}")
                return
            except (requests.RequestException, OSError, FileDownloadError) as e:
                last_error = e
                logger.warning(f"[RemoteFileDownloader] Attempt {attempt + 1} failed for {url}: {e}")
                if attempt + 1 < self.ATTEMPTS:
                    time.sleep(self.RETRY_DELAY)

        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        self._count('failed')
        raise FileDownloadError(f"Failed to download {url}: {last_error}", url=url)

    @staticmethod
    def _extension(url: str) -> str:
        ext = os.path.splitext(urlparse(url).path)[1].lower()
        if not ext or len(ext) > 5:
            ext = '.jpg'
        return ext

    def _file_digest(self, filepath: str):
        md5 = hashlib.md5()
        size = 0
        with open(filepath, 'rb') as f:
            for chunk in iter(lambda: f.read(self.CHUNK_SIZE), b''):
                md5.update(chunk)
                size += len(chunk)
        return size, md5.hexdigest()

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def get_stats(self) -> dict:
        """Get download statistics (downloaded, cached, failed)."""
        with self._stats_lock:
            return self._stats.copy()
