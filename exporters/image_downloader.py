"""Concurrent download of remote images referenced by converted sections."""

import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from errors import NetworkFailure, WriteFailure
from epub.links import remote_basename

# Optional tqdm import
try:
    from tqdm import tqdm
except ImportError:
    tqdm = None

DEFAULT_USER_AGENT = 'epub2md'


class ImageDownloader:
    """
    Localizes remote images into the images directory.

    Downloads are fanned out over a bounded thread pool and joined before
    :meth:`download_all` returns. A failed download is logged and counted
    but never affects the other downloads.
    """

    def __init__(
        self,
        target_dir: Union[str, Path],
        max_workers: int = 4,
        timeout: float = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
        show_progress: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the image downloader.

        Args:
            target_dir: Directory downloaded images are written to
            max_workers: Maximum number of concurrent downloads
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header sent with every request
            session: Shared requests session (created when omitted)
            show_progress: Show a progress bar on interactive terminals
            logger: Logger instance
        """
        self.target_dir = Path(target_dir)
        self.max_workers = max_workers
        self.timeout = timeout
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('epub2md.exporters.image_downloader')

        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

        self.stats = {
            'requested': 0,
            'downloaded': 0,
            'existing': 0,
            'failed': 0,
            'total_size_bytes': 0
        }
        self.failures: List[Dict[str, str]] = []

    def destination(self, url: str) -> Path:
        """Local path of a remote image: URL basename without query string."""
        return self.target_dir / remote_basename(url)

    def download_all(self, urls: Iterable[str]) -> Dict[str, Any]:
        """
        Download every distinct URL.

        Returns:
            Statistics dictionary
        """
        unique_urls = list(dict.fromkeys(u for u in urls if remote_basename(u)))
        if not unique_urls:
            return self.get_stats()

        self.stats['requested'] += len(unique_urls)
        self.logger.info(f"Localizing {len(unique_urls)} remote image(s) with {self.max_workers} worker(s)")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_url = {
                executor.submit(self.download, url): url
                for url in unique_urls
            }

            futures = as_completed(future_to_url)
            if self._should_show_progress():
                futures = tqdm(futures, desc="Downloading images", total=len(future_to_url), leave=False)

            for future in futures:
                url = future_to_url[future]
                try:
                    size = future.result()
                    if size is None:
                        self.stats['existing'] += 1
                    else:
                        self.stats['downloaded'] += 1
                        self.stats['total_size_bytes'] += size
                except (NetworkFailure, WriteFailure) as e:
                    self.logger.warning(str(e))
                    self.stats['failed'] += 1
                    self.failures.append({'url': url, 'error': str(e)})

        return self.get_stats()

    def download(self, url: str) -> Optional[int]:
        """
        Download one image unless its destination already exists.

        Returns:
            Number of bytes written, or None if the file already existed

        Raises:
            NetworkFailure: On connection errors or an HTTP status >= 400
            WriteFailure: If the image cannot be saved
        """
        dest = self.destination(url)
        if dest.exists():
            self.logger.debug(f"Image already present, skipping download: {dest}")
            return None

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkFailure(url, str(e)) from e

        if response.status_code >= 400:
            raise NetworkFailure(url, f"HTTP {response.status_code}")

        content = response.content
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(content)
        except OSError as e:
            raise WriteFailure(str(dest), str(e)) from e

        self.logger.debug(f"Downloaded {url} -> {dest} ({len(content)} bytes)")
        return len(content)

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        if not self.show_progress:
            return False
        if not sys.stdout.isatty():
            return False
        if tqdm is None:
            return False
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Get download statistics."""
        return self.stats.copy()

    def close(self) -> None:
        self.session.close()


__all__ = ['ImageDownloader', 'DEFAULT_USER_AGENT']
