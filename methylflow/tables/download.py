"""
Source file retrieval with a local cache

Every source table is cached under ``<data_dir>/raw/``. A cached file is
returned as-is; otherwise the configured URL is streamed to a temporary file
which is renamed into place once complete, so an aborted download never
leaves a partial file behind.
"""

import gzip
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
from tqdm import tqdm

from ..exceptions import SourceUnavailable
from ..utils import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1 << 16


class SourceFetcher:
    """Fetch and cache the raw source files of a run"""

    def __init__(
        self,
        raw_dir: Union[str, Path],
        sources: Dict[str, Dict[str, Any]],
        timeout: int = 120,
        session: Optional[requests.Session] = None,
        show_progress: bool = True,
    ):
        """
        Initialize the fetcher

        Args:
            raw_dir: Cache directory for raw files
            sources: Mapping of source_id -> {'filename', 'url'}
            timeout: HTTP timeout in seconds
            session: Optional requests session (shared connection pool)
            show_progress: Show a byte progress bar while downloading
        """
        self.raw_dir = Path(raw_dir)
        self.sources = sources
        self.timeout = timeout
        self.session = session or requests.Session()
        self.show_progress = show_progress

    def cached_path(self, source_id: str) -> Path:
        source = self._source(source_id)
        return self.raw_dir / source["filename"]

    def is_cached(self, source_id: str) -> bool:
        path = self.cached_path(source_id)
        return path.exists() and path.stat().st_size > 0

    def fetch(self, source_id: str, force: bool = False) -> Path:
        """
        Return the local path of a source, downloading it if needed

        Args:
            source_id: Key in the sources configuration
            force: Download even if a cached copy exists

        Returns:
            Path to the decompressed local file

        Raises:
            SourceUnavailable: download failed and no cached copy exists
        """
        target = self.cached_path(source_id)

        if not force and self.is_cached(source_id):
            logger.debug(f"Using cached {source_id}: {target}")
            return target

        url = self._source(source_id).get("url")
        if not url:
            raise SourceUnavailable(source_id, f"no cached copy at {target} and no URL configured")

        logger.info(f"Downloading {source_id} from {url}")
        self.raw_dir.mkdir(parents=True, exist_ok=True)

        try:
            self._download(url, target)
        except (requests.RequestException, OSError, EOFError) as e:
            raise SourceUnavailable(source_id, str(e)) from e

        logger.info(f"Saved {source_id} to {target} ({target.stat().st_size} bytes)")
        return target

    def _source(self, source_id: str) -> Dict[str, Any]:
        if source_id not in self.sources:
            raise SourceUnavailable(source_id, "not declared in the sources configuration")
        return self.sources[source_id]

    def _download(self, url: str, target: Path) -> None:
        compressed = url.endswith(".gz")

        with tempfile.NamedTemporaryFile(dir=self.raw_dir, prefix=".download_", delete=False) as tmp:
            tmp_path = Path(tmp.name)
            try:
                with self.session.get(url, stream=True, timeout=self.timeout) as response:
                    response.raise_for_status()
                    total = int(response.headers.get("content-length") or 0) or None
                    with tqdm(
                        total=total,
                        desc=target.name,
                        unit="B",
                        unit_scale=True,
                        disable=None if self.show_progress else True,
                    ) as progress:
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            tmp.write(chunk)
                            progress.update(len(chunk))
            except BaseException:
                tmp.close()
                tmp_path.unlink(missing_ok=True)
                raise

        try:
            if compressed:
                plain_path = tmp_path.with_name(tmp_path.name + ".plain")
                with gzip.open(tmp_path, "rb") as src, open(plain_path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                tmp_path.unlink()
                tmp_path = plain_path
            tmp_path.replace(target)
        finally:
            tmp_path.unlink(missing_ok=True)
