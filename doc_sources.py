"""
Transports that fetch raw topic Markdown.

FileSource reads from a local docs directory, HttpSource issues a plain
GET against a static file server. Both run the blocking call in a worker
thread so the event loop stays responsive, apply a timeout, and report
every failure as DocumentFetchError.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import requests

from manifest import TopicEntry
from viewer_config import DEFAULT_TIMEOUT, ViewerConfig
from viewer_errors import DocumentFetchError

logger = logging.getLogger(__name__)


class DocumentSource(Protocol):
    async def fetch(self, topic: TopicEntry) -> str: ...

    def close(self) -> None: ...


class FileSource:
    """Read topic files below a root directory."""

    def __init__(self, root: Path, timeout: float = DEFAULT_TIMEOUT):
        self.root = root
        self.timeout = timeout

    def resolve(self, topic: TopicEntry) -> Path:
        root = self.root.resolve()
        full_path = (root / topic.file_path).resolve()
        if not full_path.is_relative_to(root):
            raise DocumentFetchError(f"Path escapes the docs directory: {topic.file_path}",
                                     topic_id=topic.id, status=403)
        return full_path

    def _read(self, topic: TopicEntry) -> str:
        full_path = self.resolve(topic)
        if not full_path.is_file():
            raise DocumentFetchError(f"Document not found: {topic.file_path}", topic_id=topic.id, status=404)
        try:
            return full_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentFetchError(f"Could not read {topic.file_path}: {e}", topic_id=topic.id) from e

    async def fetch(self, topic: TopicEntry) -> str:
        logger.debug("Reading %s for topic %s", topic.file_path, topic.id)
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._read, topic), self.timeout)
        except asyncio.TimeoutError:
            raise DocumentFetchError(f"Timed out reading {topic.file_path}", topic_id=topic.id) from None

    def close(self):
        pass


class HttpSource:
    """Fetch topic files with GET requests relative to a base URL."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = session or requests.Session()

    def url_for(self, topic: TopicEntry) -> str:
        return self.base_url + quote(topic.file_path.replace('\\', '/'))

    def _get(self, topic: TopicEntry) -> str:
        url = self.url_for(topic)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise DocumentFetchError(f"Timed out fetching {url}", topic_id=topic.id) from e
        except requests.RequestException as e:
            raise DocumentFetchError(f"Could not fetch {url}: {e}", topic_id=topic.id) from e

        if response.status_code == 404:
            raise DocumentFetchError(f"Document not found: {url}", topic_id=topic.id, status=404)
        if response.status_code >= 400:
            raise DocumentFetchError(f"HTTP {response.status_code} fetching {url}",
                                     topic_id=topic.id, status=response.status_code)

        return response.content.decode('utf-8', errors='replace')

    async def fetch(self, topic: TopicEntry) -> str:
        logger.debug("GET %s for topic %s", self.url_for(topic), topic.id)
        return await asyncio.to_thread(self._get, topic)

    def close(self):
        self.session.close()


def make_source(config: ViewerConfig) -> DocumentSource:
    if config.base_url:
        return HttpSource(config.base_url, timeout=config.fetch_timeout)
    return FileSource(config.docs_dir, timeout=config.fetch_timeout)
