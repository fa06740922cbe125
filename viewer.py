"""
Viewer core: topic selection, document cache and view state.

A ViewerContext is created once per process (or per test) and owns the
configuration, the content transport and the DocumentStore. Each Viewer is
one browsing session on top of it: it holds the topic list, the ViewState
and the inline notices, and notifies subscribers with the regions that
changed so a surface can redraw just those.

Everything runs on a single asyncio event loop. Fetches are the only
suspension points; the store shares one in-flight task per topic, and a
session only applies a result if that topic is still its latest selection.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from doc_sources import DocumentSource, make_source
from manifest import TopicEntry, load_manifest
from markdown_render import render, strip_frontmatter
from viewer_config import ViewerConfig
from viewer_errors import DocumentFetchError, ManifestLoadError, RenderError

logger = logging.getLogger(__name__)

SIDEBAR = 'sidebar'
CONTENT = 'content'
NOTICES = 'notices'

MANIFEST_ERROR = 'manifest-error'
UNKNOWN_TOPIC = 'unknown-topic'
FETCH_ERROR = 'fetch-error'


class ViewerPhase(str, Enum):
    EMPTY = 'empty'
    MANIFEST_LOADED = 'manifest-loaded'
    TOPIC_SELECTED = 'topic-selected'
    TOPIC_LOAD_ERROR = 'topic-load-error'


@dataclass(frozen=True)
class LoadedDocument:
    topic_id: str
    raw_markdown: str
    rendered_html: str


@dataclass(frozen=True)
class ViewState:
    active_topic_id: str | None = None
    sidebar_visible: bool = True
    loading_topic_id: str | None = None


@dataclass(frozen=True)
class Notice:
    id: int
    kind: str
    message: str
    topic_id: str | None = None

    def to_dict(self) -> dict:
        return {'id': self.id, 'kind': self.kind, 'message': self.message, 'topic_id': self.topic_id}


Subscriber = Callable[[frozenset, 'Viewer'], None]


class DocumentStore:
    """Rendered documents keyed by topic id, with at most one fetch in flight per topic."""

    def __init__(self, source: DocumentSource):
        self.source = source
        self.fetch_count = 0
        self._documents: dict[str, LoadedDocument] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    def cached(self, topic_id: str) -> LoadedDocument | None:
        return self._documents.get(topic_id)

    def clear(self):
        self._documents.clear()

    async def get(self, topic: TopicEntry) -> LoadedDocument:
        document = self._documents.get(topic.id)
        if document is not None:
            return document

        task = self._in_flight.get(topic.id)
        if task is None or task.get_loop() is not asyncio.get_running_loop():
            task = asyncio.ensure_future(self._load(topic))
            self._in_flight[topic.id] = task
            task.add_done_callback(lambda t, topic_id=topic.id: self._forget(topic_id, t))
        # Cancelling one waiter must not cancel the fetch other waiters share
        return await asyncio.shield(task)

    def _forget(self, topic_id: str, task: asyncio.Task):
        if self._in_flight.get(topic_id) is task:
            del self._in_flight[topic_id]

    async def _load(self, topic: TopicEntry) -> LoadedDocument:
        self.fetch_count += 1
        try:
            raw = await self.source.fetch(topic)
        except DocumentFetchError:
            raise
        except Exception as e:
            raise DocumentFetchError(f"Could not fetch {topic.file_path}: {e}", topic_id=topic.id) from e

        try:
            rendered = render(strip_frontmatter(raw))
        except Exception as e:
            raise RenderError(f"Could not render {topic.file_path}: {e}", topic_id=topic.id) from e

        document = LoadedDocument(topic_id=topic.id, raw_markdown=raw, rendered_html=rendered)
        self._documents[topic.id] = document
        logger.info("Loaded topic %s (%d bytes)", topic.id, len(raw))
        return document


class ViewerContext:
    """Process-scoped state shared by viewer sessions. Close it when done."""

    def __init__(self, config: ViewerConfig, source: DocumentSource | None = None):
        self.config = config
        self.source = source or make_source(config)
        self.store = DocumentStore(self.source)

    def load_manifest(self) -> list[TopicEntry]:
        return load_manifest(self.config.manifest_path)

    def new_viewer(self, viewport_width: int | None = None) -> 'Viewer':
        return Viewer(self, viewport_width=viewport_width)

    def close(self):
        self.source.close()
        self.store.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class Viewer:
    """One browsing session: topic list, view state and notices."""

    def __init__(self, context: ViewerContext, viewport_width: int | None = None):
        self.context = context
        self.topics: list[TopicEntry] = []
        self.phase = ViewerPhase.EMPTY
        self.document: LoadedDocument | None = None
        self.notices: list[Notice] = []
        self.viewport_width = viewport_width
        self.state = ViewState(sidebar_visible=self._default_sidebar(viewport_width))
        self._by_id: dict[str, TopicEntry] = {}
        self._requested: str | None = None
        self._notice_ids = itertools.count(1)
        self._subscribers: list[Subscriber] = []

    # -- observers ---------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback(regions, viewer); returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, regions: set[str]):
        if not regions:
            return
        changed = frozenset(regions)
        for callback in list(self._subscribers):
            callback(changed, self)

    def _replace_state(self, **changes) -> bool:
        new_state = replace(self.state, **changes)
        if new_state == self.state:
            return False
        self.state = new_state
        return True

    # -- notices -----------------------------------------------------------

    def _add_notice(self, kind: str, message: str, topic_id: str | None = None) -> Notice:
        notice = Notice(id=next(self._notice_ids), kind=kind, message=message, topic_id=topic_id)
        self.notices.append(notice)
        return notice

    def _drop_notices(self, kind: str, topic_id: str | None = None) -> bool:
        kept = [n for n in self.notices
                if not (n.kind == kind and (topic_id is None or n.topic_id == topic_id))]
        dropped = len(kept) != len(self.notices)
        self.notices = kept
        return dropped

    def dismiss_notice(self, notice_id: int) -> bool:
        kept = [n for n in self.notices if n.id != notice_id]
        if len(kept) == len(self.notices):
            return False
        self.notices = kept
        self._emit({NOTICES})
        return True

    # -- topics ------------------------------------------------------------

    def topic(self, topic_id: str | None) -> TopicEntry | None:
        if topic_id is None:
            return None
        return self._by_id.get(topic_id)

    @property
    def active_topic(self) -> TopicEntry | None:
        return self.topic(self.state.active_topic_id)

    def load_manifest(self) -> bool:
        """Load the topic list. On failure keep an empty shell and show a banner."""
        regions = {SIDEBAR}
        try:
            topics = self.context.load_manifest()
        except ManifestLoadError as e:
            logger.warning("Manifest load failed: %s", e.message)
            self.topics = []
            self._by_id = {}
            self._drop_notices(MANIFEST_ERROR)
            self._add_notice(MANIFEST_ERROR, f"Could not load the topic list: {e.message}")
            regions.add(NOTICES)
            if self.state.active_topic_id is not None:
                self.document = None
                self._replace_state(active_topic_id=None)
                regions.add(CONTENT)
            self._emit(regions)
            return False

        self.topics = topics
        self._by_id = {t.id: t for t in topics}
        if self._drop_notices(MANIFEST_ERROR):
            regions.add(NOTICES)
        if self.state.active_topic_id is not None and self.state.active_topic_id not in self._by_id:
            self.document = None
            self._replace_state(active_topic_id=None)
            regions.add(CONTENT)
        if self.phase == ViewerPhase.EMPTY:
            self.phase = ViewerPhase.MANIFEST_LOADED
        logger.info("Manifest loaded: %d topics", len(topics))
        self._emit(regions)
        return True

    async def select_topic(self, topic_id: str) -> bool:
        """
        Show a topic, fetching it first if it is not cached.

        Returns True when the topic ended up displayed. Unknown ids and
        failed fetches leave the current document in place and add a notice;
        a result that arrives after a newer selection is dropped.
        """
        topic = self._by_id.get(topic_id)
        if topic is None:
            logger.info("Unknown topic requested: %s", topic_id)
            self._add_notice(UNKNOWN_TOPIC, f"Unknown topic: {topic_id}", topic_id)
            self._emit({NOTICES})
            return False

        self._requested = topic_id
        document = self.context.store.cached(topic_id)
        if document is None:
            if self._replace_state(loading_topic_id=topic_id):
                self._emit({CONTENT})
            try:
                document = await self.context.store.get(topic)
            except DocumentFetchError as e:
                if self._requested != topic_id:
                    logger.info("Ignoring failure for superseded topic %s: %s", topic_id, e.message)
                    return False
                logger.warning("Could not load topic %s: %s", topic_id, e.message)
                self.phase = ViewerPhase.TOPIC_LOAD_ERROR
                self._replace_state(loading_topic_id=None)
                self._drop_notices(FETCH_ERROR, topic_id)
                self._add_notice(FETCH_ERROR, f"Could not load \"{topic.title}\": {e.message}", topic_id)
                self._emit({CONTENT, NOTICES})
                return False

        if self._requested != topic_id:
            logger.debug("Discarding stale result for topic %s", topic_id)
            return False

        self._show(document)
        return True

    def _show(self, document: LoadedDocument):
        regions = set()
        previous_active = self.state.active_topic_id
        changed = self._replace_state(active_topic_id=document.topic_id, loading_topic_id=None)
        if document is not self.document:
            self.document = document
            changed = True
        if changed:
            regions.add(CONTENT)
            if previous_active != document.topic_id:
                regions.add(SIDEBAR)
        if self._drop_notices(FETCH_ERROR, document.topic_id):
            regions.add(NOTICES)
        self.phase = ViewerPhase.TOPIC_SELECTED
        self._emit(regions)

    # -- layout ------------------------------------------------------------

    def _default_sidebar(self, width: int | None) -> bool:
        if width is None:
            return True
        return width >= self.context.config.sidebar_breakpoint

    def toggle_sidebar(self) -> bool:
        self._replace_state(sidebar_visible=not self.state.sidebar_visible)
        self._emit({SIDEBAR})
        return self.state.sidebar_visible

    def resize(self, width: int) -> bool:
        """Apply the breakpoint rule for a new viewport width."""
        self.viewport_width = width
        if self._replace_state(sidebar_visible=self._default_sidebar(width)):
            self._emit({SIDEBAR})
        return self.state.sidebar_visible

    def to_dict(self) -> dict:
        return {
            'phase': self.phase.value,
            'active_topic_id': self.state.active_topic_id,
            'loading_topic_id': self.state.loading_topic_id,
            'sidebar_visible': self.state.sidebar_visible,
            'topics': [t.to_dict() for t in self.topics],
            'html': self.document.rendered_html if self.document else None,
            'notices': [n.to_dict() for n in self.notices],
        }
