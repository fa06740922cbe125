"""
Shared fixtures for the topic viewer tests.

docs_dir writes a small docs tree with a manifest to tmp_path.
ScriptedSource stands in for a transport: it serves in-memory documents,
records every fetch and can hold a fetch open until the test releases it.
"""

import asyncio
from pathlib import Path

import pytest

from manifest import TopicEntry
from viewer import ViewerContext
from viewer_config import ViewerConfig
from viewer_errors import DocumentFetchError

MANIFEST_YAML = """\
topics:
  - id: intro
    title: Intro
    file: intro.md
  - id: widgets
    title: Widgets
    file: widgets.md
  - id: broken
    title: Broken
    file: missing.md
"""

DOCUMENTS = {
    'intro.md': '# Hello\n\nWorld',
    'widgets.md': '---\ntitle: Widgets\n---\n# Widgets\n\nEverything is a **widget**.',
}


class ScriptedSource:
    def __init__(self, documents: dict[str, str] | None = None):
        self.documents = dict(DOCUMENTS if documents is None else documents)
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.closed = False

    def hold(self, topic_id: str) -> asyncio.Event:
        """Block fetches of topic_id until the returned event is set."""
        gate = asyncio.Event()
        self.gates[topic_id] = gate
        return gate

    async def fetch(self, topic: TopicEntry) -> str:
        self.calls.append(topic.id)
        gate = self.gates.get(topic.id)
        if gate is not None:
            await gate.wait()
        if topic.file_path not in self.documents:
            raise DocumentFetchError(f"Document not found: {topic.file_path}", topic_id=topic.id, status=404)
        return self.documents[topic.file_path]

    def close(self):
        self.closed = True


async def settle(rounds: int = 5):
    """Let every ready task run until it blocks."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    docs = tmp_path / 'docs'
    docs.mkdir()
    (docs / 'manifest.yaml').write_text(MANIFEST_YAML, encoding='utf-8')
    for name, text in DOCUMENTS.items():
        (docs / name).write_text(text, encoding='utf-8')
    return docs


@pytest.fixture
def config(docs_dir: Path) -> ViewerConfig:
    return ViewerConfig(docs_dir=docs_dir, host='127.0.0.1', port=0)


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def context(config: ViewerConfig, source: ScriptedSource):
    with ViewerContext(config, source=source) as ctx:
        yield ctx


@pytest.fixture
def viewer(context: ViewerContext):
    v = context.new_viewer()
    assert v.load_manifest()
    return v
