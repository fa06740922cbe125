#!/usr/bin/env python3
"""
Topic manifest: the ordered list of topics shown in the viewer sidebar.

The manifest is a YAML or JSON file. Its root is either a list of topics or
a mapping with a "topics" list:

    topics:
      - id: intro
        title: Introduction
        file: intro.md
      - id: widgets
        title: Widgets
        file: widgets/basics.md

Paths are relative to the docs directory. Loading validates the whole
file up front and raises ManifestLoadError on the first problem.

Usage:
    python manifest.py [--docs-dir PATH] [--output PATH]

Scans the docs directory for .md files and writes a manifest, taking each
title from frontmatter, the first "# " heading, or the file name.
"""

import argparse
import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from markdown_render import first_heading, split_frontmatter
from viewer_errors import ManifestLoadError

_PATH_KEYS = ('file_path', 'file', 'path')
_ID_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


@dataclass(frozen=True)
class TopicEntry:
    id: str
    title: str
    file_path: str

    def to_dict(self) -> dict[str, str]:
        return {'id': self.id, 'title': self.title, 'file': self.file_path}


def load_manifest(path: Path) -> list[TopicEntry]:
    """Read and validate a manifest file."""
    if not path.exists():
        raise ManifestLoadError(f"Manifest not found: {path}", path=str(path))
    try:
        text = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestLoadError(f"Could not read manifest {path}: {e}", path=str(path)) from e

    suffix = path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ManifestLoadError(f"Unsupported manifest format: {path.name}", path=str(path))

    try:
        data = json.loads(text) if suffix == '.json' else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestLoadError(f"Could not parse manifest {path}: {e}", path=str(path)) from e

    return parse_manifest(data)


def parse_manifest(data: Any) -> list[TopicEntry]:
    """Validate already-parsed manifest data and build the topic list."""
    if isinstance(data, dict):
        if 'topics' not in data:
            raise ManifestLoadError("Manifest mapping has no 'topics' key")
        data = data['topics']
    if not isinstance(data, list):
        raise ManifestLoadError(f"Manifest topics must be a list, got {type(data).__name__}")

    topics = []
    seen = set()
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ManifestLoadError(f"Topic #{index} is not a mapping", index=index)

        topic_id = _required_str(raw, ('id',), index)
        title = _required_str(raw, ('title',), index)
        file_path = _required_str(raw, _PATH_KEYS, index)

        if not _ID_RE.match(topic_id):
            raise ManifestLoadError(f"Topic #{index}: id may only contain letters, digits, '.', '_' and '-': "
                                    f"{topic_id}", index=index, id=topic_id)
        if topic_id in seen:
            raise ManifestLoadError(f"Duplicate topic id: {topic_id}", index=index, id=topic_id)
        _check_relative(file_path, index)

        seen.add(topic_id)
        topics.append(TopicEntry(id=topic_id, title=title, file_path=file_path))

    return topics


def _required_str(raw: dict, keys: tuple[str, ...], index: int) -> str:
    for key in keys:
        if key in raw:
            value = raw[key]
            if not isinstance(value, str) or not value.strip():
                raise ManifestLoadError(f"Topic #{index}: '{key}' must be a non-empty string",
                                        index=index, key=key)
            return value.strip()
    raise ManifestLoadError(f"Topic #{index}: missing '{keys[0]}'", index=index, key=keys[0])


def _check_relative(file_path: str, index: int):
    posix = PurePosixPath(file_path.replace('\\', '/'))
    if posix.is_absolute() or re.match(r'^[A-Za-z]:', file_path) or '..' in posix.parts:
        raise ManifestLoadError(f"Topic #{index}: path must be relative to the docs directory: {file_path}",
                                index=index, path=file_path)


# ---------------------------------------------------------------------------
# Manifest generation
# ---------------------------------------------------------------------------

def slugify(text: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug or 'topic'


def topic_title(file_path: Path) -> str:
    """Title from frontmatter, else the first level-1 heading, else the file name."""
    try:
        content = file_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        print(f"  Warning: Could not read {file_path}: {e}")
        content = ''

    frontmatter, body = split_frontmatter(content)
    title = frontmatter.get('title')
    if isinstance(title, str) and title.strip():
        return title.strip()
    return first_heading(body) or file_path.stem.replace('_', ' ').replace('-', ' ').strip() or file_path.stem


def build_manifest(docs_dir: Path) -> list[TopicEntry]:
    """Scan a docs directory and build a topic list, ordered by path."""
    topics = []
    seen = set()
    md_files = sorted(docs_dir.rglob('*.md'))

    print(f"Scanning {len(md_files)} markdown files...")

    for file_path in md_files:
        rel_path = file_path.relative_to(docs_dir).as_posix()
        base_id = slugify(str(PurePosixPath(rel_path).with_suffix('')))
        topic_id = base_id
        n = 2
        while topic_id in seen:
            topic_id = f"{base_id}-{n}"
            n += 1
        seen.add(topic_id)
        topics.append(TopicEntry(id=topic_id, title=topic_title(file_path), file_path=rel_path))

    return topics


def write_manifest(topics: list[TopicEntry], output: Path):
    data = {'topics': [t.to_dict() for t in topics]}
    if output.suffix.lower() == '.json':
        output.write_text(json.dumps(data, ensure_ascii=False, indent=2) + '\n', encoding='utf-8')
    else:
        output.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding='utf-8')


def main():
    parser = argparse.ArgumentParser(description='Build a topic manifest from a docs directory')
    parser.add_argument('--docs-dir', type=Path, default=Path('docs'),
                        help='Directory containing the markdown topics (default: ./docs)')
    parser.add_argument('--output', type=Path, default=None,
                        help='Output manifest path, .yaml or .json (default: DOCS_DIR/manifest.yaml)')
    args = parser.parse_args()

    if not args.docs_dir.is_dir():
        print(f"Error: Docs directory not found: {args.docs_dir}")
        sys.exit(1)

    output = args.output or args.docs_dir / 'manifest.yaml'
    topics = build_manifest(args.docs_dir)
    write_manifest(topics, output)

    print(f"\nManifest written to {output}")
    print(f"  Topics: {len(topics)}")
    for topic in topics:
        print(f"    {topic.id:<30} {topic.title}")


if __name__ == '__main__':
    main()
