#!/usr/bin/env python3
"""
Build a static topic viewer from the manifest and markdown files.

Generates a site that can be served from any static web server (or opened
from file:// when built with --offline).

Usage:
    python build_site.py [--config PATH] [--docs-dir PATH] [--manifest PATH] [--output PATH] [--offline]

Produces:
    site/
      index.html          - viewer page, first topic pre-rendered
      manifest.json       - topic list
      topics/             - pre-rendered HTML fragments (one per topic)
        intro.html
        widgets.html
        ...
      offline.html        - single self-contained file (with --offline)
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from manifest import TopicEntry
from surface import PageSurface
from viewer import ViewerContext
from viewer_config import ViewerConfig, load_config
from viewer_errors import DocumentFetchError, ViewerConfigError

STATIC_TOPIC_URL = 'topics/{id}.html'


async def _render_topics(context: ViewerContext, topics_dir: Path) -> tuple[list[TopicEntry], list[str]]:
    written = []
    errors = []
    viewer = context.new_viewer()
    if not viewer.load_manifest():
        errors.extend(notice.message for notice in viewer.notices)
        return written, errors

    for topic in viewer.topics:
        try:
            document = await context.store.get(topic)
        except DocumentFetchError as e:
            print(f"  Warning: Skipping {topic.id}: {e.message}")
            errors.append(e.message)
            continue
        (topics_dir / f"{topic.id}.html").write_text(document.rendered_html, encoding='utf-8')
        written.append(topic)
        print(f"  {topic.id:<30} -> topics/{topic.id}.html")

    return written, errors


async def _render_index(context: ViewerContext, written: list[TopicEntry]) -> str:
    viewer = context.new_viewer()
    surface = PageSurface(viewer, site_title=context.config.site_title,
                          topic_url=STATIC_TOPIC_URL, mode='static')
    if viewer.load_manifest() and written:
        await viewer.select_topic(written[0].id)
    surface.detach()
    return surface.page_html()


def build_site(config: ViewerConfig, output_dir: Path, offline: bool = False) -> int:
    """
    Build the complete static viewer. Returns the number of failures.

    Steps:
      1. Render each topic to topics/{id}.html
      2. Write manifest.json listing the rendered topics
      3. Write index.html with the first topic pre-selected
      4. Optionally bundle everything into offline.html
    """
    start_time = time.time()

    print(f"Docs directory:   {config.docs_dir}")
    print(f"Manifest:         {config.manifest_path}")
    print(f"Output directory: {output_dir}")
    print()

    output_dir.mkdir(parents=True, exist_ok=True)
    topics_dir = output_dir / 'topics'
    topics_dir.mkdir(parents=True, exist_ok=True)

    with ViewerContext(config) as context:
        # ------------------------------------------------------------------
        # Step 1: Render topic fragments
        # ------------------------------------------------------------------
        print("=== Rendering topics ===")
        written, errors = asyncio.run(_render_topics(context, topics_dir))
        print(f"  Total HTML fragments: {len(written)}")
        if errors:
            print(f"  Errors/skipped: {len(errors)}")
        print()

        # ------------------------------------------------------------------
        # Step 2: Write manifest.json
        # ------------------------------------------------------------------
        print("=== Writing manifest.json ===")
        manifest_data = {
            'topics': [
                {'id': t.id, 'title': t.title, 'file': STATIC_TOPIC_URL.format(id=t.id)}
                for t in written
            ],
        }
        manifest_path = output_dir / 'manifest.json'
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest_data, f, ensure_ascii=False, separators=(',', ':'))
        print(f"  Written: manifest.json ({len(written)} topics)")
        print()

        # ------------------------------------------------------------------
        # Step 3: Generate index.html
        # ------------------------------------------------------------------
        print("=== Writing index.html ===")
        index_path = output_dir / 'index.html'
        index_path.write_text(asyncio.run(_render_index(context, written)), encoding='utf-8')
        print(f"  Written: index.html ({index_path.stat().st_size / 1024:.0f} KB)")

    elapsed = time.time() - start_time
    print()
    print("=" * 50)
    print(f"  Build complete in {elapsed:.1f}s")
    print(f"  {len(written)} topics")
    print(f"  Output: {output_dir.resolve()}")
    print("=" * 50)

    if offline:
        print()
        generate_offline_html(output_dir, written)

    return len(errors)


# ---------------------------------------------------------------------------
# Offline HTML generator
# ---------------------------------------------------------------------------

def generate_offline_html(output_dir: Path, written: list[TopicEntry]):
    """Generate a single self-contained offline.html with all topics embedded."""
    print("=== Generating offline.html ===")
    start = time.time()

    index_path = output_dir / 'index.html'
    topics_dir = output_dir / 'topics'

    if not index_path.exists():
        print("  Error: index.html not found, run build first")
        return

    index_html = index_path.read_text(encoding='utf-8')

    topics_obj = {}
    for topic in written:
        fragment = topics_dir / f"{topic.id}.html"
        if fragment.exists():
            topics_obj[topic.id] = fragment.read_text(encoding='utf-8')
    print(f"  Embedded topics: {len(topics_obj)}")

    # Escape </script> inside embedded JSON to prevent premature tag closing
    topics_json = json.dumps(topics_obj, ensure_ascii=False, separators=(',', ':'))
    topics_json_safe = topics_json.replace('</', '<\\/')

    inject = '<script>window.__OFFLINE_TOPICS = ' + topics_json_safe + ';</script>\n'
    if '</body>' in index_html:
        offline_html = index_html.replace('</body>', inject + '</body>', 1)
    else:
        offline_html = index_html + '\n' + inject

    offline_path = output_dir / 'offline.html'
    offline_path.write_text(offline_html, encoding='utf-8')

    size_kb = offline_path.stat().st_size / 1024
    elapsed = time.time() - start
    print(f"  Written: offline.html ({size_kb:.0f} KB) in {elapsed:.1f}s")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description='Build a static topic viewer from the manifest and markdown files.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python build_site.py
    python build_site.py --output ./site
    python build_site.py --docs-dir ~/flutter-docs --manifest ~/flutter-docs/manifest.yaml
    python build_site.py --offline
        """,
    )
    parser.add_argument('--config', type=Path, default=None, help='Path to viewer.yaml')
    parser.add_argument('--docs-dir', type=Path, default=None,
                        help='Directory containing the markdown topics (default: ./docs)')
    parser.add_argument('--manifest', type=Path, default=None,
                        help='Topic manifest (default: ./docs/manifest.yaml)')
    parser.add_argument('--output', type=Path, default=Path('site'),
                        help='Output directory for the static site (default: ./site)')
    parser.add_argument('--offline', action='store_true', default=False,
                        help='Generate offline.html, a single self-contained file for offline use.')

    args = parser.parse_args()

    try:
        config = load_config(args.config).with_overrides(docs_dir=args.docs_dir, manifest=args.manifest)
    except ViewerConfigError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format='%(levelname)s %(name)s: %(message)s')

    failures = build_site(config, args.output, offline=args.offline)
    sys.exit(1 if failures else 0)


if __name__ == '__main__':
    main()
