#!/usr/bin/env python3
"""
Topic Viewer - Local Web Server

Serves the training documents with a topic sidebar and a content pane.

Usage:
    python server.py [--config PATH] [--port PORT] [--docs-dir PATH] [--manifest PATH]

Then open http://localhost:8080 in your browser.

Routes:
    /                   page with the topic list (?topic=ID pre-selects a topic)
    /api/manifest       topic list as JSON, plus the load error if any
    /api/topic?id=ID    rendered topic as JSON
"""

import argparse
import asyncio
import json
import logging
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from manifest import load_manifest
from surface import PageSurface
from viewer import ViewerContext
from viewer_config import ViewerConfig, load_config
from viewer_errors import DocumentFetchError, ManifestLoadError, ViewerConfigError, ViewerError

logger = logging.getLogger(__name__)


class RequestHandler(BaseHTTPRequestHandler):
    protocol_version = 'HTTP/1.0'

    # Set by make_server(); shared by every request of this process
    context: ViewerContext = None
    loop: asyncio.AbstractEventLoop = None

    def send_body(self, status: int, content_type: str, body: bytes):
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        self.send_header('Connection', 'close')
        self.end_headers()
        if self.command != 'HEAD':
            self.wfile.write(body)
        self.wfile.flush()

    def send_json(self, data, status: int = 200):
        """Send JSON response with proper headers."""
        body = json.dumps(data, ensure_ascii=False).encode('utf-8')
        self.send_body(status, 'application/json; charset=utf-8', body)

    def send_html(self, html_content: str, status: int = 200):
        """Send HTML response with proper headers."""
        self.send_body(status, 'text/html; charset=utf-8', html_content.encode('utf-8'))

    def send_error_json(self, status: int, error: ViewerError):
        self.send_json({'error': error.to_dict()}, status=status)

    def run(self, coro):
        return self.loop.run_until_complete(coro)

    def do_GET(self):
        parsed = urlparse(self.path)
        path = parsed.path
        query = parse_qs(parsed.query)

        try:
            if path == '/' or path == '/index.html':
                self.handle_page(query.get('topic', [''])[0])
            elif path == '/api/manifest':
                self.handle_manifest()
            elif path == '/api/topic':
                self.handle_topic(query.get('id', [''])[0])
            else:
                self.send_json({'error': {'type': 'not-found', 'message': f"No route for {path}"}}, status=404)

        except Exception:
            logger.exception("Error handling %s", self.path)
            self.send_response(500)
            self.send_header('Connection', 'close')
            self.end_headers()

    do_HEAD = do_GET

    def handle_page(self, topic_id: str):
        # A fresh session per page load: view state is not kept across reloads
        viewer = self.context.new_viewer()
        surface = PageSurface(viewer, site_title=self.context.config.site_title)
        if viewer.load_manifest() and viewer.topics:
            self.run(viewer.select_topic(topic_id or viewer.topics[0].id))
        surface.detach()
        self.send_html(surface.page_html())

    def handle_manifest(self):
        try:
            topics = load_manifest(self.context.config.manifest_path)
        except ManifestLoadError as e:
            logger.warning("Manifest load failed: %s", e.message)
            self.send_json({'topics': [], 'error': e.to_dict()})
            return
        self.send_json({'topics': [t.to_dict() for t in topics], 'error': None})

    def handle_topic(self, topic_id: str):
        try:
            topics = load_manifest(self.context.config.manifest_path)
        except ManifestLoadError as e:
            self.send_error_json(503, e)
            return

        topic = next((t for t in topics if t.id == topic_id), None)
        if topic is None:
            self.send_json({'error': {'type': 'unknown-topic', 'message': f"Unknown topic: {topic_id}"}},
                           status=404)
            return

        try:
            document = self.run(self.context.store.get(topic))
        except DocumentFetchError as e:
            logger.warning("Could not load topic %s: %s", topic_id, e.message)
            self.send_error_json(502, e)
            return

        self.send_json({'id': topic.id, 'title': topic.title, 'html': document.rendered_html})

    def log_message(self, format, *args):
        logger.info("[%s] %s", self.address_string(), format % args)


def make_server(config: ViewerConfig, context: ViewerContext | None = None) -> HTTPServer:
    """Build the HTTP server; the caller owns serve_forever() and shutdown."""
    context = context or ViewerContext(config)
    handler = type('BoundRequestHandler', (RequestHandler,), {
        'context': context,
        'loop': asyncio.new_event_loop(),
    })
    return HTTPServer((config.host, config.port), handler)


def close_server(server: HTTPServer):
    handler = server.RequestHandlerClass
    server.server_close()
    handler.context.close()
    handler.loop.close()


def main():
    parser = argparse.ArgumentParser(description='Topic Viewer - local web server')
    parser.add_argument('--config', type=Path, default=None, help='Path to viewer.yaml')
    parser.add_argument('--host', default=None, help='Interface to bind (default: localhost)')
    parser.add_argument('--port', type=int, default=None, help='Port to run server on (default: 8080)')
    parser.add_argument('--docs-dir', type=Path, default=None, help='Directory containing the markdown topics')
    parser.add_argument('--manifest', type=Path, default=None, help='Path to the topic manifest')
    parser.add_argument('--base-url', default=None, help='Fetch topics over HTTP from this URL instead of the docs dir')

    args = parser.parse_args()

    try:
        config = load_config(args.config).with_overrides(
            host=args.host, port=args.port, docs_dir=args.docs_dir,
            manifest=args.manifest, base_url=args.base_url,
        )
    except ViewerConfigError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if not config.manifest_path.exists():
        print(f"Warning: Manifest not found at {config.manifest_path}")
        print("Run manifest.py first to generate it.")

    server = make_server(config)
    print(f"\n{'='*50}")
    print(f"  {config.site_title}")
    print(f"{'='*50}")
    print(f"\n  Open in browser: http://{config.host}:{server.server_address[1]}")
    print(f"\n  Press Ctrl+C to stop the server")
    print(f"{'='*50}\n")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nServer stopped.")
    finally:
        close_server(server)


if __name__ == '__main__':
    main()
