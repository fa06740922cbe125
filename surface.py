"""
HTML surface for a Viewer session.

PageSurface subscribes to a Viewer and keeps one HTML string per page
region (sidebar, content, notices), redrawing only the regions a change
touches. page_html() drops the regions into PAGE_TEMPLATE, which also
carries the browser script that takes over once the page is loaded.
"""

import html
import json
import re
from collections import Counter

from viewer import CONTENT, NOTICES, SIDEBAR, Viewer

REGIONS = (SIDEBAR, CONTENT, NOTICES)

_PLACEHOLDER_RE = re.compile(r'\{(PAGE_TITLE|SITE_TITLE|BODY_CLASS|NARROW_MAX|BOOT_JSON|SIDEBAR|NOTICES|CONTENT)\}')


def render_sidebar(viewer: Viewer) -> str:
    active = viewer.state.active_topic_id
    items = []
    for topic in viewer.topics:
        css = ' class="active"' if topic.id == active else ''
        items.append(
            f'<li><a href="#topic/{html.escape(topic.id)}" data-topic-id="{html.escape(topic.id)}"{css}>'
            f'{html.escape(topic.title)}</a></li>'
        )
    if not items:
        items.append('<li class="empty">No topics</li>')
    return '<h2>Topics</h2>\n<ul id="topic-list">\n' + '\n'.join(items) + '\n</ul>'


def render_content(viewer: Viewer) -> str:
    if viewer.document is None:
        return '<p class="placeholder">Select a topic from the list.</p>'
    return viewer.document.rendered_html


def render_notices(viewer: Viewer) -> str:
    return '\n'.join(
        f'<div class="notice notice-{html.escape(n.kind)}" data-notice-id="{n.id}"'
        + (f' data-topic-id="{html.escape(n.topic_id)}"' if n.topic_id else '')
        + ' role="alert">'
        f'<span>{html.escape(n.message)}</span>'
        f'<button type="button" class="dismiss" aria-label="Dismiss">&times;</button></div>'
        for n in viewer.notices
    )


_RENDERERS = {SIDEBAR: render_sidebar, CONTENT: render_content, NOTICES: render_notices}


class PageSurface:
    """Region cache kept in sync with a Viewer through its subscription."""

    def __init__(self, viewer: Viewer, site_title: str = 'Flutter Training',
                 topic_url: str = '/api/topic?id={id}', mode: str = 'api'):
        self.viewer = viewer
        self.site_title = site_title
        self.topic_url = topic_url
        self.mode = mode
        self.redraws: Counter = Counter()
        self.regions: dict[str, str] = {}
        for region in REGIONS:
            self._redraw(region)
        self._unsubscribe = viewer.subscribe(self._on_change)

    def _redraw(self, region: str):
        self.regions[region] = _RENDERERS[region](self.viewer)
        self.redraws[region] += 1

    def _on_change(self, regions: frozenset, viewer: Viewer):
        for region in REGIONS:
            if region in regions:
                self._redraw(region)

    def detach(self):
        self._unsubscribe()

    def boot_data(self) -> dict:
        state = self.viewer.state
        return {
            'mode': self.mode,
            'topicUrl': self.topic_url,
            'breakpoint': self.viewer.context.config.sidebar_breakpoint,
            'timeoutMs': int(self.viewer.context.config.fetch_timeout * 1000),
            'activeTopicId': state.active_topic_id,
            'sidebarVisible': state.sidebar_visible,
        }

    def page_html(self) -> str:
        boot = json.dumps(self.boot_data(), ensure_ascii=False).replace('</', '<\\/')
        active = self.viewer.active_topic
        title = f"{active.title} - {self.site_title}" if active else self.site_title
        body_class = '' if self.viewer.state.sidebar_visible else 'sidebar-hidden'
        values = {
            'PAGE_TITLE': html.escape(title),
            'SITE_TITLE': html.escape(self.site_title),
            'BODY_CLASS': body_class,
            # Sidebar is visible from sidebar_breakpoint up, so narrow ends one pixel below it
            'NARROW_MAX': str(self.viewer.context.config.sidebar_breakpoint - 1),
            'BOOT_JSON': boot,
            'SIDEBAR': self.regions[SIDEBAR],
            'NOTICES': self.regions[NOTICES],
            'CONTENT': self.regions[CONTENT],
        }
        # Single pass so placeholder-like text inside documents is left alone
        return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], PAGE_TEMPLATE)


PAGE_TEMPLATE = r'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{PAGE_TITLE}</title>
    <style>
        :root {
            --primary: #0d47a1;
            --secondary: #1e88e5;
            --accent: #e53935;
            --bg: #f5f7fa;
            --card-bg: #ffffff;
            --text: #263238;
            --text-light: #607d8b;
            --border: #dde3ea;
            --code-bg: #263238;
        }

        * {
            box-sizing: border-box;
            margin: 0;
            padding: 0;
        }

        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: var(--bg);
            color: var(--text);
            line-height: 1.6;
        }

        header {
            background: var(--primary);
            color: white;
            padding: 1rem 1.5rem;
            display: flex;
            align-items: center;
            gap: 1rem;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
        }

        header h1 {
            font-size: 1.4rem;
            font-weight: normal;
        }

        .sidebar-toggle {
            background: none;
            border: 1px solid rgba(255,255,255,0.4);
            color: white;
            font-size: 1.2rem;
            padding: 0.2rem 0.6rem;
            border-radius: 4px;
            cursor: pointer;
        }

        .container {
            display: flex;
            min-height: calc(100vh - 60px);
        }

        .sidebar {
            width: 280px;
            flex-shrink: 0;
            background: var(--card-bg);
            border-right: 1px solid var(--border);
            padding: 1rem;
            overflow-y: auto;
            position: sticky;
            top: 0;
            height: calc(100vh - 60px);
        }

        .sidebar-hidden .sidebar {
            display: none;
        }

        .sidebar h2 {
            font-size: 0.85rem;
            text-transform: uppercase;
            letter-spacing: 0.05em;
            color: var(--text-light);
            margin-bottom: 0.5rem;
            padding-bottom: 0.5rem;
            border-bottom: 1px solid var(--border);
        }

        .sidebar ul {
            list-style: none;
        }

        .sidebar li {
            margin: 0.25rem 0;
        }

        .sidebar li.empty {
            color: var(--text-light);
            font-size: 0.9rem;
            padding: 0.4rem 0.6rem;
        }

        .sidebar a {
            color: var(--text);
            text-decoration: none;
            font-size: 0.9rem;
            display: block;
            padding: 0.4rem 0.6rem;
            border-radius: 4px;
            transition: background 0.2s;
        }

        .sidebar a:hover {
            background: var(--bg);
        }

        .sidebar a.active {
            background: var(--secondary);
            color: white;
        }

        .main {
            flex: 1;
            min-width: 0;
            padding: 2rem;
            max-width: 960px;
        }

        .notice {
            display: flex;
            justify-content: space-between;
            align-items: flex-start;
            gap: 1rem;
            padding: 0.75rem 1rem;
            margin-bottom: 1rem;
            border-radius: 6px;
            border-left: 4px solid var(--accent);
            background: #fdecea;
            font-size: 0.9rem;
        }

        .notice-unknown-topic {
            border-left-color: #fb8c00;
            background: #fff3e0;
        }

        .notice .dismiss {
            background: none;
            border: none;
            font-size: 1.1rem;
            cursor: pointer;
            color: var(--text-light);
        }

        .loading {
            color: var(--text-light);
            font-size: 0.9rem;
            margin-bottom: 1rem;
        }

        .topic-content {
            background: var(--card-bg);
            padding: 2rem;
            border-radius: 8px;
            box-shadow: 0 1px 3px rgba(0,0,0,0.08);
        }

        .topic-content h1 { font-size: 1.8rem; margin: 0 0 1rem; color: var(--primary); }
        .topic-content h2 { font-size: 1.4rem; margin: 1.5rem 0 0.75rem; }
        .topic-content h3 { font-size: 1.15rem; margin: 1.25rem 0 0.5rem; }
        .topic-content h4, .topic-content h5, .topic-content h6 { font-size: 1rem; margin: 1rem 0 0.5rem; }
        .topic-content p { margin-bottom: 1rem; }
        .topic-content ul, .topic-content ol { margin: 0 0 1rem 1.5rem; }
        .topic-content li { margin: 0.2rem 0; }
        .topic-content a { color: var(--secondary); }
        .topic-content img { max-width: 100%; }
        .topic-content blockquote {
            border-left: 3px solid var(--secondary);
            padding-left: 1rem;
            margin: 1rem 0;
            color: var(--text-light);
        }
        .topic-content code {
            font-family: 'SFMono-Regular', Consolas, 'Liberation Mono', monospace;
            font-size: 0.88em;
            background: #eceff1;
            padding: 0.1rem 0.3rem;
            border-radius: 3px;
        }
        .topic-content pre {
            background: var(--code-bg);
            color: #eceff1;
            padding: 1rem;
            border-radius: 6px;
            overflow-x: auto;
            margin-bottom: 1rem;
        }
        .topic-content pre code { background: none; padding: 0; color: inherit; }
        .topic-content hr { margin: 2rem 0; border: none; border-top: 1px solid var(--border); }
        .topic-content .placeholder { color: var(--text-light); }

        @media (max-width: {NARROW_MAX}px) {
            .sidebar {
                position: fixed;
                z-index: 10;
                top: 60px;
                left: 0;
                box-shadow: 2px 0 10px rgba(0,0,0,0.15);
            }
            .main {
                padding: 1rem;
            }
        }
    </style>
</head>
<body class="{BODY_CLASS}">
    <header>
        <button type="button" id="sidebar-toggle" class="sidebar-toggle" aria-label="Toggle topic list">&#9776;</button>
        <h1>{SITE_TITLE}</h1>
    </header>

    <div class="container">
        <nav class="sidebar" id="sidebar">
{SIDEBAR}
        </nav>

        <main class="main">
            <div id="notices">
{NOTICES}
            </div>
            <div id="loading" class="loading" hidden>Loading&hellip;</div>
            <article id="content" class="topic-content">
{CONTENT}
            </article>
        </main>
    </div>

    <script type="application/json" id="viewer-boot">{BOOT_JSON}</script>
    <script>
        const BOOT = JSON.parse(document.getElementById('viewer-boot').textContent);
        const cache = new Map();
        const inFlight = new Map();
        let activeTopicId = BOOT.activeTopicId;
        let requestedTopicId = activeTopicId;
        let noticeSeq = 0;

        function topicLinks() {
            return Array.from(document.querySelectorAll('#sidebar a[data-topic-id]'));
        }

        function topicTitle(id) {
            const link = topicLinks().find(a => a.dataset.topicId === id);
            return link ? link.textContent : null;
        }

        function setSidebar(visible) {
            document.body.classList.toggle('sidebar-hidden', !visible);
        }

        function setLoading(on) {
            document.getElementById('loading').hidden = !on;
        }

        function markActive(id) {
            topicLinks().forEach(a => a.classList.toggle('active', a.dataset.topicId === id));
        }

        function addNotice(kind, message, topicId) {
            const div = document.createElement('div');
            div.className = 'notice notice-' + kind;
            div.dataset.noticeId = 'c' + (++noticeSeq);
            if (topicId) div.dataset.topicId = topicId;
            div.setAttribute('role', 'alert');
            const span = document.createElement('span');
            span.textContent = message;
            const button = document.createElement('button');
            button.type = 'button';
            button.className = 'dismiss';
            button.setAttribute('aria-label', 'Dismiss');
            button.innerHTML = '&times;';
            div.append(span, button);
            document.getElementById('notices').appendChild(div);
        }

        function clearTopicErrors(id) {
            document.querySelectorAll('#notices .notice-fetch-error').forEach(n => {
                if (n.dataset.topicId === id) n.remove();
            });
        }

        function topicUrl(id) {
            return BOOT.topicUrl.replace('{id}', encodeURIComponent(id));
        }

        async function fetchTopic(id) {
            if (window.__OFFLINE_TOPICS && id in window.__OFFLINE_TOPICS) {
                return window.__OFFLINE_TOPICS[id];
            }
            const controller = new AbortController();
            const timer = setTimeout(() => controller.abort(), BOOT.timeoutMs);
            try {
                const response = await fetch(topicUrl(id), {signal: controller.signal});
                if (!response.ok) throw new Error('server returned ' + response.status);
                if (BOOT.mode === 'api') return (await response.json()).html;
                return await response.text();
            } catch (err) {
                if (err.name === 'AbortError') throw new Error('request timed out');
                throw err;
            } finally {
                clearTimeout(timer);
            }
        }

        function loadTopic(id) {
            if (cache.has(id)) return Promise.resolve(cache.get(id));
            if (!inFlight.has(id)) {
                const pending = fetchTopic(id)
                    .then(html => { cache.set(id, html); return html; })
                    .finally(() => inFlight.delete(id));
                inFlight.set(id, pending);
            }
            return inFlight.get(id);
        }

        async function selectTopic(id) {
            const title = topicTitle(id);
            if (title === null) {
                addNotice('unknown-topic', 'Unknown topic: ' + id, id);
                return;
            }
            requestedTopicId = id;
            setLoading(!cache.has(id));
            try {
                const html = await loadTopic(id);
                if (requestedTopicId !== id) return;
                document.getElementById('content').innerHTML = html;
                activeTopicId = id;
                markActive(id);
                clearTopicErrors(id);
                setLoading(false);
                window.scrollTo(0, 0);
            } catch (err) {
                if (requestedTopicId !== id) return;
                setLoading(false);
                addNotice('fetch-error', 'Could not load "' + title + '": ' + err.message, id);
            }
        }

        function handleRoute() {
            const hash = window.location.hash;
            if (hash.startsWith('#topic/')) {
                selectTopic(decodeURIComponent(hash.substring('#topic/'.length)));
            }
        }

        document.getElementById('sidebar-toggle').addEventListener('click', () => {
            setSidebar(document.body.classList.contains('sidebar-hidden'));
        });

        document.getElementById('sidebar').addEventListener('click', (e) => {
            const link = e.target.closest('a[data-topic-id]');
            if (!link) return;
            e.preventDefault();
            const id = link.dataset.topicId;
            if (window.location.hash === '#topic/' + encodeURIComponent(id)) {
                selectTopic(id);
            } else {
                window.location.hash = 'topic/' + encodeURIComponent(id);
            }
        });

        document.getElementById('notices').addEventListener('click', (e) => {
            if (e.target.classList.contains('dismiss')) e.target.closest('.notice').remove();
        });

        window.addEventListener('resize', () => setSidebar(window.innerWidth >= BOOT.breakpoint));
        window.addEventListener('hashchange', handleRoute);

        window.addEventListener('DOMContentLoaded', () => {
            setSidebar(window.innerWidth >= BOOT.breakpoint);
            if (activeTopicId) cache.set(activeTopicId, document.getElementById('content').innerHTML);
            handleRoute();
        });
    </script>
</body>
</html>
'''
