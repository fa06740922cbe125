"""Tests for the HTML surface that mirrors a Viewer session."""

import asyncio
import json
import re

from surface import PageSurface, render_notices, render_sidebar
from viewer import CONTENT, NOTICES, SIDEBAR, ViewerContext
from viewer_config import ViewerConfig


def select(viewer, topic_id):
    return asyncio.run(viewer.select_topic(topic_id))


def boot_json(page: str) -> dict:
    match = re.search(r'<script type="application/json" id="viewer-boot">(.*?)</script>', page, re.S)
    return json.loads(match.group(1))


def test_initial_draw(viewer):
    surface = PageSurface(viewer)
    assert surface.redraws == {SIDEBAR: 1, CONTENT: 1, NOTICES: 1}
    assert 'data-topic-id="widgets"' in surface.regions[SIDEBAR]
    assert 'Select a topic' in surface.regions[CONTENT]
    assert surface.regions[NOTICES] == ''


def test_only_changed_regions_redraw(viewer):
    surface = PageSurface(viewer)

    viewer.toggle_sidebar()
    assert surface.redraws == {SIDEBAR: 2, CONTENT: 1, NOTICES: 1}

    select(viewer, 'intro')
    assert surface.redraws == {SIDEBAR: 3, CONTENT: 3, NOTICES: 1}
    assert surface.regions[CONTENT] == '<h1>Hello</h1>\n<p>World</p>'
    assert 'class="active"' in surface.regions[SIDEBAR]

    select(viewer, 'nope')
    assert surface.redraws[CONTENT] == 3
    assert surface.redraws[NOTICES] == 2
    assert 'Unknown topic: nope' in surface.regions[NOTICES]


def test_detach_stops_redraws(viewer):
    surface = PageSurface(viewer)
    surface.detach()
    viewer.toggle_sidebar()
    assert surface.redraws[SIDEBAR] == 1


def test_sidebar_marks_only_active_topic(viewer):
    select(viewer, 'widgets')
    sidebar = render_sidebar(viewer)
    assert sidebar.count('class="active"') == 1
    assert '<a href="#topic/widgets" data-topic-id="widgets" class="active">Widgets</a>' in sidebar


def test_empty_sidebar(context):
    assert '<li class="empty">No topics</li>' in render_sidebar(context.new_viewer())


def test_notice_messages_are_escaped(viewer):
    select(viewer, '<img src=x>')
    out = render_notices(viewer)
    assert '<img' not in out
    assert '&lt;img src=x&gt;' in out
    assert 'notice-unknown-topic' in out


def test_page_html(viewer):
    select(viewer, 'intro')
    page = PageSurface(viewer, site_title='Flutter Training').page_html()

    assert '<title>Intro - Flutter Training</title>' in page
    assert '<h1>Hello</h1>' in page
    assert 'id="sidebar-toggle"' in page
    assert '{CONTENT}' not in page
    assert boot_json(page) == {
        'mode': 'api',
        'topicUrl': '/api/topic?id={id}',
        'breakpoint': 768,
        'timeoutMs': 10000,
        'activeTopicId': 'intro',
        'sidebarVisible': True,
    }


def test_page_leaves_placeholder_text_in_documents_alone(viewer, source):
    source.documents['intro.md'] = 'Literal {SIDEBAR} and </script> text'
    select(viewer, 'intro')
    page = PageSurface(viewer).page_html()
    assert '<p>Literal {SIDEBAR} and &lt;/script&gt; text</p>' in page


def test_hidden_sidebar_sets_body_class(context):
    viewer = context.new_viewer(viewport_width=400)
    viewer.load_manifest()
    page = PageSurface(viewer).page_html()
    assert '<body class="sidebar-hidden">' in page
    assert boot_json(page)['sidebarVisible'] is False


def test_narrow_layout_follows_configured_breakpoint(docs_dir, source):
    config = ViewerConfig(docs_dir=docs_dir, sidebar_breakpoint=1200)
    with ViewerContext(config, source=source) as ctx:
        viewer = ctx.new_viewer()
        viewer.load_manifest()
        page = PageSurface(viewer).page_html()
    assert '@media (max-width: 1199px)' in page
    assert '768px' not in page
    assert boot_json(page)['breakpoint'] == 1200
