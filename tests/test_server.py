"""End-to-end tests for the local web server on an ephemeral port."""

import threading

import pytest
import requests

from conftest import ScriptedSource
from server import close_server, make_server
from viewer import ViewerContext


@pytest.fixture
def base_url(config):
    source = ScriptedSource()
    server = make_server(config, ViewerContext(config, source=source))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        thread.join(timeout=5)
        close_server(server)
    assert source.closed


def test_index_preselects_first_topic(base_url):
    response = requests.get(base_url + '/', timeout=5)
    assert response.status_code == 200
    assert response.headers['Content-Type'].startswith('text/html')
    assert '<h1>Hello</h1>' in response.text
    assert '<title>Intro - ' in response.text


def test_index_with_topic_query(base_url):
    response = requests.get(base_url + '/?topic=widgets', timeout=5)
    assert '<strong>widget</strong>' in response.text
    assert 'data-topic-id="widgets" class="active"' in response.text


def test_index_with_broken_topic_shows_notice(base_url):
    response = requests.get(base_url + '/?topic=broken', timeout=5)
    assert response.status_code == 200
    assert 'notice-fetch-error' in response.text
    assert 'Select a topic from the list.' in response.text


def test_manifest_api(base_url):
    data = requests.get(base_url + '/api/manifest', timeout=5).json()
    assert data['error'] is None
    assert [t['id'] for t in data['topics']] == ['intro', 'widgets', 'broken']


def test_manifest_api_reports_load_error(base_url, docs_dir):
    (docs_dir / 'manifest.yaml').write_text('topics: oops\n')
    response = requests.get(base_url + '/api/manifest', timeout=5)
    assert response.status_code == 200
    data = response.json()
    assert data['topics'] == []
    assert data['error']['type'] == 'manifest-error'

    page = requests.get(base_url + '/', timeout=5).text
    assert 'notice-manifest-error' in page
    assert 'No topics' in page


def test_topic_api(base_url):
    data = requests.get(base_url + '/api/topic', params={'id': 'intro'}, timeout=5).json()
    assert data == {'id': 'intro', 'title': 'Intro', 'html': '<h1>Hello</h1>\n<p>World</p>'}


def test_topic_api_errors(base_url):
    unknown = requests.get(base_url + '/api/topic', params={'id': 'nope'}, timeout=5)
    assert unknown.status_code == 404
    assert unknown.json()['error']['type'] == 'unknown-topic'

    broken = requests.get(base_url + '/api/topic', params={'id': 'broken'}, timeout=5)
    assert broken.status_code == 502
    assert broken.json()['error']['details']['status'] == 404


def test_unknown_route(base_url):
    assert requests.get(base_url + '/nowhere', timeout=5).status_code == 404


def test_head_has_no_body(base_url):
    response = requests.head(base_url + '/api/manifest', timeout=5)
    assert response.status_code == 200
    assert response.content == b''
