"""Tests for the file and HTTP document transports."""

import asyncio
import time
from unittest import mock

import pytest
import requests

from doc_sources import FileSource, HttpSource, make_source
from manifest import TopicEntry
from viewer_config import ViewerConfig
from viewer_errors import DocumentFetchError


def topic(file_path, topic_id='t'):
    return TopicEntry(id=topic_id, title='T', file_path=file_path)


def fetch(source, entry):
    return asyncio.run(source.fetch(entry))


class TestFileSource:

    def test_reads_utf8(self, docs_dir):
        (docs_dir / 'unicode.md').write_text('# Café ☕', encoding='utf-8')
        assert fetch(FileSource(docs_dir), topic('unicode.md')) == '# Café ☕'

    def test_nested_path(self, docs_dir):
        (docs_dir / 'sub').mkdir()
        (docs_dir / 'sub' / 'page.md').write_text('nested')
        assert fetch(FileSource(docs_dir), topic('sub/page.md')) == 'nested'

    def test_missing_file_is_404(self, docs_dir):
        with pytest.raises(DocumentFetchError) as info:
            fetch(FileSource(docs_dir), topic('missing.md', 'broken'))
        assert info.value.status == 404
        assert info.value.topic_id == 'broken'
        assert info.value.kind == 'fetch-error'

    def test_directory_is_not_a_document(self, docs_dir):
        (docs_dir / 'folder.md').mkdir()
        with pytest.raises(DocumentFetchError, match='not found'):
            fetch(FileSource(docs_dir), topic('folder.md'))

    def test_traversal_is_refused(self, docs_dir):
        (docs_dir.parent / 'secret.md').write_text('secret')
        with pytest.raises(DocumentFetchError) as info:
            fetch(FileSource(docs_dir), topic('../secret.md'))
        assert info.value.status == 403

    def test_slow_read_times_out(self, docs_dir, monkeypatch):
        source = FileSource(docs_dir, timeout=0.05)

        def slow_read(entry):
            time.sleep(0.3)
            return 'too late'

        monkeypatch.setattr(source, '_read', slow_read)
        with pytest.raises(DocumentFetchError, match='Timed out reading intro.md') as info:
            fetch(source, topic('intro.md', 'intro'))
        assert info.value.topic_id == 'intro'

    def test_undecodable_file(self, docs_dir):
        (docs_dir / 'binary.md').write_bytes(b'\xff\xfe\x00bad')
        with pytest.raises(DocumentFetchError, match='Could not read'):
            fetch(FileSource(docs_dir), topic('binary.md'))


def fake_response(status, body=b''):
    response = mock.Mock()
    response.status_code = status
    response.content = body
    return response


class TestHttpSource:

    def make(self, **get_kwargs):
        session = mock.Mock()
        session.get = mock.Mock(**get_kwargs)
        return HttpSource('https://docs.example.com/training', timeout=3, session=session), session

    def test_success(self):
        source, session = self.make(return_value=fake_response(200, '# Hi ✓'.encode('utf-8')))
        assert fetch(source, topic('state management/bloc.md')) == '# Hi ✓'
        session.get.assert_called_once_with(
            'https://docs.example.com/training/state%20management/bloc.md', timeout=3)

    def test_not_found(self):
        source, _ = self.make(return_value=fake_response(404))
        with pytest.raises(DocumentFetchError) as info:
            fetch(source, topic('gone.md'))
        assert info.value.status == 404

    def test_server_error(self):
        source, _ = self.make(return_value=fake_response(500))
        with pytest.raises(DocumentFetchError, match='HTTP 500') as info:
            fetch(source, topic('a.md'))
        assert info.value.status == 500

    def test_timeout(self):
        source, _ = self.make(side_effect=requests.Timeout('slow'))
        with pytest.raises(DocumentFetchError, match='Timed out'):
            fetch(source, topic('a.md'))

    def test_connection_error(self):
        source, _ = self.make(side_effect=requests.ConnectionError('refused'))
        with pytest.raises(DocumentFetchError, match='Could not fetch'):
            fetch(source, topic('a.md'))

    def test_invalid_utf8_is_replaced(self):
        source, _ = self.make(return_value=fake_response(200, b'ok \xff'))
        assert fetch(source, topic('a.md')) == 'ok �'

    def test_close_closes_session(self):
        source, session = self.make()
        source.close()
        session.close.assert_called_once_with()


def test_make_source_picks_transport(tmp_path):
    assert isinstance(make_source(ViewerConfig(docs_dir=tmp_path)), FileSource)
    http = make_source(ViewerConfig(base_url='http://localhost:9000/docs/'))
    assert isinstance(http, HttpSource)
    assert http.base_url == 'http://localhost:9000/docs/'
    http.close()
