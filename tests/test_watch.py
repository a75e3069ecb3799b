"""Tests for the rebuild-on-change handler and the development server."""

import os
import urllib.error
import urllib.request
from pathlib import Path
from unittest.mock import Mock

import pytest
from watchdog.events import FileModifiedEvent, FileCreatedEvent, FileMovedEvent, DirModifiedEvent

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from wing_pkg.errors import ScriptError
from wing_pkg.serve import serve_output
from wing_pkg.watch import RebuildHandler


@pytest.fixture
def wing(temp_dir):
    wing = Mock()
    wing.project_dir = temp_dir
    wing.output_dir = os.path.join(temp_dir, 'site')
    return wing


class TestRebuildHandler:
    """Test cases for RebuildHandler."""

    def test_rebuilds_on_source_change(self, wing, temp_dir):
        handler = RebuildHandler(wing)

        handler.on_modified(FileModifiedEvent(os.path.join(temp_dir, 'content', 'index.md')))
        handler.on_created(FileCreatedEvent(os.path.join(temp_dir, 'templates', 'post.html')))

        assert wing.build.call_count == 2
        wing.build.assert_called_with(force=True)

    def test_move_uses_destination(self, wing, temp_dir):
        handler = RebuildHandler(wing)

        handler.on_moved(FileMovedEvent(
            os.path.join(temp_dir, 'content', '.index.md.swp'),
            os.path.join(temp_dir, 'content', 'index.md'),
        ))

        wing.build.assert_called_once_with(force=True)

    def test_ignores_output_logs_and_hidden(self, wing, temp_dir):
        handler = RebuildHandler(wing, ignore=[os.path.join(temp_dir, 'logs')])

        for path in ['site/index.html', 'logs/wing.log', '.git/index', 'content/.index.md.swp']:
            handler.on_modified(FileModifiedEvent(os.path.join(temp_dir, path)))
        handler.on_modified(DirModifiedEvent(os.path.join(temp_dir, 'content')))

        wing.build.assert_not_called()

    def test_failed_build_keeps_watching(self, wing, temp_dir):
        wing.build.side_effect = ScriptError('make', 2)
        handler = RebuildHandler(wing)
        event = FileModifiedEvent(os.path.join(temp_dir, 'content', 'index.md'))

        handler.on_modified(event)
        handler.on_modified(event)

        assert wing.build.call_count == 2


class TestServer:
    """Test cases for the HTTP server."""

    def test_serves_output_and_404(self, mock_output_dir):
        Path(mock_output_dir, 'index.html').write_text('<p>home</p>')
        httpd = serve_output(mock_output_dir, port=0)
        port = httpd.server_address[1]
        try:
            with urllib.request.urlopen(f"http://localhost:{port}/index.html") as response:
                assert response.read() == b'<p>home</p>'

            with pytest.raises(urllib.error.HTTPError) as excinfo:
                urllib.request.urlopen(f"http://localhost:{port}/missing.html")
            assert excinfo.value.code == 404
            assert b'<h1>404</h1>' in excinfo.value.read()
        finally:
            httpd.shutdown()
            httpd.server_close()
