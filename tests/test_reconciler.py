"""Tests for Reconciler."""

import pytest
import os
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from wing_pkg.indexer import DocumentIndexEntry
from wing_pkg.reconciler import Reconciler


def entries(*logical_ids):
    return [DocumentIndexEntry(f"{i}.md", i) for i in logical_ids]


def touch(root, rel_path, text='page'):
    path = Path(root, rel_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestReconciler:
    """Test cases for Reconciler."""

    def test_removes_only_orphans(self, mock_output_dir):
        """Test that pages without a document are removed and the rest kept."""
        keep = touch(mock_output_dir, 'index.html')
        keep_nested = touch(mock_output_dir, 'posts/a.html')
        orphan = touch(mock_output_dir, 'posts/old.html')

        removed = Reconciler(mock_output_dir).reconcile(entries('index', 'posts/a'))

        assert removed == [str(orphan)]
        assert keep.exists()
        assert keep_nested.exists()
        assert not orphan.exists()

    def test_ignores_non_html_files(self, mock_output_dir):
        """Test that feeds and other files are never reconciled."""
        for rel_path in ['rss.xml', 'sitemap.xml', 'CNAME', 'images/logo.png', 'index.htm']:
            touch(mock_output_dir, rel_path)

        assert Reconciler(mock_output_dir).reconcile(entries()) == []
        assert Path(mock_output_dir, 'images', 'logo.png').exists()

    def test_keeps_copied_static_pages(self, temp_dir, mock_output_dir):
        """Test that only pages with a static source survive under the static output."""
        static_dir = os.path.join(temp_dir, 'static')
        touch(static_dir, 'demo.html')
        static_page = touch(mock_output_dir, 'static/demo.html')
        rendered_page = touch(mock_output_dir, 'static/gone.html')
        nested_static = touch(mock_output_dir, 'docs/static/demo.html')

        removed = Reconciler(mock_output_dir, static_dir).reconcile(entries())

        assert static_page.exists()
        assert sorted(removed) == sorted([str(nested_static), str(rendered_page)])

    def test_static_output_without_static_dir(self, mock_output_dir):
        """Test that without a static directory nothing under static/ is special."""
        page = touch(mock_output_dir, 'static/demo.html')

        assert Reconciler(mock_output_dir).reconcile(entries()) == [str(page)]

    def test_prunes_emptied_directories(self, mock_output_dir):
        """Test that directories emptied by the cleanup are removed, the root is kept."""
        touch(mock_output_dir, 'a/b/c.html')
        touch(mock_output_dir, 'x/y.html')
        touch(mock_output_dir, 'x/keep.txt')

        Reconciler(mock_output_dir).reconcile(entries())

        assert not Path(mock_output_dir, 'a').exists()
        assert Path(mock_output_dir, 'x', 'keep.txt').exists()
        assert os.path.isdir(mock_output_dir)

    def test_missing_output_dir(self, temp_dir):
        """Test that reconciling a missing output tree is a no-op."""
        assert Reconciler(os.path.join(temp_dir, 'nonexistent')).reconcile(entries('index')) == []

    def test_failed_deletion_is_not_fatal(self, mock_output_dir, caplog):
        """Test that a file that cannot be removed is logged and skipped."""
        first = touch(mock_output_dir, 'a.html')
        second = touch(mock_output_dir, 'b.html')
        real_remove = os.remove

        def flaky_remove(path):
            if path == str(first):
                raise PermissionError('read-only')
            real_remove(path)

        with patch('wing_pkg.reconciler.os.remove', side_effect=flaky_remove):
            removed = Reconciler(mock_output_dir).reconcile(entries())

        assert removed == [str(second)]
        assert first.exists()
        assert 'read-only' in caplog.text

    @pytest.mark.skipif(not hasattr(os, 'symlink'), reason="symlinks not supported")
    def test_does_not_follow_links_outside_root(self, temp_dir, mock_output_dir):
        """Test that files reached through a symlinked directory are never deleted."""
        outside = Path(temp_dir, 'outside')
        outside.mkdir()
        victim = touch(outside, 'victim.html')
        os.symlink(str(outside), os.path.join(mock_output_dir, 'linked'))

        Reconciler(mock_output_dir).reconcile(entries())

        assert victim.exists()
