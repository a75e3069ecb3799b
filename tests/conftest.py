"""Test configuration and fixtures for Wing tests."""

import logging
import pytest
import tempfile
import shutil
from pathlib import Path

INDEX_TEMPLATE = "INDEX|{{ current }}|{{ index|join(',') }}|{{ title }}|{{ content }}"
POST_TEMPLATE = "POST|{{ current }}|{{ link('index') }}|{{ content }}"


@pytest.fixture(autouse=True)
def reset_wing_logger():
    """Drop handlers added by Wing so each test starts without a log file."""
    yield
    logger = logging.getLogger('Wing')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_content_dir(temp_dir):
    """Create a content directory with a home page and one post."""
    content_dir = Path(temp_dir) / 'content'
    (content_dir / 'posts').mkdir(parents=True)

    (content_dir / 'index.md').write_text("# Home\n\nWelcome to the site.\n")
    (content_dir / 'posts' / 'a.md').write_text("""---
template: post
title: First Post
date: 2023-01-01
---

# First Post

This is a test post with some content.
""")
    return str(content_dir)


@pytest.fixture
def mock_templates_dir(temp_dir):
    """Create a templates directory with the index and post templates."""
    templates_dir = Path(temp_dir) / 'templates'
    templates_dir.mkdir()
    (templates_dir / 'index.html').write_text(INDEX_TEMPLATE)
    (templates_dir / 'post.html').write_text(POST_TEMPLATE)
    return str(templates_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Create an empty output directory, as 'wing new' leaves it."""
    output_dir = Path(temp_dir) / 'site'
    output_dir.mkdir()
    return str(output_dir)


@pytest.fixture
def project_dir(temp_dir, mock_content_dir, mock_templates_dir, mock_output_dir):
    """A complete project: content, templates and an empty output directory."""
    return temp_dir


def snapshot(directory):
    """Map every file under directory to its bytes."""
    root = Path(directory)
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob('*')) if p.is_file()}
