"""
Per-document rendering for Wing.

A DocumentRenderer takes one index entry through read, frontmatter, markdown,
template and write. Each stage raises its own RenderError subclass so the
coordinator can report exactly where a document failed.
"""

import os
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Dict, Optional

import mistune
import yaml
from jinja2 import TemplateNotFound, TemplateSyntaxError

from .errors import (
    RenderError, ReadError, FrontmatterError, MarkupError, TemplateError, WriteError,
)
from .indexer import DocumentIndexEntry

DEFAULT_TEMPLATE = 'index'
TEMPLATE_EXTENSION = '.html'
OUTPUT_EXTENSION = '.html'
FRONTMATTER_DELIMITER = '---'


@dataclass
class RenderResult:
    """Outcome of rendering one document."""

    entry: DocumentIndexEntry
    output_path: Optional[str] = None
    error: Optional[RenderError] = None
    title: Optional[str] = None
    date: Optional[datetime] = None

    @property
    def ok(self):
        return self.error is None


def output_path_for(output_dir, logical_id):
    """Return the artifact path for a logical id."""
    return os.path.join(output_dir, *logical_id.split('/')) + OUTPUT_EXTENSION


def logical_id_for(output_dir, output_path):
    """Reverse of output_path_for. Returns None for files that are not artifacts."""
    if not output_path.endswith(OUTPUT_EXTENSION):
        return None
    rel_path = os.path.relpath(output_path, output_dir)
    if rel_path.startswith(os.pardir):
        return None
    return rel_path[:-len(OUTPUT_EXTENSION)].replace(os.sep, '/')


def split_frontmatter(text, source_path='<string>'):
    """
    Split a leading YAML block off a document.

    The block starts on the first line with '---' and ends at the next line
    holding only '---'. Documents without a leading block have empty
    frontmatter and keep their whole text as the body.

    Returns:
        (frontmatter dict, markdown body)
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_DELIMITER:
        return {}, text

    for i in range(1, len(lines)):
        if lines[i].rstrip() == FRONTMATTER_DELIMITER:
            block = ''.join(lines[1:i])
            body = ''.join(lines[i + 1:])
            break
    else:
        raise FrontmatterError(source_path, "Frontmatter block is not closed with '---'")

    try:
        metadata = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise FrontmatterError(source_path, f"Invalid YAML front matter: {e}")

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise FrontmatterError(source_path, "Front matter must be a key/value mapping")

    template = metadata.get('template')
    if template is not None and not isinstance(template, str):
        raise FrontmatterError(source_path, f"'template' must be a string, got {template!r}")

    return metadata, body


def create_markdown_parser():
    """Create a Mistune parser with raw HTML passthrough and the extended syntax plugins."""
    return mistune.create_markdown(
        renderer=mistune.HTMLRenderer(escape=False),
        plugins=['table', 'strikethrough', 'footnotes', 'task_lists']
    )


def parse_date(date_str):
    """Parse a frontmatter date. Returns None when the value is not a date."""
    if isinstance(date_str, datetime):
        return date_str
    elif isinstance(date_str, date):
        return datetime(date_str.year, date_str.month, date_str.day)
    elif isinstance(date_str, str):
        for fmt in ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d', '%b %d, %Y']:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
    return None


class DocumentRenderer:
    def __init__(self, env, config, content_dir, output_dir, index):
        self.env = env
        self.config = config
        self.content_dir = content_dir
        self.output_dir = output_dir
        self.index = index
        self.logical_ids = [entry.logical_id for entry in index]
        self.markdown_parser = create_markdown_parser()
        self.logger = logging.getLogger('Wing.renderer')

    def render_document(self, entry):
        """Render one document, returning a RenderResult instead of raising for document faults."""
        try:
            return self.render(entry)
        except RenderError as e:
            return RenderResult(entry=entry, error=e)

    def render(self, entry):
        """
        Render one document to its output path.

        Raises:
            RenderError: a subclass naming the failed stage
        """
        source_file = os.path.join(self.content_dir, *entry.source_path.split('/'))
        text, stat = self._read(entry, source_file)
        metadata, body = split_frontmatter(text, entry.source_path)
        html_content = self.markdown_filter(entry, body)

        output_path = output_path_for(self.output_dir, entry.logical_id)
        try:
            os.makedirs(os.path.dirname(output_path), exist_ok=True)
        except OSError as e:
            raise WriteError(entry.source_path, f"Cannot create directory for {output_path}: {e}")

        context = self.build_context(entry, metadata, html_content, stat)
        rendered_html = self.render_template(entry, metadata.get('template') or DEFAULT_TEMPLATE, context)
        self._write(entry, output_path, rendered_html)
        self.logger.debug(f"Generated HTML: {output_path}")

        return RenderResult(
            entry=entry,
            output_path=output_path,
            title=context['title'],
            date=parse_date(metadata.get('date')) or context['modified_at'],
        )

    def markdown_filter(self, entry, text):
        """Convert markdown text to HTML."""
        try:
            return self.markdown_parser(text)
        except Exception as e:
            raise MarkupError(entry.source_path, str(e))

    def _read(self, entry, source_file):
        try:
            with open(source_file, 'rb') as f:
                raw = f.read()
            stat = os.stat(source_file)
        except (IOError, OSError) as e:
            raise ReadError(entry.source_path, f"Failed to read markdown file: {e}")
        try:
            text = raw.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise ReadError(entry.source_path, f"File is not valid UTF-8: {e}")
        return text, stat

    def build_context(self, entry, metadata, html_content, stat) -> Dict[str, Any]:
        relative_path = self.calculate_relative_path(entry.logical_id)
        title = metadata.get('title')
        if not isinstance(title, str):
            title = entry.logical_id.rsplit('/', 1)[-1]

        return {
            'content': html_content,
            'index': list(self.logical_ids),
            'current': entry.logical_id,
            'frontmatter': metadata,
            'title': title,
            'created_at': datetime.fromtimestamp(getattr(stat, 'st_birthtime', stat.st_ctime)),
            'modified_at': datetime.fromtimestamp(stat.st_mtime),
            'relative_path': relative_path,
            'link': lambda logical_id: f"{relative_path}{logical_id}{OUTPUT_EXTENSION}",
            'config': self.config,
        }

    def calculate_relative_path(self, logical_id):
        """Prefix that leads from a page back to the site root."""
        if self.config.link_type == 'absolute':
            return '/'
        return '../' * logical_id.count('/')

    def render_template(self, entry, template_name, context):
        try:
            template = self.env.get_template(template_name + TEMPLATE_EXTENSION)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            raise TemplateError(entry.source_path, f"Template '{template_name}' unavailable: {e}")
        try:
            return template.render(**context)
        except Exception as e:
            raise TemplateError(entry.source_path, f"Template '{template_name}' failed: {e}", stage='template-render')

    def _write(self, entry, output_path, rendered_html):
        """Write through a temporary file so readers never see a partial page."""
        output_dir = os.path.dirname(output_path)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=output_dir, prefix='.wing-', suffix='.tmp')
            with os.fdopen(fd, 'wb') as f:
                f.write(rendered_html.encode('utf-8'))
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, output_path)
        except (IOError, OSError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise WriteError(entry.source_path, f"Failed to write HTML file {output_path}: {e}")
