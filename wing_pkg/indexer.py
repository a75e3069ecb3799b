"""
Content discovery for Wing.

Walks the content root and builds the site-wide document index.
"""

import os
import logging
from dataclasses import dataclass

from .errors import IndexingError

MARKUP_EXTENSION = '.md'


@dataclass(frozen=True)
class DocumentIndexEntry:
    """One source document: its content-relative path and its logical id."""

    source_path: str
    logical_id: str


def logical_id_from_source(source_path):
    """Strip the markup extension from a content-relative path."""
    return source_path[:-len(MARKUP_EXTENSION)]


class ContentIndexer:
    def __init__(self, content_dir):
        self.content_dir = content_dir
        self.logger = logging.getLogger('Wing.indexer')

    def build_index(self):
        """
        Collect every markdown document under the content root.

        Directories and files are visited in sorted order so that the index,
        and with it every page's navigation list, is stable between builds.
        Hidden files and directories are skipped.
        """
        if not os.path.exists(self.content_dir):
            raise IndexingError(f"Content directory '{self.content_dir}' does not exist")
        if not os.path.isdir(self.content_dir):
            raise IndexingError(f"Content directory '{self.content_dir}' is not a directory")

        entries = []
        for root, dirs, files in os.walk(self.content_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith('.'))
            for file in sorted(files):
                if file.startswith('.') or not file.endswith(MARKUP_EXTENSION):
                    continue
                rel_path = os.path.relpath(os.path.join(root, file), self.content_dir)
                source_path = rel_path.replace(os.sep, '/')
                entries.append(DocumentIndexEntry(source_path, logical_id_from_source(source_path)))

        self.logger.debug(f"Indexed {len(entries)} documents in {self.content_dir}")
        return entries
