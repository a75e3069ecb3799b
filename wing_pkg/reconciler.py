"""
Stale output cleanup for Wing.
"""

import os
import logging

from .renderer import logical_id_for, output_path_for


class Reconciler:
    """Delete pages left behind by documents that were removed or renamed."""

    def __init__(self, output_dir, static_dir=None, static_output='static'):
        self.output_dir = output_dir
        self.static_dir = static_dir
        self.static_output = static_output
        self.logger = logging.getLogger('Wing.reconciler')

    def reconcile(self, index):
        """
        Remove every .html file whose logical id is not in the index.

        Cleanup is best effort: a file that cannot be removed is logged and
        skipped.

        Args:
            index: The document index used for this build

        Returns:
            List of removed file paths
        """
        if not os.path.isdir(self.output_dir):
            return []

        current = {entry.logical_id for entry in index}
        root = os.path.realpath(self.output_dir)
        removed = []

        # os.walk does not descend into symlinked directories
        for dirpath, _dirs, files in os.walk(self.output_dir):
            for file in files:
                path = os.path.join(dirpath, file)
                logical_id = logical_id_for(self.output_dir, path)
                if logical_id is None or logical_id in current:
                    continue
                if self._copied_static(logical_id):
                    continue
                if not self._inside_root(root, path):
                    self.logger.warning(f"Not removing {path}: it resolves outside {self.output_dir}")
                    continue
                try:
                    os.remove(path)
                    removed.append(path)
                    self.logger.debug(f"Removed stale page: {path}")
                except OSError as e:
                    self.logger.error(f"Failed to remove stale page {path}: {e}")

        self._prune_empty_dirs(removed)
        return removed

    def _copied_static(self, logical_id):
        """True for a page copied from the static directory rather than rendered."""
        if not self.static_dir or not logical_id.startswith(self.static_output + '/'):
            return False
        rel_path = logical_id[len(self.static_output) + 1:]
        return os.path.isfile(output_path_for(self.static_dir, rel_path))

    def _inside_root(self, root, path):
        # A symlinked file is removed as a link; only its parent must be inside the root
        parent = os.path.realpath(os.path.dirname(path))
        return parent == root or parent.startswith(root + os.sep)

    def _prune_empty_dirs(self, removed):
        """Remove directories emptied by the cleanup, never the output root itself."""
        root = os.path.abspath(self.output_dir)
        candidates = sorted({os.path.abspath(os.path.dirname(p)) for p in removed}, key=len, reverse=True)
        for directory in candidates:
            while directory != root and directory.startswith(root + os.sep):
                try:
                    os.rmdir(directory)
                except OSError:
                    break
                self.logger.debug(f"Removed empty directory: {directory}")
                directory = os.path.dirname(directory)
