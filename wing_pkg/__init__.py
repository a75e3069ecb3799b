"""
Wing - A small static site generator.

Wing takes content written in Markdown and uses Jinja2 templates to generate
static HTML pages, rendering documents in parallel and cleaning up pages whose
sources have been removed.
"""

__version__ = "1.0.0"

from .core import Wing, BuildReport, BuildState
from .indexer import ContentIndexer, DocumentIndexEntry
from .renderer import DocumentRenderer, RenderResult
from .reconciler import Reconciler
from .settings import WingConfig, WingSettings

__all__ = [
    'Wing', 'BuildReport', 'BuildState', 'ContentIndexer', 'DocumentIndexEntry',
    'DocumentRenderer', 'RenderResult', 'Reconciler', 'WingConfig', 'WingSettings',
]
