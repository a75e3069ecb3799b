import os
import shlex
import shutil
import logging
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import formatdate
from enum import Enum
from xml.sax.saxutils import escape

import csscompressor
import rjsmin
from jinja2 import Environment, FileSystemLoader, TemplateSyntaxError

from .errors import (
    WingError, TemplateSetError, PreexistingOutputError, ScriptError, RenderError,
)
from .indexer import ContentIndexer
from .reconciler import Reconciler
from .renderer import DocumentRenderer, RenderResult, OUTPUT_EXTENSION
from .settings import WingSettings

STATIC_OUTPUT = 'static'
RSS_FILE = 'rss.xml'
SITEMAP_FILE = 'sitemap.xml'
RSS_ITEM_LIMIT = 20


class BuildState(Enum):
    IDLE = 'idle'
    PRE_SCRIPTS = 'pre-scripts'
    INDEXING = 'indexing'
    RENDERING = 'rendering'
    RECONCILING = 'reconciling'
    PUBLISHING = 'publishing'
    POST_SCRIPTS = 'post-scripts'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class BuildReport:
    """Summary handed back to the caller once a build stops."""

    state: BuildState = BuildState.IDLE
    elapsed: float = 0.0
    rendered: int = 0
    failures: list = field(default_factory=list)
    removed: list = field(default_factory=list)
    previous_output: bool = False

    @property
    def ok(self):
        return self.state is BuildState.DONE


class MarkerFormatter(logging.Formatter):
    """Prefix console messages with a severity marker: error, info, success or generating."""

    def format(self, record):
        marker = getattr(record, 'marker', None)
        if marker is None:
            marker = 'error' if record.levelno >= logging.ERROR else 'info'
        return f"[{marker}] {super().format(record)}"


def setup_logging(log_dir=None):
    """Set up logging configuration. Safe to call more than once."""
    logger = logging.getLogger('Wing')
    logger.setLevel(logging.DEBUG)

    if not any(getattr(h, '_wing_console', False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(MarkerFormatter('%(message)s'))
        console_handler._wing_console = True
        logger.addHandler(console_handler)

    if log_dir and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        # File handler for all logs
        os.makedirs(log_dir, exist_ok=True)
        log_filename = datetime.now().strftime('wing_%Y-%m-%d_%H-%M-%S.log')
        file_handler = logging.FileHandler(os.path.join(log_dir, log_filename), encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logger.addHandler(file_handler)

    return logger


def split_script(command):
    """
    Turn a configured script string into an argument list.

    A standalone '--' separates the program from its arguments and is dropped:
    'tailwindcss -- -i in.css -o out.css' runs tailwindcss with four arguments.
    """
    argv = shlex.split(command)
    if '--' in argv:
        cut = argv.index('--')
        argv = argv[:cut] + argv[cut + 1:]
    return argv


class Wing:
    def __init__(self, content_dir='content', templates_dir='templates', output_dir='site', static_dir='static',
                 project_dir=None, config=None, env=None, workers=None, log_dir=None):
        self.project_dir = project_dir or os.getcwd()
        self.content_dir = self._in_project(content_dir)
        self.templates_dir = self._in_project(templates_dir)
        self.output_dir = self._in_project(output_dir)
        self.static_dir = self._in_project(static_dir)
        self.workers = workers or os.cpu_count() or 1
        # The log file is opened by the first build that passes the entry guard
        self.log_dir = self._in_project(log_dir) if log_dir else None
        self.logger = setup_logging()

        self.config = config if config is not None else WingSettings(self.project_dir).load_settings()

        # One template environment per coordinator, shared read-only by every renderer
        self.env = env or Environment(loader=FileSystemLoader(self.templates_dir))
        self.state = BuildState.IDLE

    def _in_project(self, path):
        path = os.path.expanduser(path)
        return path if os.path.isabs(path) else os.path.join(self.project_dir, path)

    def _enter(self, state):
        self.state = state
        self.logger.debug(f"Build state: {state.value}")

    def previous_output_exists(self):
        return os.path.isdir(self.output_dir) and bool(os.listdir(self.output_dir))

    def build(self, force=False):
        """
        Main build process.

        Raises:
            WingError: on a fatal error; the state is FAILED and nothing after
                the failing stage has run
        """
        start_time = time.time()
        report = BuildReport()
        self.state = BuildState.IDLE
        self.logger.info("Starting site build...", extra={'marker': 'generating'})

        try:
            report.previous_output = self.previous_output_exists()
            if report.previous_output and not force:
                raise PreexistingOutputError(
                    f"Output directory '{self.output_dir}' already exists. Use --force to build over it."
                )
            if self.log_dir:
                setup_logging(self.log_dir)
            self.check_templates()

            self._enter(BuildState.PRE_SCRIPTS)
            self.run_scripts(self.config.pre_scripts, 'pre')

            self._enter(BuildState.INDEXING)
            index = ContentIndexer(self.content_dir).build_index()
            if not index:
                self.logger.warning("No markdown files found to process.")

            self._enter(BuildState.RENDERING)
            results = self.render_all(index)
            report.failures = [r for r in results if not r.ok]
            report.rendered = len(results) - len(report.failures)

            self._enter(BuildState.RECONCILING)
            if report.previous_output:
                report.removed = Reconciler(self.output_dir, self.static_dir, STATIC_OUTPUT).reconcile(index)
                if report.removed:
                    self.logger.info(f"Removed {len(report.removed)} stale pages")

            self._enter(BuildState.PUBLISHING)
            self.publish(results)

            self._enter(BuildState.POST_SCRIPTS)
            self.run_scripts(self.config.post_scripts, 'post')
        except WingError as e:
            self.state = report.state = BuildState.FAILED
            report.elapsed = time.time() - start_time
            self.logger.error(f"Build failed: {e}")
            raise

        self._enter(BuildState.DONE)
        report.state = self.state
        report.elapsed = time.time() - start_time
        self.logger.info(f"Site build completed in {report.elapsed:.6f} seconds.", extra={'marker': 'success'})
        self.logger.info(f"Total pages generated: {report.rendered}")
        if report.failures:
            self.logger.error(f"Total pages failed: {len(report.failures)}")
        return report

    def check_templates(self):
        """Fail early when the template set is missing or does not parse."""
        if not os.path.isdir(self.templates_dir):
            raise TemplateSetError(f"Templates directory '{self.templates_dir}' does not exist")
        try:
            names = self.env.list_templates(extensions=['html'])
        except TypeError:
            # Loader cannot enumerate its templates
            return
        for name in names:
            try:
                self.env.get_template(name)
            except TemplateSyntaxError as e:
                raise TemplateSetError(f"Template '{name}' failed to parse: {e}")

    def run_scripts(self, scripts, kind):
        """Run configured scripts one after another; the first failure stops the build."""
        for command in scripts:
            self.logger.info(f"Running {kind}-build script: {command}", extra={'marker': 'generating'})
            try:
                argv = split_script(command)
            except ValueError as e:
                raise ScriptError(command, message=f"Cannot parse script '{command}': {e}")
            if not argv:
                raise ScriptError(command, message=f"Empty {kind}-build script")
            try:
                completed = subprocess.run(argv, cwd=self.project_dir)
            except OSError as e:
                raise ScriptError(command, message=f"Cannot run script '{command}': {e}")
            if completed.returncode != 0:
                raise ScriptError(command, completed.returncode)

    def render_all(self, index):
        """
        Render every indexed document on a bounded thread pool.

        Returns once every worker has finished, in index order.
        """
        if not index:
            return []

        self.logger.info(f"Rendering {len(index)} documents with {self.workers} workers", extra={'marker': 'generating'})
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {}
            for entry in index:
                renderer = DocumentRenderer(self.env, self.config, self.content_dir, self.output_dir, index)
                futures[executor.submit(renderer.render_document, entry)] = entry
            # Join barrier: nothing downstream runs until every render has returned
            wait(futures)

        results = []
        for future, entry in futures.items():
            try:
                result = future.result()
            except Exception as e:
                result = RenderResult(entry=entry, error=RenderError(entry.source_path, f"Unexpected error: {e}"))
            if not result.ok:
                self.logger.error(f"Error processing {entry.source_path}: {result.error}")
            results.append(result)
        return results

    def publish(self, results):
        """Copy static files and write feeds the configuration asks for."""
        self.copy_static_to_output()
        if self.config.optimisation_level != 'none':
            self.minify_assets(in_place=self.config.optimisation_level == 'high')

        pages = [r for r in results if r.ok]
        if self.config.rss or self.config.site_map:
            if not self.config.site_url:
                self.logger.warning("Skipping RSS feed and XML sitemap (no siteUrl).")
                return
            if self.config.rss:
                self.generate_rss_feed(pages)
            if self.config.site_map:
                self.generate_xml_sitemap(pages)

    def copy_static_to_output(self):
        """Copy the static directory into the output tree."""
        if not os.path.isdir(self.static_dir):
            return
        destination = os.path.join(self.output_dir, STATIC_OUTPUT)
        try:
            shutil.copytree(self.static_dir, destination, dirs_exist_ok=True)
            self.logger.debug(f"Copied static files from {self.static_dir}")
        except (shutil.Error, OSError) as e:
            self.logger.error(f"Failed to copy static files from {self.static_dir}: {e}")

    def minify_assets(self, in_place=False):
        """
        Minify CSS and JS files in the copied static directory.

        With in_place the originals are replaced, otherwise a .min copy is
        written next to each file.
        """
        static_output = os.path.join(self.output_dir, STATIC_OUTPUT)
        minifiers = {'.css': csscompressor.compress, '.js': rjsmin.jsmin}

        for root, _dirs, files in os.walk(static_output):
            for file in files:
                name, ext = os.path.splitext(file)
                if ext not in minifiers or name.endswith('.min'):
                    continue
                path = os.path.join(root, file)
                target = path if in_place else os.path.join(root, f"{name}.min{ext}")
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        minified = minifiers[ext](f.read())
                    with open(target, 'w', encoding='utf-8') as f:
                        f.write(minified)
                    self.logger.debug(f"Minified {file}")
                except (IOError, OSError, UnicodeDecodeError) as e:
                    self.logger.error(f"Failed to minify {file}: {e}")

    def page_url(self, logical_id):
        return f"{self.config.site_url}/{logical_id}{OUTPUT_EXTENSION}"

    def generate_rss_feed(self, pages):
        """Generate RSS feed of the most recent pages."""
        site_url = self.config.site_url
        site_name = self.config.site_title or site_url
        recent = sorted(pages, key=lambda r: (r.date or datetime.min, r.entry.logical_id), reverse=True)[:RSS_ITEM_LIMIT]

        rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
<title>{escape(site_name)}</title>
<link>{escape(site_url)}/</link>
<description>Latest pages from {escape(site_name)}</description>
'''
        for page in recent:
            link = escape(self.page_url(page.entry.logical_id))
            pub_date = formatdate(page.date.timestamp()) if page.date else formatdate()
            rss_content += f'''
<item>
<title>{escape(page.title or page.entry.logical_id)}</title>
<link>{link}</link>
<pubDate>{pub_date}</pubDate>
<guid>{link}</guid>
</item>'''

        rss_content += '''
</channel>
</rss>
'''
        if self._write_feed(RSS_FILE, rss_content):
            self.logger.info("Generating RSS feed", extra={'marker': 'generating'})

    def generate_xml_sitemap(self, pages):
        """Generate XML sitemap."""
        sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
        for page in sorted(pages, key=lambda r: r.entry.logical_id):
            sitemap_content += self.format_xml_sitemap_entry(self.page_url(page.entry.logical_id), page.date)
        sitemap_content += '</urlset>\n'

        if self._write_feed(SITEMAP_FILE, sitemap_content):
            self.logger.info("Generating XML sitemap", extra={'marker': 'generating'})

    def format_xml_sitemap_entry(self, url, lastmod):
        """Format a single sitemap entry."""
        entry = f"<url>\n<loc>{escape(url)}</loc>\n"
        if lastmod:
            entry += f"<lastmod>{lastmod.strftime('%Y-%m-%d')}</lastmod>\n"
        return entry + "</url>\n"

    def _write_feed(self, filename, content):
        feed_file = os.path.join(self.output_dir, filename)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            with open(feed_file, 'w', encoding='utf-8') as f:
                f.write(content)
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write {feed_file}: {e}")
            return False
        return True
