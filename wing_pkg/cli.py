#!/usr/bin/env python3
"""
Command-line interface for Wing - static site generator.
"""

import os
import sys
import time
import argparse
import logging
import webbrowser

from . import __version__
from .core import Wing, setup_logging
from .errors import WingError
from .serve import serve_output
from .settings import WingSettings
from .watch import watch

DEFAULT_PORT = 8000
LOGS_DIR = 'logs'

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">

    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{{ title }}</title>
        <link rel="stylesheet" type="text/css" href="{{ relative_path }}static/index.css" />
    </head>

    <body>
        <nav>
            <ul>
            {% for page in index %}
                <li><a href="{{ link(page) }}"{% if page == current %} class="current"{% endif %}>{{ page }}</a></li>
            {% endfor %}
            </ul>
        </nav>
        {{ content }}
    </body>

</html>
"""


def generate_new(name: str) -> None:
    """Scaffold a new skeleton Wing site in ./<name>/."""
    project_dir = os.path.join(os.getcwd(), name)
    if os.path.exists(project_dir):
        raise FileExistsError(f"Directory already exists: {name}")
    os.makedirs(project_dir)

    for directory in ['site', 'content', 'templates', 'static']:
        os.makedirs(os.path.join(project_dir, directory))
        print(f"Created directory: {name}/{directory}")

    files = {
        os.path.join('content', 'index.md'): '',
        os.path.join('templates', 'index.html'): DEFAULT_TEMPLATE,
        os.path.join('static', 'index.css'): '',
    }
    for rel_path, content in files.items():
        with open(os.path.join(project_dir, rel_path), 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created file: {name}/{rel_path}")

    WingSettings.write_default(os.path.join(project_dir, '.wing'))
    print(f"Created configuration: {name}/.wing")


def run_server(wing: Wing, watch_path: str, port: int, silent: bool) -> int:
    """Build once, then rebuild on change and serve the output until interrupted."""
    try:
        wing.build(force=True)
    except WingError:
        wing.logger.error("Initial build failed, serving whatever output exists")

    observer = watch(wing, watch_path, ignore=[os.path.join(wing.project_dir, LOGS_DIR)])
    try:
        httpd = serve_output(wing.output_dir, port)
    except OSError as e:
        wing.logger.error(f"Could not start server on port {port}: {e}")
        observer.stop()
        observer.join()
        return 1

    if not silent:
        webbrowser.open(f"http://localhost:{port}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
        httpd.shutdown()
        httpd.server_close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='wing', description='Wing - Static Site Generator')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    build = subparsers.add_parser('build', help='Builds your wiki/site')
    build.add_argument('-f', '--force', action='store_true',
                       help='Build over the output of a previous build')

    new = subparsers.add_parser('new', help='Creates a new skeleton site')
    new.add_argument('name', help='Directory to create the site in')

    for name, help_text in [('serve', 'Builds, serves the site and rebuilds on any project change'),
                            ('watch', 'Builds, serves the site and rebuilds on content changes')]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('-s', '--silent', action='store_true',
                         help='Do not open the site in a browser')
        sub.add_argument('-p', '--port', type=int, default=DEFAULT_PORT,
                         help=f'Port to serve on (default {DEFAULT_PORT})')

    return parser


def main(argv=None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.command == 'new':
        try:
            generate_new(args.name)
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"\nYour new Wing site is ready! Run 'wing build' inside {args.name}/ to build it.")
        return

    logger = setup_logging()
    try:
        wing = Wing(log_dir=LOGS_DIR)
        if args.command == 'build':
            wing.build(force=args.force)
            return
        if not os.path.isdir(wing.output_dir):
            logger.error("Failed to start watching as site directory doesn't exist.")
            sys.exit(1)
        watch_path = wing.project_dir if args.command == 'serve' else wing.content_dir
        sys.exit(run_server(wing, watch_path, args.port, args.silent))
    except WingError:
        # The coordinator has logged the cause
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
