"""
Serve the built site over HTTP.
"""

import logging
import threading
from functools import partial
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler

logger = logging.getLogger('Wing.serve')

ERROR_PAGE = """<!DOCTYPE html>
<html lang="en">
    <head>
        <meta charset="UTF-8">
        <title>%(code)d %(message)s</title>
    </head>
    <body>
        <h1>%(code)d</h1>
        <p>%(explain)s</p>
    </body>
</html>
"""


class SiteRequestHandler(SimpleHTTPRequestHandler):
    error_message_format = ERROR_PAGE
    error_content_type = 'text/html;charset=utf-8'

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def create_server(output_dir, port=8000, host='localhost'):
    """Create an HTTP server rooted at the output directory."""
    handler = partial(SiteRequestHandler, directory=output_dir)
    return ThreadingHTTPServer((host, port), handler)


def serve_output(output_dir, port=8000, host='localhost'):
    """
    Start serving in a daemon thread.

    Returns:
        The running server; call shutdown() and server_close() to stop it
    """
    httpd = create_server(output_dir, port, host)
    threading.Thread(target=httpd.serve_forever, daemon=True).start()
    logger.info(f"Serving {output_dir} at http://{host}:{port}", extra={'marker': 'success'})
    return httpd
