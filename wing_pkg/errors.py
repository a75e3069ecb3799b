"""
Error types raised by the Wing build pipeline.

Fatal errors stop a build. Render errors are scoped to a single document: the
coordinator logs them and carries on with the rest of the site.
"""


class WingError(Exception):
    """Base class for every error raised by Wing."""


class ConfigError(WingError):
    """The configuration file is missing a usable value. Defaults are used instead."""


class IndexingError(WingError):
    """The content root cannot be indexed."""


class TemplateSetError(WingError):
    """The templates directory is missing or one of its templates does not parse."""


class PreexistingOutputError(WingError):
    """Output from a previous build exists and overwriting was not requested."""


class ScriptError(WingError):
    """A pre or post build script failed."""

    def __init__(self, command, returncode=None, message=None):
        self.command = command
        self.returncode = returncode
        if message is None:
            message = f"Script '{command}' exited with status {returncode}"
        super().__init__(message)


class RenderError(WingError):
    """A single document failed to render."""

    stage = 'render'

    def __init__(self, source_path, message):
        self.source_path = source_path
        super().__init__(f"{source_path} [{self.stage}]: {message}")


class ReadError(RenderError):
    stage = 'read'


class FrontmatterError(RenderError):
    stage = 'frontmatter-parse'


class MarkupError(RenderError):
    stage = 'markup-convert'


class TemplateError(RenderError):
    """Template lookup or template rendering failed."""

    stage = 'template-lookup'

    def __init__(self, source_path, message, stage=None):
        if stage is not None:
            self.stage = stage
        super().__init__(source_path, message)


class WriteError(RenderError):
    stage = 'write'
