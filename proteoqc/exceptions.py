"""Module containing custom exceptions.

Structural errors abort a report run. Per-metric problems are never raised out of
the orchestrator: they end up as `skipped` or `failed` unit states instead.
"""


class ProteoQCError(Exception):
    """Custom proteoqc error class."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""
    _user_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, msg: str = "", detail_msg: str = ""):
        self._user_msg = msg
        if detail_msg:
            self._detail_msg = detail_msg

        super().__init__(self._msg)

    def __str__(self):
        out = f"{self._error_code}: {self._msg}"
        if self._user_msg:
            out += f"\n'{self._user_msg}'"
        if self._detail_msg:
            out += f"\n{self._detail_msg}"
        return out


class StructuralError(ProteoQCError):
    """Invalid or missing input that would silently corrupt every downstream metric."""

    _error_code = "STRUCTURAL_ERROR"
    _msg = "The input is structurally invalid, the report cannot be created."


class InputNotFoundError(StructuralError):
    """Raise when the input folder/file does not exist or holds no readable table."""

    _error_code = "INPUT_NOT_FOUND"
    _msg = "Input not found."


class MissingColumnError(StructuralError):
    """Raise when a required column cannot be resolved in a table."""

    _error_code = "MISSING_COLUMN"
    _msg = "A required column is missing."


class LocaleError(StructuralError):
    """Raise when a numeric column cannot be parsed at all (non-english decimal separator)."""

    _error_code = "WRONG_LOCALE"
    _msg = (
        "Numeric data looks weird. The search engine was probably run under a non-english "
        "locale (the decimal separator must be '.'). Fix the locale and redo the computation."
    )


class UnsupportedOutputFormatError(StructuralError):
    """Raise when a requested report format is not supported."""

    _error_code = "UNSUPPORTED_OUTPUT_FORMAT"
    _msg = "Output format(s) not supported."


class NameCollisionError(StructuralError):
    """Raise when short names cannot be made unique (e.g. a broken mapping file)."""

    _error_code = "NAME_COLLISION"
    _msg = "Short names are not unique."


class ConfigError(StructuralError):
    """Raise when a configuration value has the wrong type or an unknown choice."""

    _error_code = "CONFIG_ERROR"
    _msg = "Invalid configuration."


class ExportError(ProteoQCError):
    """Raise when the interchange (mzQC) document cannot be assembled."""

    _error_code = "EXPORT_ERROR"
    _msg = "Not enough metrics produced output to write the mzQC file."
