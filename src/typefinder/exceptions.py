"""
typefinder Exception Hierarchy

Structured exceptions for clear error handling across CLI, API, and MCP
consumers.  Each exception type maps to a specific failure mode so that
callers can handle errors precisely without parsing message strings.

Usage::

    from typefinder.exceptions import TypeFinderError, WorkspaceNotFoundError

    try:
        outcome = finder.search("./src", "UserService")
    except WorkspaceNotFoundError:
        print("Point typefinder at an existing directory.")
    except TypeFinderError as exc:
        print(f"typefinder error: {exc}")
"""


class TypeFinderError(Exception):
    """Base exception for all typefinder errors."""


class ConfigError(TypeFinderError, ValueError):
    """Configuration or request is invalid (e.g. empty query, bad limit).

    Inherits from ``ValueError`` so callers validating input with plain
    ``except ValueError`` keep working.
    """


class WorkspaceNotFoundError(TypeFinderError, FileNotFoundError):
    """The workspace root does not exist or is not a directory.

    Inherits from ``FileNotFoundError`` for intuitive exception handling.
    """


class StructuredIndexError(TypeFinderError):
    """A project/solution unit could not be compiled or queried."""


class BinaryFileError(TypeFinderError):
    """A candidate file holds binary content and cannot be scanned as text."""
