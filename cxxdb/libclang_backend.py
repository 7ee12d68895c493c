"""libclang adapter.

This module is the only place that drives libclang itself: it finds the
shared library, parses files into translation units, and walks cursor
trees depth-first on behalf of the declaration driver.

Requirements
------------
* System libclang library must be installed
* Python ``clang.cindex`` bindings (the ``libclang`` distribution, which
  also ships a bundled copy of the library)

Traversal
---------
libclang's own ``clang_visitChildren`` takes a C callback with no room for
a Python closure, so :func:`walk` reproduces the same contract over
``Cursor.get_children()``: the callback receives ``(cursor, parent)`` and
answers with a :class:`ChildVisit` directive.

Example
-------
::

    from cxxdb.libclang_backend import LibclangBackend, walk

    backend = LibclangBackend()
    tu = backend.parse("widget.hpp", ["-x", "c++", "-std=c++17"])
    walk(tu.cursor, lambda cursor, parent: ChildVisit.RECURSE)
"""

import enum
import glob
import logging
import os
import subprocess
import sys
from typing import (
    Callable,
)

import clang.cindex

logger = logging.getLogger(__name__)


class ChildVisit(enum.IntEnum):
    """Traversal directive returned for each visited cursor.

    Values match libclang's ``CXChildVisitResult``.
    """

    BREAK = 0
    CONTINUE = 1
    RECURSE = 2


class ParseError(RuntimeError):
    """A file could not be parsed, or parsing reported an error diagnostic.

    :param path: The file that failed.
    :param diagnostics: Error-severity diagnostic messages.
    """

    def __init__(self, path: str, diagnostics: list[str]) -> None:
        self.path = path
        self.diagnostics = diagnostics
        detail = "; ".join(diagnostics) if diagnostics else "no translation unit produced"
        super().__init__(f"Parse error in {path}: {detail}")


# Library locations by platform, preferred first. Globbed entries are
# tried newest version first.
_LIBCLANG_CANDIDATES: dict[str, list[str]] = {
    "darwin": [
        "/opt/homebrew/opt/llvm/lib/libclang.dylib",
        "/opt/homebrew/Cellar/llvm/*/lib/libclang.dylib",
        "/usr/local/opt/llvm/lib/libclang.dylib",
        "/usr/local/Cellar/llvm/*/lib/libclang.dylib",
        "/Library/Developer/CommandLineTools/usr/lib/libclang.dylib",
        "/Applications/Xcode.app/Contents/Developer/Toolchains/XcodeDefault.xctoolchain/usr/lib/libclang.dylib",
    ],
    "linux": [
        "/usr/lib/llvm-*/lib/libclang.so*",
        "/usr/lib/x86_64-linux-gnu/libclang-*.so*",
        "/usr/lib64/libclang.so",
        "/usr/lib/libclang.so",
        "/usr/local/lib/libclang.so",
    ],
    "win32": [
        r"C:\Program Files\LLVM\bin\libclang.dll",
        r"C:\Program Files (x86)\LLVM\bin\libclang.dll",
    ],
}


def _candidate_library_paths() -> list[str]:
    """Existing libclang files for the current platform, preferred first."""
    found: list[str] = []
    for pattern in _LIBCLANG_CANDIDATES.get(sys.platform, []):
        for path in sorted(glob.glob(pattern), reverse=True):
            if os.path.isfile(path) and path not in found:
                found.append(path)
    return found


def _library_loads() -> bool:
    try:
        clang.cindex.Config().get_cindex_library()
    except clang.cindex.LibclangError:
        return False
    return True


# Set once the search below has run; later calls only re-check loading
_libclang_configured: bool = False


def _configure_libclang() -> bool:
    """Make ``clang.cindex`` find a loadable libclang.

    The bindings' default lookup (bundled library, ``LD_LIBRARY_PATH`` and
    friends) wins; the platform candidates are only consulted when it fails.

    :returns: True if libclang can be loaded.
    """
    global _libclang_configured  # pylint: disable=global-statement

    if _libclang_configured:
        return _library_loads()
    _libclang_configured = True
    if _library_loads():
        return True

    candidates = _candidate_library_paths()
    if not candidates:
        return False
    logger.debug("Using libclang from %s", candidates[0])
    clang.cindex.Config.set_library_file(candidates[0])
    return _library_loads()


def is_system_libclang_available() -> bool:
    """Check if the system libclang library can be loaded.

    :returns: True if system libclang is available and can be used.
    """
    return _configure_libclang()


# Keyed by the ``cplus`` flag; filled on first use
_system_include_cache: dict[bool, list[str]] = {}


def _parse_include_search_list(verbose_output: str) -> list[str]:
    """Directories between the ``#include <...>`` markers of ``clang -v`` output."""
    directories: list[str] = []
    in_includes = False
    for line in verbose_output.splitlines():
        if "#include <...> search starts here:" in line:
            in_includes = True
        elif line.startswith("End of search list"):
            break
        elif in_includes:
            path = line.strip()
            if path and not path.endswith("(framework directory)"):
                directories.append(path)
    return directories


def get_system_include_dirs(cplus: bool = True) -> list[str]:
    """Include directories of the system clang, as ``-isystem`` arguments.

    Runs ``clang -v -E`` on an empty input once per language and caches
    the answer. Detection failures yield an empty list.

    :param cplus: Query the C++ search list rather than the C one.
    """
    if cplus in _system_include_cache:
        return _system_include_cache[cplus]

    directories: list[str] = []
    null_file = "NUL" if sys.platform == "win32" else "/dev/null"
    try:
        result = subprocess.run(
            ["clang", "-v", "-x", "c++" if cplus else "c", "-E", null_file],
            capture_output=True,
            text=True,
            timeout=10,
        )
        directories = _parse_include_search_list(result.stderr)
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        logger.debug("System include detection failed, continuing without it")

    _system_include_cache[cplus] = [f"-isystem{path}" for path in directories]
    return _system_include_cache[cplus]


def walk(cursor: "clang.cindex.Cursor", callback: Callable[..., ChildVisit]) -> bool:
    """Depth-first traversal of ``cursor``'s children.

    ``callback(child, parent)`` is called for each child in order; the
    walk descends into a child only when the callback answers
    :attr:`ChildVisit.RECURSE`, and stops entirely on
    :attr:`ChildVisit.BREAK`.

    :returns: False if the traversal was interrupted by ``BREAK``.
    """
    for child in cursor.get_children():
        directive = callback(child, cursor)
        if directive == ChildVisit.BREAK:
            return False
        if directive == ChildVisit.RECURSE and not walk(child, callback):
            return False
    return True


def cursor_file(cursor: "clang.cindex.Cursor") -> str:
    """Real path of the file a cursor was declared in, or "" if it has none."""
    location = cursor.location
    if location is None or location.file is None:
        return ""
    return os.path.realpath(location.file.name)


def templated_kind(cursor: "clang.cindex.Cursor") -> "clang.cindex.CursorKind":
    """Kind of declaration a ``CLASS_TEMPLATE`` cursor templates (struct or class)."""
    return clang.cindex.CursorKind.from_id(clang.cindex.conf.lib.clang_getTemplateCursorKind(cursor))


def enum_constant_value(cursor: "clang.cindex.Cursor") -> int:
    """Signed value of an enum constant, whatever the enum's underlying type."""
    return clang.cindex.conf.lib.clang_getEnumConstantDeclValue(cursor)


class LibclangBackend:
    """Parses header files into libclang translation units.

    A single ``clang.cindex.Index`` is created lazily and reused for every
    file of a run.

    Example
    -------
    ::

        backend = LibclangBackend()
        tu = backend.parse("include/widget.hpp", ["-x", "c++", "-std=c++17"])
    """

    def __init__(self) -> None:
        self._index: clang.cindex.Index | None = None

    def _get_index(self) -> "clang.cindex.Index":
        if self._index is None:
            _configure_libclang()
            self._index = clang.cindex.Index.create()
        return self._index

    def parse(
        self,
        path: str,
        args: list[str] | None = None,
        code: str | None = None,
        use_default_includes: bool = False,
    ) -> "clang.cindex.TranslationUnit":
        """Parse one file.

        :param path: File to parse. With ``code`` it need not exist on disk.
        :param args: Compiler arguments (``-x c++``, ``-I...``, ``-D...``).
        :param code: In-memory contents to use instead of reading ``path``.
        :param use_default_includes: If True, add the system compiler's
            include directories (see :func:`get_system_include_dirs`).
        :returns: The translation unit.
        :raises ParseError: If no translation unit was produced or any
            diagnostic has error severity.
        """
        parse_args = list(args or [])
        if use_default_includes:
            is_cplus = "c++" in parse_args or any(arg.startswith("-std=c++") for arg in parse_args)
            parse_args.extend(get_system_include_dirs(cplus=is_cplus))

        unsaved_files = [(path, code)] if code is not None else None
        try:
            tu = self._get_index().parse(path, args=parse_args, unsaved_files=unsaved_files)
        except clang.cindex.TranslationUnitLoadError as error:
            raise ParseError(path, [str(error)]) from error

        errors = [
            diag.spelling for diag in tu.diagnostics if diag.severity >= clang.cindex.Diagnostic.Error
        ]
        for diag in tu.diagnostics:
            if diag.severity < clang.cindex.Diagnostic.Error:
                logger.debug("%s: %s", path, diag.spelling)
        if errors:
            raise ParseError(path, errors)
        return tu
