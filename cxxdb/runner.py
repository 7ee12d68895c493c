"""Header discovery and the per-file parse-and-visit loop."""

from __future__ import (
    annotations,
)

import logging
import os
import re
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Optional,
)

from cxxdb.libclang_backend import (
    LibclangBackend,
    ParseError,
)
from cxxdb.registry import (
    SymbolRegistry,
)
from cxxdb.visitor import (
    DeclarationVisitor,
)

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"\.(h|hpp|hxx)$")


def collect_files(path: str) -> list[str]:
    """Header files below ``path``, sorted, or ``path`` itself if it is a header."""
    if os.path.isfile(path):
        return [path] if HEADER_PATTERN.search(path) else []

    files: list[str] = []
    for root, dirs, names in os.walk(path):
        dirs.sort()
        files.extend(os.path.join(root, name) for name in names if HEADER_PATTERN.search(name))
    return sorted(files)


@dataclass
class ScanResult:
    """Outcome of a run.

    :param registry: The symbol database. Holds everything registered
        before a failure too.
    :param files: Files that were parsed and visited successfully.
    :param succeeded: False if a file failed to parse.
    :param failed_file: The file that stopped the run, if any.
    """

    registry: SymbolRegistry
    files: list[str] = field(default_factory=list)
    succeeded: bool = True
    failed_file: Optional[str] = None


def run_parser(
    visitor: DeclarationVisitor,
    files: list[str],
    args: Optional[list[str]] = None,
    backend: Optional[LibclangBackend] = None,
    use_default_includes: bool = False,
) -> ScanResult:
    """Parse and visit ``files`` in order, stopping at the first parse failure.

    :param visitor: Driver; its registry accumulates across files.
    :param files: Header paths.
    :param args: Compiler arguments for every file.
    :param backend: Parser to use; a new :class:`LibclangBackend` if omitted.
    :param use_default_includes: Add the system compiler's include directories.
    """
    backend = backend if backend is not None else LibclangBackend()
    result = ScanResult(visitor.registry)

    for path in files:
        logger.info("Importing %s", path)
        try:
            tu = backend.parse(path, args, use_default_includes=use_default_includes)
        except ParseError as error:
            logger.error("Failed to parse file %s", path)
            for message in error.diagnostics:
                logger.error("  %s", message)
            result.succeeded = False
            result.failed_file = path
            break
        visitor.visit_translation_unit(tu)
        result.files.append(path)
        counts = visitor.registry.summary()
        logger.info("Found %s", ", ".join(f"{count} {name}" for name, count in counts.items()))

    return result


def probe_and_run_parser(
    visitor: DeclarationVisitor,
    args: Optional[list[str]] = None,
    backend: Optional[LibclangBackend] = None,
    use_default_includes: bool = False,
) -> ScanResult:
    """Collect the headers under every directory of ``visitor`` and run them."""
    files: list[str] = []
    for directory in visitor.directories:
        files.extend(collect_files(directory))
    return run_parser(visitor, files, args, backend, use_default_includes)
