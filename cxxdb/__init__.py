import logging
import os
import sys
from importlib.metadata import (
    version as get_version,
)
from typing import (
    IO,
)

import click

from .libclang_backend import (
    LibclangBackend,
    is_system_libclang_available,
)
from .runner import (
    ScanResult,
    collect_files,
    run_parser,
)
from .visitor import (
    DeclarationVisitor,
)
from .writer import (
    write_json,
)

__version__ = get_version("cxxdb")

DEFAULT_STD = "c++17"


def scan(
    paths: list[str],
    extra_args: list[str] | None = None,
    use_default_includes: bool = True,
    backend: LibclangBackend | None = None,
) -> ScanResult:
    """Build a symbol database from C++ headers.

    Args:
        paths: Header files or directories. Directories are searched
            recursively for ``.h``, ``.hpp`` and ``.hxx`` files and become
            root directories: declarations from headers outside every root
            (system headers) are skipped, and include paths are computed
            relative to them. A single file's own directory is its root.
        extra_args: Compiler arguments (``-I``, ``-D``, ``-std=``). ``-x c++``
            is always passed.
        use_default_includes: If True (default), add the system compiler's
            include directories.
        backend: Parser to use; a new :class:`LibclangBackend` if omitted.

    Returns:
        The scan result; ``result.registry`` holds the database.
    """
    visitor = DeclarationVisitor()
    files: list[str] = []
    for path in paths:
        visitor.add_directory(path if os.path.isdir(path) else os.path.dirname(os.path.abspath(path)))
        files.extend(collect_files(path))

    args = ["-x", "c++"] + list(extra_args or [])
    return run_parser(visitor, files, args, backend, use_default_includes)


CONTEXT_SETTINGS: dict[str, list[str]] = dict(help_option_names=["-h", "--help"])

LIBCLANG_REQUIRED_ERROR = """Error: libclang is required but not available.
Install LLVM/Clang (e.g., apt install libclang-dev, brew install llvm)
"""


def _configure_logging(quiet: bool, debug: bool) -> None:
    """Send the package's log records to stderr with a ``[cxxdb]`` prefix."""
    logger = logging.getLogger(__name__)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[cxxdb] %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    if debug:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.INFO)


def _print_summary(result: ScanResult, outfile: IO[str]) -> None:
    for key, count in result.registry.summary().items():
        click.echo(f"{key}: {count}", file=outfile)


@click.command(
    context_settings=CONTEXT_SETTINGS,
    help="""Build a symbol database from C++ headers.

\b
PATHS are header files or directories searched for .h/.hpp/.hxx files.
""",
)
# === General options ===
@click.option("--version", "-v", is_flag=True, help="Print version and exit.")
@click.option(
    "--output",
    "-o",
    "outfile",
    type=click.File("w"),
    default="-",
    metavar="<file>",
    help="Write the database to <file> (default: stdout).",
)
@click.option(
    "--summary",
    is_flag=True,
    help="Print symbol counts instead of the JSON database.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Only report warnings and errors.",
)
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Print debug info to stderr.",
)
# === Preprocessing options ===
@click.option(
    "--include-dir",
    "-I",
    multiple=True,
    metavar="<dir>",
    help="Add include search path.",
)
@click.option(
    "--define",
    "-D",
    "defines",
    multiple=True,
    metavar="<macro>",
    help="Define preprocessor macro.",
)
@click.option(
    "--std",
    default=DEFAULT_STD,
    metavar="<std>",
    help=f"Language standard (default: {DEFAULT_STD}).",
)
@click.option(
    "--clang-arg",
    multiple=True,
    metavar="<arg>",
    help="Pass argument to clang.",
)
@click.option(
    "--no-default-includes",
    is_flag=True,
    help="Disable system include auto-detection.",
)
@click.argument(
    "paths",
    nargs=-1,
    type=click.Path(exists=True),
)
def cli(
    version: bool,
    outfile: IO[str],
    summary: bool,
    quiet: bool,
    debug: bool,
    include_dir: tuple[str, ...],
    defines: tuple[str, ...],
    std: str,
    clang_arg: tuple[str, ...],
    no_default_includes: bool,
    paths: tuple[str, ...],
) -> None:
    if version:
        click.echo(__version__)
        return

    if not paths:
        click.echo("Error: Missing argument 'PATHS...'.", err=True)
        raise SystemExit(2)

    if not is_system_libclang_available():
        click.echo(LIBCLANG_REQUIRED_ERROR, err=True)
        raise SystemExit(1)

    _configure_logging(quiet, debug)

    # Build extra_args list from CLI options
    extra_args: list[str] = []
    for define in defines:
        extra_args.append(f"-D{define}")
    for directory in include_dir:
        extra_args.append(f"-I{directory}")
    extra_args.append(f"-std={std}")
    for arg in clang_arg:
        extra_args.append(arg)

    result = scan(
        list(paths),
        extra_args=extra_args,
        use_default_includes=not no_default_includes,
    )

    if summary:
        _print_summary(result, outfile)
    else:
        outfile.write(write_json(result.registry))
        outfile.write("\n")

    if not result.succeeded:
        click.echo(f"Error: failed to parse {result.failed_file}", err=True)
        raise SystemExit(1)
