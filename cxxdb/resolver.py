"""Type resolution.

Turns a raw type reference, either a libclang ``Type`` or a written
spelling, into a :class:`~cxxdb.ir.ResolvedType`:

1. Pointer, reference and ``const`` layers are peeled off into counts.
2. Builtin kinds map straight to :data:`PRIMITIVE_TYPE_NAMES`.
3. Anything else is looked up in the known-type table by scope path and
   name, first as written, then from the using scope outward.

Lookups fail open: a type nobody registered comes back as
:attr:`~cxxdb.ir.ResolvedKind.UNRESOLVED` carrying a best-effort label,
never as an exception.
"""

from __future__ import (
    annotations,
)

import re
from collections.abc import (
    Sequence,
)
from dataclasses import (
    replace,
)
from typing import (
    Optional,
    Union,
)

import clang.cindex
from clang.cindex import (
    CursorKind,
    TypeKind,
)

from cxxdb.ir import (
    Parameter,
    ResolvedKind,
    ResolvedType,
    split_scope,
)

PRIMITIVE_TYPE_NAMES: dict[TypeKind, str] = {
    TypeKind.VOID: "void",
    TypeKind.BOOL: "bool",
    TypeKind.CHAR_U: "char",
    TypeKind.CHAR_S: "char",
    TypeKind.SCHAR: "signed char",
    TypeKind.UCHAR: "unsigned char",
    TypeKind.WCHAR: "wchar_t",
    TypeKind.CHAR16: "char16_t",
    TypeKind.CHAR32: "char32_t",
    TypeKind.USHORT: "unsigned short",
    TypeKind.UINT: "unsigned int",
    TypeKind.ULONG: "unsigned long",
    TypeKind.ULONGLONG: "unsigned long long",
    TypeKind.SHORT: "short",
    TypeKind.INT: "int",
    TypeKind.LONG: "long",
    TypeKind.LONGLONG: "long long",
    TypeKind.FLOAT: "float",
    TypeKind.DOUBLE: "double",
    TypeKind.LONGDOUBLE: "long double",
}

_PRIMITIVE_SPELLINGS = frozenset(PRIMITIVE_TYPE_NAMES.values())

_REFERENCE_KINDS = (TypeKind.LVALUEREFERENCE, TypeKind.RVALUEREFERENCE)

_DECLARATOR_KINDS = (
    TypeKind.CONSTANTARRAY,
    TypeKind.INCOMPLETEARRAY,
    TypeKind.VARIABLEARRAY,
    TypeKind.DEPENDENTSIZEDARRAY,
    TypeKind.FUNCTIONPROTO,
    TypeKind.FUNCTIONNOPROTO,
)

# Cursor kinds that contribute a component to a declaration's scope path
_SCOPE_KINDS = (
    CursorKind.NAMESPACE,
    CursorKind.STRUCT_DECL,
    CursorKind.CLASS_DECL,
    CursorKind.UNION_DECL,
    CursorKind.CLASS_TEMPLATE,
    CursorKind.CLASS_TEMPLATE_PARTIAL_SPECIALIZATION,
)

_TYPE_KEYWORDS = re.compile(r"\b(const|volatile|struct|class|enum|union|typename)\b")
_TRAILING_DECLARATOR = re.compile(r"(\*|&&|&|\bconst)\s*$")

TypeSource = Union["clang.cindex.Type", str]


def _strip_keywords(spelling: str) -> str:
    """Remove cv-qualifiers and elaborated-type keywords from a spelling."""
    return " ".join(_TYPE_KEYWORDS.sub(" ", spelling).split())


def _split_template_arguments(name: str) -> tuple[str, str]:
    """Split ``Box<int>`` into ``("Box", "<int>")``."""
    bracket = name.find("<")
    if bracket == -1:
        return name, ""
    return name[:bracket].strip(), name[bracket:].replace(" ", "")


def scope_path_of(cursor: "clang.cindex.Cursor") -> list[str]:
    """Names of the namespaces and classes enclosing a declaration, outermost first."""
    scopes: list[str] = []
    parent = cursor.semantic_parent
    while parent is not None and parent.kind != CursorKind.TRANSLATION_UNIT:
        if parent.kind in _SCOPE_KINDS and parent.spelling:
            scopes.append(parent.spelling)
        parent = parent.semantic_parent
    scopes.reverse()
    return scopes


def _declaration_of(clang_type: "clang.cindex.Type") -> Optional["clang.cindex.Cursor"]:
    declaration = clang_type.get_declaration()
    if declaration is None or declaration.kind == CursorKind.NO_DECL_FOUND or not declaration.spelling:
        return None
    return declaration


def load_type(clang_type: "clang.cindex.Type") -> ResolvedType:
    """Peel qualifiers off a libclang type and name what is left.

    Nothing is looked up here; non-primitive results are UNRESOLVED until
    :func:`resolve` matches them.
    """
    raw_name = clang_type.spelling
    is_const = False
    pointer_depth = 0
    reference_depth = 0
    while True:
        is_const = is_const or clang_type.is_const_qualified()
        kind = clang_type.kind
        if kind == TypeKind.POINTER:
            pointer_depth += 1
            clang_type = clang_type.get_pointee()
        elif kind in _REFERENCE_KINDS:
            reference_depth += 1
            clang_type = clang_type.get_pointee()
        elif kind == TypeKind.ELABORATED:
            clang_type = clang_type.get_named_type()
        else:
            break

    if kind in PRIMITIVE_TYPE_NAMES:
        name = PRIMITIVE_TYPE_NAMES[kind]
        return ResolvedType(
            raw_name=raw_name,
            resolved_name=name,
            full_name=name,
            is_const=is_const,
            pointer_depth=pointer_depth,
            reference_depth=reference_depth,
            kind=ResolvedKind.PRIMITIVE,
        )

    if kind in _DECLARATOR_KINDS:
        # Arrays and function types have no name to look up
        spelling = _strip_keywords(clang_type.spelling)
        return ResolvedType(
            raw_name=raw_name,
            resolved_name=spelling,
            full_name=spelling,
            is_const=is_const,
            pointer_depth=pointer_depth,
            reference_depth=reference_depth,
            best_effort=True,
        )

    parts = split_scope(_strip_keywords(clang_type.spelling)) or [""]
    name, template_arguments = _split_template_arguments(parts[-1])
    scope_path = [_split_template_arguments(part)[0] for part in parts[:-1]]

    declaration = _declaration_of(clang_type)
    if declaration is not None:
        name = declaration.spelling
        if declaration.kind == CursorKind.TEMPLATE_TYPE_PARAMETER:
            scope_path = []
        else:
            scope_path = scope_path_of(declaration)

    return ResolvedType(
        raw_name=raw_name,
        resolved_name=name,
        scope_path=scope_path,
        is_const=is_const,
        pointer_depth=pointer_depth,
        reference_depth=reference_depth,
        template_arguments=template_arguments,
    )


def load_spelling(spelling: str) -> ResolvedType:
    """Same as :func:`load_type` for a written spelling (``const N::S **``)."""
    text = spelling.strip()
    pointer_depth = 0
    reference_depth = 0
    while True:
        match = _TRAILING_DECLARATOR.search(text)
        if match is None:
            break
        token = match.group(1)
        if token == "*":
            pointer_depth += 1
        elif token != "const":
            reference_depth += 1
        text = text[: match.start()].rstrip()
    is_const = re.search(r"\bconst\b", spelling) is not None

    base = _strip_keywords(text)
    if base in _PRIMITIVE_SPELLINGS:
        return ResolvedType(
            raw_name=spelling,
            resolved_name=base,
            full_name=base,
            is_const=is_const,
            pointer_depth=pointer_depth,
            reference_depth=reference_depth,
            kind=ResolvedKind.PRIMITIVE,
        )

    parts = split_scope(base) or [""]
    name, template_arguments = _split_template_arguments(parts[-1])
    return ResolvedType(
        raw_name=spelling,
        resolved_name=name,
        scope_path=[_split_template_arguments(part)[0] for part in parts[:-1]],
        is_const=is_const,
        pointer_depth=pointer_depth,
        reference_depth=reference_depth,
        template_arguments=template_arguments,
    )


def load(source: TypeSource) -> ResolvedType:
    if isinstance(source, str):
        return load_spelling(source)
    return load_type(source)


def _candidate_scopes(scope_path: list[str], declaration_scope: Sequence[str]) -> list[list[str]]:
    """Scope paths to try, most specific first.

    The written path comes first; then the written path appended to the
    using scope, dropping one innermost component of the using scope at a
    time.
    """
    candidates = [list(scope_path)]
    using_scope = list(declaration_scope)
    while using_scope:
        candidate = using_scope + list(scope_path)
        if candidate not in candidates:
            candidates.append(candidate)
        using_scope.pop()
    return candidates


def find_parent_type(
    candidate: ResolvedType,
    known_types: Sequence[ResolvedType],
    declaration_scope: Sequence[str] = (),
) -> Optional[ResolvedType]:
    """Find the registered type a candidate refers to.

    :param candidate: A loaded, not yet resolved type.
    :param known_types: The type table.
    :param declaration_scope: Scope path of the context the type was used
        in, for names written relative to it.
    :returns: The matching table entry, or None.
    """
    for scopes in _candidate_scopes(candidate.scope_path, declaration_scope):
        for known in known_types:
            if known.resolved_name == candidate.resolved_name and known.scope_path == scopes:
                return known
    return None


def merge_qualifiers(target: ResolvedType, *layers: ResolvedType) -> ResolvedType:
    """Accumulate the qualifiers of ``layers`` onto ``target``.

    Depths add up and ``const`` is or-ed, so an alias to ``S*`` used as
    ``Alias*`` ends up two pointers deep.
    """
    return replace(
        target,
        is_const=target.is_const or any(layer.is_const for layer in layers),
        pointer_depth=target.pointer_depth + sum(layer.pointer_depth for layer in layers),
        reference_depth=target.reference_depth + sum(layer.reference_depth for layer in layers),
    )


def resolve(
    source: TypeSource,
    known_types: Sequence[ResolvedType],
    declaration_scope: Sequence[str] = (),
) -> ResolvedType:
    """Resolve a libclang type or written spelling against the type table.

    When the match is an alias, the alias's own indirection is added to
    what was written at the use site.
    """
    candidate = load(source)
    if candidate.kind is ResolvedKind.PRIMITIVE:
        return candidate

    parent = find_parent_type(candidate, known_types, declaration_scope)
    if parent is None:
        return candidate

    resolved = replace(
        candidate,
        scope_path=list(parent.scope_path),
        full_name=parent.full_name,
        kind=parent.kind,
        template_arguments=candidate.template_arguments or parent.template_arguments,
        best_effort=parent.best_effort,
    )
    return merge_qualifiers(resolved, parent)


def solve_type(
    source: TypeSource,
    known_types: Sequence[ResolvedType],
    declaration_scope: Sequence[str] = (),
) -> str:
    """Canonical name of a type, or its best-effort label when unresolved."""
    return resolve(source, known_types, declaration_scope).to_full_name()


def resolve_parameter(
    clang_type: "clang.cindex.Type",
    known_types: Sequence[ResolvedType],
    name: str = "",
    declaration_scope: Sequence[str] = (),
    factory: type[Parameter] = Parameter,
) -> Parameter:
    """Build a :class:`~cxxdb.ir.Parameter` from a libclang type.

    :param factory: Parameter class to instantiate, e.g. :class:`~cxxdb.ir.Field`.
    :raises ValueError: If libclang reported an invalid type. The provider
        guarantees a valid type for every declaration it hands out, so this
        is a broken invariant, not bad input.
    """
    if clang_type.kind == TypeKind.INVALID:
        raise ValueError(f"cannot build parameter {name!r} from an invalid type")
    return factory.from_resolved(resolve(clang_type, known_types, declaration_scope), name)
