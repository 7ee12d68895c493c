"""Symbol registry.

Owns every record produced during a run, keyed by fully-qualified name,
together with the cursors each record was seen through. Cursors are
opaque: the registry only ever compares them with ``==``, which the
libclang bindings implement as ``clang_equalCursors``. Two forward
declarations can be structurally identical, so "seen this declaration
before" is always answered by cursor equality, never by comparing
records.
"""

from __future__ import (
    annotations,
)

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Optional,
    Union,
)

from clang.cindex import (
    AccessSpecifier,
    CursorKind,
)

from cxxdb.ir import (
    Class,
    Enum,
    Function,
    Namespace,
    ResolvedKind,
    ResolvedType,
    split_scope,
)

logger = logging.getLogger(__name__)


def _has_cursor(cursors: list[Any], cursor: Any) -> bool:
    return any(cursor == candidate for candidate in cursors)


@dataclass
class ClassContext:
    """A class record plus the traversal state that belongs to it."""

    klass: Class
    current_access: AccessSpecifier = AccessSpecifier.PUBLIC
    cursors: list[Any] = field(default_factory=list)

    def matches(self, cursor: Any) -> bool:
        return _has_cursor(self.cursors, cursor)


@dataclass
class NamespaceContext:
    ns: Namespace
    cursors: list[Any] = field(default_factory=list)

    def matches(self, cursor: Any) -> bool:
        return _has_cursor(self.cursors, cursor)


@dataclass
class EnumContext:
    en: Enum
    cursor: Any = None

    def matches(self, cursor: Any) -> bool:
        return cursor == self.cursor


Context = Union[ClassContext, NamespaceContext, EnumContext]
Record = Union[Class, Namespace, Enum, Function]


def _are_types_identical(a: ResolvedType, b: ResolvedType) -> bool:
    return (
        a.scope_path == b.scope_path
        and a.raw_name == b.raw_name
        and a.resolved_name == b.resolved_name
        and a.full_name == b.full_name
    )


class SymbolRegistry:
    """Cross-file symbol database for one traversal session.

    Example
    -------
    ::

        registry = SymbolRegistry()
        registry.register_namespace("ui", "::ui", cursor)
        context, recurse = registry.register_class(Class("Widget", "::ui::Widget"), cursor)
        assert registry.has_class("::ui::Widget")
    """

    def __init__(self) -> None:
        self.types: list[ResolvedType] = []
        self._namespaces: dict[str, NamespaceContext] = {}
        self._classes: dict[str, ClassContext] = {}
        self._enums: dict[str, EnumContext] = {}
        self._functions: list[Function] = []

    # -- Accessors ------------------------------------------------------------

    @property
    def namespaces(self) -> list[Namespace]:
        return [context.ns for context in self._namespaces.values()]

    @property
    def classes(self) -> list[Class]:
        return [context.klass for context in self._classes.values()]

    @property
    def enums(self) -> list[Enum]:
        return [context.en for context in self._enums.values()]

    @property
    def functions(self) -> list[Function]:
        return list(self._functions)

    def has_class(self, full_name: str) -> bool:
        return full_name in self._classes

    def summary(self) -> dict[str, int]:
        """Counts reported while a run is in progress."""
        return {
            "types": len(self.types),
            "classes": len(self._classes),
            "enums": len(self._enums),
            "functions": len(self._functions),
        }

    # -- Registration ---------------------------------------------------------

    def register_namespace(self, name: str, full_name: str, cursor: Any) -> NamespaceContext:
        """Register a namespace, or remember another cursor for a reopened one."""
        existing = self._namespaces.get(full_name)
        if existing is not None:
            existing.cursors.append(cursor)
            return existing
        context = NamespaceContext(Namespace(name, full_name), [cursor])
        self._namespaces[full_name] = context
        return context

    def register_class(
        self,
        klass: Class,
        cursor: Any,
        access: AccessSpecifier = AccessSpecifier.PUBLIC,
    ) -> tuple[ClassContext, bool]:
        """Register a class declaration.

        A new full name creates the record and its type-table entry. A
        known full name whose record is still empty (a forward declaration
        so far) takes the new origin and asks for its members. A known,
        populated record only remembers the cursor.

        :returns: The class context and whether its members should be visited.
        """
        existing = self._classes.get(klass.full_name)
        if existing is not None:
            was_empty = existing.klass.is_empty()
            if was_empty:
                existing.klass.from_file = klass.from_file
                existing.klass.include_path = klass.include_path
                existing.current_access = access
            else:
                logger.debug("Skipping duplicate declaration of %s", klass.full_name)
            existing.cursors.append(cursor)
            return existing, was_empty

        context = ClassContext(klass, access, [cursor])
        self._classes[klass.full_name] = context
        self.types.append(
            ResolvedType(
                raw_name=klass.name,
                resolved_name=klass.name,
                scope_path=split_scope(klass.cpp_context()),
                full_name=klass.full_name,
                kind=ResolvedKind.STRUCT if klass.kind == "struct" else ResolvedKind.CLASS,
            )
        )
        return context, True

    def register_enum(self, enum: Enum, cursor: Any) -> EnumContext:
        """Register an enum. A re-declaration of a known full name is ignored."""
        existing = self._enums.get(enum.full_name)
        if existing is not None:
            return existing
        context = EnumContext(enum, cursor)
        self._enums[enum.full_name] = context
        self.types.append(
            ResolvedType(
                raw_name=enum.name,
                resolved_name=enum.name,
                scope_path=split_scope(enum.cpp_context()),
                full_name=enum.full_name,
                kind=ResolvedKind.ENUM,
            )
        )
        return context

    def add_enum_constant(self, enum_cursor: Any, name: str, value: int) -> bool:
        """Record a constant on the enum declared by ``enum_cursor``.

        Constants arriving through a cursor other than the one that
        registered the enum belong to an ignored re-declaration.
        """
        for context in self._enums.values():
            if context.matches(enum_cursor):
                context.en.constants[name] = value
                return True
        return False

    def register_type(self, resolved: ResolvedType) -> bool:
        """Add an alias to the type table unless an identical one is present."""
        if any(_are_types_identical(resolved, known) for known in self.types):
            return False
        self.types.append(resolved)
        return True

    def register_function(self, function: Function) -> bool:
        """Register a free function.

        Overloads are kept; a declaration repeating the full name and
        parameter list of a known function is the same function seen again.
        """
        for known in self._functions:
            if known.full_name == function.full_name and known.same_signature(function):
                return False
        self._functions.append(function)
        return True

    # -- Lookups --------------------------------------------------------------

    def find_by_full_name(self, full_name: str) -> Optional[Record]:
        if full_name in self._classes:
            return self._classes[full_name].klass
        if full_name in self._namespaces:
            return self._namespaces[full_name].ns
        if full_name in self._enums:
            return self._enums[full_name].en
        for function in self._functions:
            if function.full_name == full_name:
                return function
        return None

    def find_class_by_name(self, full_name: str) -> Optional[ClassContext]:
        return self._classes.get(full_name)

    def find_class_for(self, cursor: Any) -> Optional[ClassContext]:
        for context in self._classes.values():
            if context.matches(cursor):
                return context
        return None

    def find_by_cursor_identity(self, cursor: Any) -> Optional[Context]:
        """The namespace, class or enum a cursor has been seen declaring."""
        for contexts in (self._namespaces, self._classes, self._enums):
            for context in contexts.values():
                if context.matches(cursor):
                    return context
        return None

    def fullname_for(self, cursor: Any) -> Optional[str]:
        """Full name of the scope a cursor opens.

        The translation unit is the global scope (``""``); a linkage
        specification takes the scope around it. Cursors that are not a
        known namespace or class yield None.
        """
        if cursor is None:
            return None
        if cursor.kind == CursorKind.TRANSLATION_UNIT:
            return ""
        if cursor.kind == CursorKind.LINKAGE_SPEC:
            return self.fullname_for(cursor.semantic_parent)
        for namespace in self._namespaces.values():
            if namespace.matches(cursor):
                return namespace.ns.full_name
        klass = self.find_class_for(cursor)
        if klass is not None:
            return klass.klass.full_name
        return None

    def find_like(self, symbol_name: str, enclosing_scope: str) -> Optional[ClassContext]:
        """Find a class the way C++ looks up an unqualified name.

        ``enclosing_scope::symbol_name`` is tried first, then the same with
        the innermost component of ``enclosing_scope`` dropped, until the
        global scope has been tried.
        """
        if symbol_name.startswith("::"):
            return self._classes.get(symbol_name)
        parts = split_scope(enclosing_scope)
        while True:
            candidate = "".join("::" + part for part in parts) + "::" + symbol_name
            match = self._classes.get(candidate)
            if match is not None or not parts:
                return match
            parts.pop()
