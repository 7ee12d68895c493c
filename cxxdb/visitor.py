"""Declaration driver.

:class:`DeclarationVisitor` interprets the depth-first cursor stream of a
translation unit. For every ``(cursor, parent)`` pair it updates the
:class:`~cxxdb.registry.SymbolRegistry` and answers with a
:class:`~cxxdb.libclang_backend.ChildVisit` directive telling the walk
whether to descend.

Dispatch order for each event:

1. A pending class template parameter takes the next type reference as
   its default value.
2. A pending function template takes template parameters, their
   defaults, and namespace references belonging to those defaults.
3. Namespaces, typedefs, enums, enum constants and classes register
   themselves.
4. Children of a known class become template parameters, bases, access
   changes, methods, constructors or fields.
5. Free functions and function templates outside any known class become
   :class:`~cxxdb.ir.Function` records.
6. Anything else is ignored and its children skipped.

Only one template context of each kind is pending at a time: a member
template inside a class template whose own parameters are still awaiting
defaults is not told apart.
"""

from __future__ import (
    annotations,
)

import logging
import os
from dataclasses import (
    dataclass,
)
from typing import (
    Any,
    Optional,
)

import clang.cindex
from clang.cindex import (
    AccessSpecifier,
    CursorKind,
    TypeKind,
)

from cxxdb.ir import (
    Class,
    Enum,
    Field,
    Function,
    Invokable,
    Method,
    ResolvedKind,
    ResolvedType,
    TemplateParameter,
    split_scope,
)
from cxxdb.libclang_backend import (
    ChildVisit,
    cursor_file,
    enum_constant_value,
    templated_kind,
    walk,
)
from cxxdb.registry import (
    ClassContext,
    SymbolRegistry,
)
from cxxdb.resolver import (
    find_parent_type,
    load,
    merge_qualifiers,
    resolve_parameter,
    solve_type,
)

logger = logging.getLogger(__name__)

_CLASS_KINDS = (CursorKind.STRUCT_DECL, CursorKind.CLASS_DECL, CursorKind.CLASS_TEMPLATE)
_TYPEDEF_KINDS = (CursorKind.TYPEDEF_DECL, CursorKind.TYPE_ALIAS_DECL)
_METHOD_KINDS = (CursorKind.CXX_METHOD, CursorKind.FUNCTION_TEMPLATE, CursorKind.CONSTRUCTOR)
_FUNCTION_KINDS = (CursorKind.FUNCTION_DECL, CursorKind.FUNCTION_TEMPLATE)

_VISIBILITY = {
    AccessSpecifier.PROTECTED: "protected",
    AccessSpecifier.PRIVATE: "private",
}


def _visibility(access: AccessSpecifier) -> str:
    return _VISIBILITY.get(access, "public")


def _is_unnamed(name: str) -> bool:
    # libclang spells unnamed records "(anonymous struct at file:line:col)"
    return not name or name.startswith("(")


def _remove_template_parameters(source: str) -> str:
    bracket = source.find("<")
    return source[:bracket] if bracket != -1 else source


def _strip_declaration_keyword(source: str) -> str:
    for keyword in ("class ", "struct "):
        if source.startswith(keyword):
            source = source[len(keyword) :]
            break
    return source.strip()


@dataclass
class _ClassTemplateContext:
    klass: ClassContext


@dataclass
class _FunctionTemplateContext:
    invokable: Invokable
    scope: list[str]
    parameter_cursor: Any = None


class DeclarationVisitor:
    """Builds a symbol database from libclang cursor events.

    :param registry: Registry to fill; a new one is created if omitted.
        Reusing the same registry across translation units is what merges
        declarations across files.
    :param directories: Root directories. Only cursors declared in files
        below one of them are processed; with none, every file is.

    Example
    -------
    ::

        visitor = DeclarationVisitor(directories=["include"])
        visitor.visit_translation_unit(backend.parse("include/widget.hpp", args))
        for klass in visitor.registry.classes:
            print(klass.full_name)
    """

    def __init__(
        self,
        registry: Optional[SymbolRegistry] = None,
        directories: tuple[str, ...] | list[str] = (),
    ) -> None:
        self.registry = registry if registry is not None else SymbolRegistry()
        self.directories: list[str] = []
        for directory in directories:
            self.add_directory(directory)
        self._class_template: Optional[_ClassTemplateContext] = None
        self._function_template: Optional[_FunctionTemplateContext] = None

    # -- Directories ----------------------------------------------------------

    def add_directory(self, path: str) -> None:
        self.directories.append(os.path.realpath(path))

    def _root_of(self, path: str) -> Optional[str]:
        for directory in self.directories:
            if path == directory or path.startswith(directory.rstrip(os.sep) + os.sep):
                return directory
        return None

    def is_included(self, path: str) -> bool:
        if not self.directories:
            return True
        return self._root_of(path) is not None

    def relative_path(self, path: str) -> str:
        """Path of a declaring file relative to the root directory holding it."""
        root = self._root_of(path) if path else None
        if root is None:
            return path
        return os.path.relpath(path, root)

    # -- Traversal ------------------------------------------------------------

    def visit_translation_unit(self, tu: "clang.cindex.TranslationUnit") -> bool:
        """Walk a whole translation unit. Returns False if the walk was interrupted."""
        self._class_template = None
        self._function_template = None
        return walk(tu.cursor, self.visit)

    def visit(self, cursor: "clang.cindex.Cursor", parent: "clang.cindex.Cursor") -> ChildVisit:
        """Handle one cursor event and decide whether to descend into it."""
        if not self.is_included(cursor_file(cursor)):
            return ChildVisit.CONTINUE

        kind = cursor.kind

        if self._class_template is not None:
            if kind == CursorKind.TYPE_REF:
                self._visit_class_template_default(cursor)
            self._class_template = None

        if self._function_template is not None:
            directive = self._try_function_template_parameter(cursor, parent)
            if directive is not None:
                return directive

        if kind == CursorKind.NAMESPACE:
            return self._visit_namespace(cursor, parent)
        if kind in _TYPEDEF_KINDS:
            return self._visit_typedef(cursor, parent)
        if kind == CursorKind.ENUM_DECL:
            return self._visit_enum(cursor, parent)
        if kind == CursorKind.ENUM_CONSTANT_DECL:
            return self._visit_enum_constant(cursor, parent)
        if kind in _CLASS_KINDS:
            return self._visit_class(cursor, parent)
        if kind == CursorKind.LINKAGE_SPEC:
            return ChildVisit.RECURSE

        current_class = self.registry.find_class_for(parent)
        if current_class is not None:
            return self._visit_member(current_class, cursor)
        if kind in _FUNCTION_KINDS:
            return self._visit_function(cursor, parent)

        logger.debug("Unhandled decl: %s -> %s", kind.name, cursor.spelling)
        return ChildVisit.CONTINUE

    # -- Template contexts ----------------------------------------------------

    def _default_for(self, parameter: TemplateParameter, cursor: Any, scope: list[str]) -> None:
        value = solve_type(cursor.type, self.registry.types, scope)
        if value != "::" + parameter.name:
            parameter.default_value = value

    def _visit_class_template_default(self, cursor: Any) -> None:
        klass = self._class_template.klass.klass
        if klass.template_parameters:
            self._default_for(klass.template_parameters[-1], cursor, split_scope(klass.full_name))

    def _try_function_template_parameter(self, cursor: Any, parent: Any) -> Optional[ChildVisit]:
        context = self._function_template
        kind = cursor.kind

        if kind == CursorKind.TEMPLATE_TYPE_PARAMETER:
            context.invokable.template_parameters.append(TemplateParameter(cursor.spelling))
            context.parameter_cursor = cursor
            return ChildVisit.RECURSE
        if kind == CursorKind.TYPE_REF:
            parameters = context.invokable.template_parameters
            if parameters and context.parameter_cursor is not None and parent == context.parameter_cursor:
                if parameters[-1].default_value is None:
                    self._default_for(parameters[-1], cursor, context.scope)
                return ChildVisit.CONTINUE
            self._function_template = None
            return ChildVisit.CONTINUE
        if kind == CursorKind.NAMESPACE_REF:
            # Leading part of a qualified default value (std::string)
            return ChildVisit.CONTINUE

        self._function_template = None
        return None

    # -- Scopes ---------------------------------------------------------------

    def _visit_namespace(self, cursor: Any, parent: Any) -> ChildVisit:
        name = cursor.spelling
        if _is_unnamed(name):
            return ChildVisit.CONTINUE
        base_name = self.registry.fullname_for(parent) or ""
        self.registry.register_namespace(name, f"{base_name}::{name}", cursor)
        return ChildVisit.RECURSE

    def _visit_class(self, cursor: Any, parent: Any) -> ChildVisit:
        name = cursor.spelling
        if _is_unnamed(name):
            return ChildVisit.CONTINUE

        declared_kind = templated_kind(cursor) if cursor.kind == CursorKind.CLASS_TEMPLATE else cursor.kind
        is_struct = declared_kind == CursorKind.STRUCT_DECL
        path = cursor_file(cursor)
        klass = Class(
            name=name,
            full_name="",
            kind="struct" if is_struct else "class",
            from_file=path,
            include_path=self.relative_path(path),
        )

        if parent.kind == CursorKind.TRANSLATION_UNIT:
            klass.full_name = f"::{name}"
        else:
            parent_class = self.registry.find_class_for(parent)
            if parent_class is not None:
                if parent_class.current_access != AccessSpecifier.PUBLIC:
                    return ChildVisit.CONTINUE
                klass.full_name = f"{parent_class.klass.full_name}::{name}"
            else:
                context_name = self.registry.fullname_for(parent)
                if context_name is None:
                    logger.warning("(!) Couldn't find context for class %s", name)
                    return ChildVisit.CONTINUE
                klass.full_name = f"{context_name}::{name}"

        access = AccessSpecifier.PUBLIC if is_struct else AccessSpecifier.PRIVATE
        context, recurse = self.registry.register_class(klass, cursor, access)
        if context.klass is klass:
            self._function_template = None
        return ChildVisit.RECURSE if recurse else ChildVisit.CONTINUE

    def _visit_enum(self, cursor: Any, parent: Any) -> ChildVisit:
        name = cursor.spelling
        if _is_unnamed(name):
            return ChildVisit.CONTINUE
        context_name = self.registry.fullname_for(parent) or ""
        enum = Enum(name=name, full_name=f"{context_name}::{name}", from_file=cursor_file(cursor))
        self.registry.register_enum(enum, cursor)
        return ChildVisit.RECURSE

    def _visit_enum_constant(self, cursor: Any, parent: Any) -> ChildVisit:
        self.registry.add_enum_constant(parent, cursor.spelling, enum_constant_value(cursor))
        return ChildVisit.CONTINUE

    def _visit_typedef(self, cursor: Any, parent: Any) -> ChildVisit:
        name = cursor.spelling
        context_name = self.registry.fullname_for(parent)
        if context_name is None:
            logger.info("(i) Could not solve typedef %s", name)
            return ChildVisit.CONTINUE

        scope = split_scope(context_name)
        underlying = load(cursor.underlying_typedef_type)
        alias = ResolvedType(
            raw_name=name,
            resolved_name=name,
            scope_path=scope,
            kind=ResolvedKind.TYPEDEF,
            template_arguments=underlying.template_arguments,
        )

        if underlying.kind is ResolvedKind.PRIMITIVE:
            alias.full_name = underlying.full_name
        else:
            target = find_parent_type(underlying, self.registry.types, scope)
            if target is not None:
                alias.full_name = target.full_name
                alias.template_arguments = alias.template_arguments or target.template_arguments
                alias = merge_qualifiers(alias, target)
            else:
                alias.full_name = underlying.full_name or underlying.label
                alias.best_effort = True
                logger.info("(i) typedef %s::%s: %s is not a known type", context_name, name, underlying.raw_name)

        self.registry.register_type(merge_qualifiers(alias, underlying))
        return ChildVisit.CONTINUE

    # -- Members --------------------------------------------------------------

    def _visit_member(self, context: ClassContext, cursor: Any) -> ChildVisit:
        kind = cursor.kind

        if kind == CursorKind.TEMPLATE_TYPE_PARAMETER:
            context.klass.template_parameters.append(TemplateParameter(cursor.spelling))
            self._class_template = _ClassTemplateContext(context)
        elif kind == CursorKind.CXX_BASE_SPECIFIER:
            self._visit_base_class(context, cursor.spelling)
        elif kind == CursorKind.CXX_ACCESS_SPEC_DECL:
            context.current_access = cursor.access_specifier
        elif kind in _METHOD_KINDS:
            return self._visit_method(context, cursor)
        elif kind == CursorKind.FIELD_DECL:
            return self._visit_field(context, cursor, is_static=False)
        elif kind == CursorKind.VAR_DECL:
            return self._visit_field(context, cursor, is_static=True)
        elif kind == CursorKind.FRIEND_DECL:
            # Befriended functions and classes are not members of this class
            return ChildVisit.CONTINUE
        else:
            logger.debug("Unhandled member: %s -> %s", kind.name, cursor.spelling)
        return ChildVisit.RECURSE

    def _visit_base_class(self, context: ClassContext, cursor_text: str) -> None:
        klass = context.klass
        symbol_name = _strip_declaration_keyword(_remove_template_parameters(cursor_text))
        base_class = self.registry.find_like(symbol_name, klass.cpp_context())

        if base_class is not None:
            klass.bases.append(base_class.klass.full_name)
            klass.known_bases.append(base_class.klass.full_name)
        else:
            klass.bases.append(symbol_name)
            logger.info("(i) %s base class %s cannot be solved", klass.full_name, symbol_name)

    def _visit_field(self, context: ClassContext, cursor: Any, is_static: bool) -> ChildVisit:
        klass = context.klass
        field = resolve_parameter(
            cursor.type,
            self.registry.types,
            cursor.spelling,
            split_scope(klass.full_name),
            factory=Field,
        )
        if field not in klass.fields:
            field.is_static = is_static
            field.visibility = _visibility(context.current_access)
            klass.fields.append(field)
        return ChildVisit.CONTINUE

    def _visit_method(self, context: ClassContext, cursor: Any) -> ChildVisit:
        klass = context.klass
        scope = split_scope(klass.full_name)
        method = Method(
            name=cursor.spelling,
            is_static=cursor.is_static_method(),
            is_virtual=cursor.is_virtual_method(),
            is_pure_virtual=cursor.is_pure_virtual_method(),
            is_const=cursor.is_const_method(),
            visibility=_visibility(context.current_access),
        )
        self._fill_invokable(method, cursor, scope)

        if cursor.kind == CursorKind.CONSTRUCTOR:
            klass.constructors.append(method)
        else:
            klass.methods.append(method)
        self._function_template = _FunctionTemplateContext(method, scope)
        return ChildVisit.RECURSE

    # -- Functions ------------------------------------------------------------

    def _visit_function(self, cursor: Any, parent: Any) -> ChildVisit:
        context_name = self.registry.fullname_for(parent) or ""
        scope = split_scope(context_name)
        path = cursor_file(cursor)
        function = Function(
            name=cursor.spelling,
            full_name=f"{context_name}::{cursor.spelling}",
            from_file=path,
            include_path=self.relative_path(path),
        )
        self._fill_invokable(function, cursor, scope)

        if not self.registry.register_function(function):
            return ChildVisit.CONTINUE
        if cursor.kind == CursorKind.FUNCTION_TEMPLATE:
            self._function_template = _FunctionTemplateContext(function, scope)
            return ChildVisit.RECURSE
        return ChildVisit.CONTINUE

    def _fill_invokable(self, invokable: Invokable, cursor: Any, scope: list[str]) -> None:
        """Read variadic flag, result type and parameters off a function-like cursor.

        Arguments without a usable cursor of their own (as libclang reports
        for function templates) are built from the bare argument type.
        """
        function_type = cursor.type
        if function_type.kind != TypeKind.FUNCTIONPROTO:
            return
        types = self.registry.types

        invokable.is_variadic = function_type.is_function_variadic()
        result_type = function_type.get_result()
        if result_type.kind not in (TypeKind.INVALID, TypeKind.VOID):
            invokable.return_type = resolve_parameter(result_type, types, "", scope)

        arguments = list(cursor.get_arguments())
        for index, argument_type in enumerate(function_type.argument_types()):
            argument = arguments[index] if index < len(arguments) else None
            if argument is not None and argument.type.kind != TypeKind.INVALID:
                invokable.params.append(resolve_parameter(argument.type, types, argument.spelling, scope))
            else:
                invokable.params.append(resolve_parameter(argument_type, types, "", scope))
