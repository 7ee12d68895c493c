"""Symbol model for the C++ declaration database.

This module defines the records the driver builds while walking a
translation unit, and that downstream generators read once a run is
complete. Nothing in here talks to libclang: the records hold only
names, flags and already-resolved type strings.

Type Model
----------
* :class:`ResolvedKind` - discriminant of a resolved type
* :class:`ResolvedType` - a type reference after qualifier extraction and
  scope matching (``const ::N::S*&``)
* :class:`Parameter` / :class:`Field` - a typed slot in a signature or class
* :class:`TemplateParameter` - one ``typename`` parameter and its default

Declaration Model
-----------------
* :class:`Namespace` - pure scoping node
* :class:`Class` - struct or class with bases, constructors, methods, fields
* :class:`Method` / :class:`Function` - invokables sharing :class:`Invokable`
* :class:`Enum` - enumeration and its constant values

Fully-qualified names are rooted at the global scope and joined with
``::`` (``::N::S``).

Example
-------
::

    from cxxdb.ir import Class, Method, Parameter

    klass = Class("Widget", "::ui::Widget")
    klass.methods.append(Method(name="resize", params=[Parameter("int")]))
    assert klass.implements(Method(name="resize", params=[Parameter("int")]))
"""

from __future__ import (
    annotations,
)

import enum
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Optional,
)

SCOPE_SEPARATOR = "::"


def split_scope(full_name: str) -> list[str]:
    """Split a ``::``-joined name into its components, dropping empty ones.

    Separators nested inside template argument brackets are kept, so
    ``std::map<std::string, int>`` splits into ``["std", "map<std::string, int>"]``.
    """
    parts: list[str] = []
    depth = 0
    current = ""
    i = 0
    while i < len(full_name):
        char = full_name[i]
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if depth == 0 and full_name.startswith(SCOPE_SEPARATOR, i):
            parts.append(current.strip())
            current = ""
            i += len(SCOPE_SEPARATOR)
            continue
        current += char
        i += 1
    parts.append(current.strip())
    return [part for part in parts if part]


def join_scope(parts: list[str]) -> str:
    """Join scope components into a rooted name (``["N", "S"]`` -> ``::N::S``)."""
    return "".join(SCOPE_SEPARATOR + part for part in parts)


def parent_scope(full_name: str) -> str:
    """Return the enclosing scope of a fully-qualified name (``::`` for global)."""
    parts = split_scope(full_name)
    return join_scope(parts[:-1]) or SCOPE_SEPARATOR


# =============================================================================
# Type Model
# =============================================================================


class ResolvedKind(enum.Enum):
    """What a resolved type turned out to be."""

    PRIMITIVE = "primitive"
    STRUCT = "struct"
    CLASS = "class"
    ENUM = "enum"
    TYPEDEF = "typedef"
    UNRESOLVED = "unresolved"


@dataclass
class ResolvedType:
    """A type reference after qualifier extraction and scope matching.

    Pointer and reference depths are counts rather than flags: resolving
    through an alias adds the alias's own indirection to the one written
    at the use site.

    The type table of a :class:`~cxxdb.registry.SymbolRegistry` is a list of
    these records too: one per class, struct, enum and typedef seen so far.

    :param raw_name: The type spelling as written (``const N::S *``).
    :param resolved_name: Innermost name, stripped of qualifiers and scopes (``S``).
    :param scope_path: Enclosing scope names, outermost first (``["N"]``).
    :param full_name: Canonical fully-qualified name of the matched
        declaration (``::N::S``), or the primitive's name. Empty only for
        :attr:`ResolvedKind.UNRESOLVED`.
    :param is_const: True when ``const`` was seen on any layer.
    :param pointer_depth: Number of pointer levels.
    :param reference_depth: Number of reference levels.
    :param kind: Discriminant.
    :param template_arguments: Template argument text as written (``<int>``).
    :param best_effort: True when ``full_name`` is a guessed label rather
        than the name of a matched declaration.

    Examples
    --------
    ::

        ptr = ResolvedType("N::S *", "S", ["N"], "::N::S", pointer_depth=1,
                           kind=ResolvedKind.STRUCT)
        assert ptr.to_string() == "::N::S*"

        missing = ResolvedType("Gadget", "Gadget", ["hw"])
        assert missing.to_full_name() == "::hw::Gadget"
    """

    raw_name: str = ""
    resolved_name: str = ""
    scope_path: list[str] = field(default_factory=list)
    full_name: str = ""
    is_const: bool = False
    pointer_depth: int = 0
    reference_depth: int = 0
    kind: ResolvedKind = ResolvedKind.UNRESOLVED
    template_arguments: str = ""
    best_effort: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.kind is not ResolvedKind.UNRESOLVED

    @property
    def label(self) -> str:
        """Best-effort joined scope and name, usable when nothing matched."""
        return join_scope(self.scope_path + [self.resolved_name])

    def to_full_name(self) -> str:
        """Canonical name with template arguments, falling back to :attr:`label`."""
        name = self.full_name if self.full_name else self.label
        return name + self.template_arguments

    def to_string(self) -> str:
        result = "const " if self.is_const else ""
        return result + self.to_full_name() + "*" * self.pointer_depth + "&" * self.reference_depth

    def type_match(self, other: ResolvedType) -> bool:
        """Structural comparability: same scope path, name and full name.

        Qualifier depths are left to callers, which know when they matter.
        """
        return (
            self.scope_path == other.scope_path
            and self.resolved_name == other.resolved_name
            and self.full_name == other.full_name
        )

    def __str__(self) -> str:
        return self.to_string()


@dataclass
class TemplateParameter:
    """One template parameter.

    :param name: Parameter name (``T``).
    :param type: Kind tag; only ``"typename"`` parameters are recorded.
    :param default_value: Canonical resolved name of the default, if any.
    """

    name: str
    type: str = "typename"
    default_value: Optional[str] = None

    def __str__(self) -> str:
        if self.default_value:
            return f"{self.type} {self.name} = {self.default_value}"
        return f"{self.type} {self.name}"


@dataclass(eq=False)
class Parameter:
    """A typed slot in a signature: parameter or return type.

    The canonical type name is a plain field; equality compares the
    canonical string form (qualifiers included), never the parameter name.

    :param type_name: Canonical resolved name (``::N::S`` or ``int``).
    :param name: Declared name, empty for unnamed parameters and return types.
    :param is_const: Const qualification.
    :param pointer_depth: Number of pointer levels.
    :param reference_depth: Number of reference levels.
    :param type_alias: Alias name when the type was written through a typedef.

    Examples
    --------
    ::

        a = Parameter("::N::S", "lhs", is_const=True, reference_depth=1)
        b = Parameter("::N::S", "rhs", is_const=True, reference_depth=1)
        assert a == b
        assert a.to_string() == "const ::N::S&"
    """

    type_name: str
    name: str = ""
    is_const: bool = False
    pointer_depth: int = 0
    reference_depth: int = 0
    type_alias: Optional[str] = None

    @classmethod
    def from_resolved(cls, resolved: ResolvedType, name: str = "") -> Parameter:
        alias = resolved.resolved_name if resolved.kind is ResolvedKind.TYPEDEF else None
        return cls(
            type_name=resolved.to_full_name(),
            name=name,
            is_const=resolved.is_const,
            pointer_depth=resolved.pointer_depth,
            reference_depth=resolved.reference_depth,
            type_alias=alias,
        )

    def to_string(self) -> str:
        result = "const " if self.is_const else ""
        return result + self.type_name + "*" * self.pointer_depth + "&" * self.reference_depth

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parameter):
            return NotImplemented
        return self.to_string() == other.to_string()

    def __str__(self) -> str:
        if self.name:
            return f"{self.to_string()} {self.name}"
        return self.to_string()


@dataclass(eq=False)
class Field(Parameter):
    """Class data member. Fields cannot be overloaded, so equality is by name.

    :param is_static: True for static member variables.
    :param visibility: ``"public"``, ``"protected"`` or ``"private"``.
    """

    is_static: bool = False
    visibility: str = "public"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return self.name == other.name


# =============================================================================
# Declarations
# =============================================================================


@dataclass(eq=False)
class Invokable:
    """Shape shared by methods and free functions.

    :param return_type: Return type, or None for ``void`` and constructors.
    :param params: Parameters in declaration order.
    :param template_parameters: Template parameter list.
    :param is_variadic: True if the signature ends with ``...``.
    """

    return_type: Optional[Parameter] = None
    params: list[Parameter] = field(default_factory=list)
    template_parameters: list[TemplateParameter] = field(default_factory=list)
    is_variadic: bool = False

    @property
    def is_template(self) -> bool:
        return len(self.template_parameters) > 0

    def same_signature(self, other: Invokable) -> bool:
        """True if both parameter lists match pairwise, in order."""
        if len(self.params) != len(other.params):
            return False
        return all(mine == theirs for mine, theirs in zip(self.params, other.params))

    def signature(self) -> str:
        params = ", ".join(str(param) for param in self.params)
        if self.is_variadic:
            params = f"{params}, ..." if params else "..."
        return f"({params})"


@dataclass(eq=False)
class Method(Invokable):
    """Member function or constructor.

    Two methods are equal when their names match and their parameters
    match pairwise; a constructor carries no return type.
    """

    name: str = ""
    is_static: bool = False
    is_virtual: bool = False
    is_pure_virtual: bool = False
    is_const: bool = False
    visibility: str = "public"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Method):
            return NotImplemented
        return self.name == other.name and self.same_signature(other)

    def __str__(self) -> str:
        result = f"{self.return_type.to_string()} " if self.return_type else ""
        result += f"{self.name}{self.signature()}"
        if self.is_const:
            result += " const"
        return result


@dataclass(eq=False)
class Function(Invokable):
    """Free function declared at namespace scope.

    :param name: Unqualified name.
    :param full_name: Fully-qualified name (``::io::open``).
    :param from_file: Real path of the declaring file.
    :param include_path: Declaring file relative to its scanned root.
    """

    name: str = ""
    full_name: str = ""
    from_file: str = ""
    include_path: str = ""

    def cpp_context(self) -> str:
        return parent_scope(self.full_name)

    def __str__(self) -> str:
        result = f"{self.return_type.to_string()} " if self.return_type else "void "
        return result + f"{self.full_name}{self.signature()}"


@dataclass
class Namespace:
    """A namespace. Purely a scoping node; reopening it merges nothing."""

    name: str
    full_name: str

    def cpp_context(self) -> str:
        return parent_scope(self.full_name)

    def __str__(self) -> str:
        return f"namespace {self.full_name}"


@dataclass
class Class:
    """Struct or class declaration.

    A class with no bases, constructors or methods is *empty*: that is
    how a forward declaration looks, and only an empty class may have its
    origin overwritten by a later, fuller declaration.

    :param name: Unqualified name.
    :param full_name: Fully-qualified name (``::N::S``).
    :param kind: ``"struct"`` or ``"class"``.
    :param from_file: Real path of the file the definition came from.
    :param include_path: That file relative to its scanned root.
    :param bases: Base classes, resolved full names or raw written text.
    :param known_bases: The subset of ``bases`` matched to known classes.
    :param constructors: Constructors in declaration order.
    :param methods: Methods in declaration order.
    :param fields: Data members, unique by name.
    :param template_parameters: Class template parameters.

    Example
    -------
    ::

        derived = Class("Derived", "::Derived", bases=["::Base"], known_bases=["::Base"])
        assert not derived.is_empty()
    """

    name: str
    full_name: str
    kind: str = "class"
    from_file: str = ""
    include_path: str = ""
    bases: list[str] = field(default_factory=list)
    known_bases: list[str] = field(default_factory=list)
    constructors: list[Method] = field(default_factory=list)
    methods: list[Method] = field(default_factory=list)
    fields: list[Field] = field(default_factory=list)
    template_parameters: list[TemplateParameter] = field(default_factory=list)

    def is_empty(self) -> bool:
        return len(self.constructors) + len(self.methods) + len(self.bases) == 0

    @property
    def is_template(self) -> bool:
        return len(self.template_parameters) > 0

    def implements(self, method: Method) -> bool:
        """True if a method with the same name and parameter list is declared."""
        return any(candidate == method for candidate in self.methods)

    def cpp_context(self) -> str:
        return parent_scope(self.full_name)

    def __str__(self) -> str:
        return f"{self.kind} {self.full_name}"


@dataclass
class Enum:
    """Enumeration.

    :param name: Unqualified name.
    :param full_name: Fully-qualified name.
    :param from_file: Real path of the declaring file.
    :param constants: Constant name to value, in declaration order.
    """

    name: str
    full_name: str
    from_file: str = ""
    constants: dict[str, int] = field(default_factory=dict)

    def cpp_context(self) -> str:
        return parent_scope(self.full_name)

    def __str__(self) -> str:
        return f"enum {self.full_name}"
