"""Tests for the IR module."""

from cxxdb.ir import (
    Class,
    Enum,
    Field,
    Function,
    Method,
    Namespace,
    Parameter,
    ResolvedKind,
    ResolvedType,
    TemplateParameter,
    join_scope,
    parent_scope,
    split_scope,
)


class TestScopeNames:
    def test_split_rooted_name(self):
        assert split_scope("::N::S") == ["N", "S"]

    def test_split_global_scope(self):
        assert split_scope("::") == []
        assert split_scope("") == []

    def test_split_keeps_template_arguments_together(self):
        assert split_scope("std::map<std::string, int>") == ["std", "map<std::string, int>"]

    def test_join(self):
        assert join_scope(["N", "S"]) == "::N::S"
        assert join_scope([]) == ""

    def test_parent_scope(self):
        assert parent_scope("::N::S") == "::N"
        assert parent_scope("::S") == "::"


class TestResolvedType:
    def test_to_string_with_qualifiers(self):
        t = ResolvedType("const N::S *&", "S", ["N"], "::N::S", True, 1, 1, ResolvedKind.STRUCT)
        assert t.to_string() == "const ::N::S*&"

    def test_unresolved_uses_label(self):
        t = ResolvedType("hw::Gadget", "Gadget", ["hw"])
        assert not t.is_resolved
        assert t.full_name == ""
        assert t.to_full_name() == "::hw::Gadget"

    def test_template_arguments_are_appended(self):
        t = ResolvedType("Box<int>", "Box", [], "::Box", kind=ResolvedKind.CLASS, template_arguments="<int>")
        assert t.to_full_name() == "::Box<int>"

    def test_type_match_ignores_qualifiers(self):
        a = ResolvedType("S", "S", ["N"], "::N::S", kind=ResolvedKind.STRUCT)
        b = ResolvedType("const S*", "S", ["N"], "::N::S", True, 1, 0, ResolvedKind.STRUCT)
        assert a.type_match(b)

    def test_type_match_compares_scope(self):
        a = ResolvedType("S", "S", ["N"], "::N::S")
        b = ResolvedType("S", "S", ["M"], "::M::S")
        assert not a.type_match(b)


class TestParameter:
    def test_equality_ignores_name(self):
        assert Parameter("::N::S", "lhs", reference_depth=1) == Parameter("::N::S", "rhs", reference_depth=1)

    def test_equality_compares_qualifiers(self):
        assert Parameter("int") != Parameter("int", pointer_depth=1)
        assert Parameter("int") != Parameter("int", is_const=True)
        assert Parameter("int", reference_depth=1) != Parameter("int", reference_depth=2)

    def test_from_resolved_keeps_alias_name(self):
        alias = ResolvedType("Handle", "Handle", [], "::Impl", pointer_depth=1, kind=ResolvedKind.TYPEDEF)
        param = Parameter.from_resolved(alias, "h")
        assert param.type_name == "::Impl"
        assert param.type_alias == "Handle"
        assert str(param) == "::Impl* h"

    def test_from_resolved_without_alias(self):
        param = Parameter.from_resolved(ResolvedType("int", "int", [], "int", kind=ResolvedKind.PRIMITIVE))
        assert param.type_alias is None
        assert str(param) == "int"


class TestField:
    def test_equality_by_name_only(self):
        assert Field("int", "x") == Field("double", "x")
        assert Field("int", "x") != Field("int", "y")

    def test_defaults(self):
        field = Field("int", "x")
        assert field.is_static is False
        assert field.visibility == "public"


class TestMethod:
    def test_equal_when_name_and_params_match(self):
        a = Method(name="resize", params=[Parameter("int", "w"), Parameter("int", "h")])
        b = Method(name="resize", params=[Parameter("int", "width"), Parameter("int", "height")])
        assert a == b

    def test_differs_by_parameter_indirection(self):
        a = Method(name="set", params=[Parameter("::S")])
        b = Method(name="set", params=[Parameter("::S", pointer_depth=1)])
        c = Method(name="set", params=[Parameter("::S", reference_depth=1)])
        d = Method(name="set", params=[Parameter("::S", is_const=True)])
        assert a != b
        assert a != c
        assert a != d

    def test_differs_by_name_or_arity(self):
        assert Method(name="a") != Method(name="b")
        assert Method(name="a") != Method(name="a", params=[Parameter("int")])

    def test_str(self):
        method = Method(
            name="area",
            return_type=Parameter("double"),
            params=[Parameter("int", "scale")],
            is_const=True,
        )
        assert str(method) == "double area(int scale) const"

    def test_variadic_signature(self):
        method = Method(name="log", params=[Parameter("char", is_const=True, pointer_depth=1)], is_variadic=True)
        assert method.signature() == "(const char*, ...)"


class TestClass:
    def test_forward_declaration_is_empty(self):
        assert Class("S", "::N::S").is_empty()

    def test_fields_do_not_make_a_class_non_empty(self):
        klass = Class("S", "::N::S", fields=[Field("int", "x")])
        assert klass.is_empty()

    def test_bases_make_a_class_non_empty(self):
        assert not Class("D", "::D", bases=["Unknown"]).is_empty()

    def test_implements(self):
        klass = Class("W", "::W", methods=[Method(name="draw", params=[Parameter("int")])])
        assert klass.implements(Method(name="draw", params=[Parameter("int", "x")]))
        assert not klass.implements(Method(name="draw", params=[Parameter("long")]))
        assert not klass.implements(Method(name="draw"))

    def test_cpp_context(self):
        assert Class("S", "::N::S").cpp_context() == "::N"
        assert Class("S", "::S").cpp_context() == "::"

    def test_is_template(self):
        klass = Class("Box", "::Box", template_parameters=[TemplateParameter("T")])
        assert klass.is_template
        assert not Class("S", "::S").is_template


class TestOtherDeclarations:
    def test_namespace_context(self):
        assert Namespace("inner", "::outer::inner").cpp_context() == "::outer"

    def test_function_context_and_str(self):
        function = Function(name="open", full_name="::io::open", params=[Parameter("char", is_const=True, pointer_depth=1)])
        assert function.cpp_context() == "::io"
        assert str(function) == "void ::io::open(const char*)"

    def test_enum_constants_keep_order(self):
        enum = Enum("Color", "::Color")
        enum.constants["Red"] = 0
        enum.constants["Green"] = 1
        enum.constants["Blue"] = 2
        assert list(enum.constants) == ["Red", "Green", "Blue"]

    def test_template_parameter_str(self):
        assert str(TemplateParameter("T")) == "typename T"
        assert str(TemplateParameter("T", default_value="::D")) == "typename T = ::D"
