"""Tests for type resolution."""

import pytest
from clang.cindex import (
    CursorKind,
    TypeKind,
)
from clang_fakes import (
    FakeType,
    builtin,
    cursor,
    lvalue_ref,
    pointer,
    record,
    translation_unit,
    unexposed,
)

from cxxdb.ir import (
    ResolvedKind,
    ResolvedType,
)
from cxxdb.resolver import (
    find_parent_type,
    load_spelling,
    load_type,
    merge_qualifiers,
    resolve,
    resolve_parameter,
    solve_type,
)


def _struct(scope, name):
    return ResolvedType(name, name, list(scope), "".join("::" + part for part in list(scope) + [name]),
                        kind=ResolvedKind.STRUCT)


class TestLoadSpelling:
    def test_scoped_pointer(self):
        t = load_spelling("const N::S **")
        assert t.is_const
        assert t.pointer_depth == 2
        assert t.reference_depth == 0
        assert t.resolved_name == "S"
        assert t.scope_path == ["N"]
        assert t.kind is ResolvedKind.UNRESOLVED

    def test_primitive_reference(self):
        t = load_spelling("int &")
        assert t.kind is ResolvedKind.PRIMITIVE
        assert t.full_name == "int"
        assert t.reference_depth == 1

    def test_rvalue_reference(self):
        assert load_spelling("S&&").reference_depth == 1

    def test_trailing_const(self):
        t = load_spelling("char * const")
        assert t.is_const
        assert t.pointer_depth == 1
        assert t.full_name == "char"

    def test_name_ending_in_const_is_not_a_qualifier(self):
        t = load_spelling("Myconst*")
        assert not t.is_const
        assert t.resolved_name == "Myconst"
        assert t.pointer_depth == 1

    def test_elaborated_keyword_is_dropped(self):
        t = load_spelling("struct geo::Point")
        assert t.resolved_name == "Point"
        assert t.scope_path == ["geo"]

    def test_template_arguments(self):
        t = load_spelling("std::vector<int>")
        assert t.resolved_name == "vector"
        assert t.scope_path == ["std"]
        assert t.template_arguments == "<int>"


class TestLoadType:
    def test_primitive(self):
        t = load_type(builtin(TypeKind.DOUBLE))
        assert t.kind is ResolvedKind.PRIMITIVE
        assert t.full_name == "double"

    def test_const_on_any_layer(self):
        t = load_type(pointer(builtin(TypeKind.CHAR_S, const=True)))
        assert t.is_const
        assert t.pointer_depth == 1
        assert t.to_string() == "const char*"

    def test_record_scope_from_declaration(self):
        point = cursor(CursorKind.STRUCT_DECL, "Point")
        translation_unit([cursor(CursorKind.NAMESPACE, "geo", [point])])
        t = load_type(lvalue_ref(record(point, const=True)))
        assert t.resolved_name == "Point"
        assert t.scope_path == ["geo"]
        assert t.is_const
        assert t.reference_depth == 1

    def test_elaborated_is_unwrapped(self):
        point = cursor(CursorKind.STRUCT_DECL, "Point")
        translation_unit([point])
        t = load_type(FakeType(TypeKind.ELABORATED, spelling="struct Point", named=record(point)))
        assert t.resolved_name == "Point"
        assert t.scope_path == []

    def test_spelling_used_without_declaration(self):
        t = load_type(unexposed("std::string"))
        assert t.resolved_name == "string"
        assert t.scope_path == ["std"]

    def test_array_keeps_written_spelling(self):
        t = load_type(FakeType(TypeKind.CONSTANTARRAY, spelling="char[32]"))
        assert t.to_full_name() == "char[32]"
        assert t.best_effort

    def test_function_pointer_is_not_rooted(self):
        t = load_type(pointer(FakeType(TypeKind.FUNCTIONPROTO, spelling="void (int)")))
        assert t.pointer_depth == 1
        assert t.to_string() == "void (int)*"
        assert solve_type(FakeType(TypeKind.FUNCTIONPROTO, spelling="void (int)"), []) == "void (int)"


class TestFindParentType:
    def test_exact_scope_first(self):
        known = [_struct(["N"], "S"), _struct([], "S")]
        candidate = load_spelling("N::S")
        assert find_parent_type(candidate, known).full_name == "::N::S"

    def test_using_scope_walks_outward(self):
        known = [_struct(["A"], "Base")]
        found = find_parent_type(load_spelling("Base"), known, ["A", "B", "C"])
        assert found.full_name == "::A::Base"

    def test_unrelated_scope_is_not_searched(self):
        known = [_struct(["A", "D"], "Base")]
        assert find_parent_type(load_spelling("Base"), known, ["A", "B", "C"]) is None

    def test_partially_qualified_name(self):
        known = [_struct(["N", "Outer"], "Inner")]
        found = find_parent_type(load_spelling("Outer::Inner"), known, ["N"])
        assert found.full_name == "::N::Outer::Inner"


class TestResolve:
    def test_primitive_passes_through(self):
        t = resolve(builtin(TypeKind.INT, const=True), [])
        assert t.kind is ResolvedKind.PRIMITIVE
        assert t.to_string() == "const int"

    def test_known_struct(self):
        t = resolve("const N::S*", [_struct(["N"], "S")])
        assert t.kind is ResolvedKind.STRUCT
        assert t.to_string() == "const ::N::S*"

    def test_unresolved_is_not_an_error(self):
        t = resolve("hw::Gadget&", [])
        assert t.kind is ResolvedKind.UNRESOLVED
        assert t.to_string() == "::hw::Gadget&"

    @pytest.mark.parametrize(
        "alias_pointers,alias_refs,use_site,pointers,refs",
        [
            (0, 0, "SP", 0, 0),
            (1, 0, "SP", 1, 0),
            (1, 0, "SP*", 2, 0),
            (1, 0, "SP&", 1, 1),
            (2, 1, "SP*&", 3, 2),
        ],
    )
    def test_alias_qualifiers_accumulate(self, alias_pointers, alias_refs, use_site, pointers, refs):
        alias = ResolvedType(
            "SP", "SP", [], "::S", pointer_depth=alias_pointers, reference_depth=alias_refs, kind=ResolvedKind.TYPEDEF
        )
        t = resolve(use_site, [_struct([], "S"), alias])
        assert t.full_name == "::S"
        assert t.kind is ResolvedKind.TYPEDEF
        assert t.pointer_depth == pointers
        assert t.reference_depth == refs

    def test_alias_const_is_ored(self):
        alias = ResolvedType("CS", "CS", [], "::S", is_const=True, kind=ResolvedKind.TYPEDEF)
        assert resolve("CS*", [alias]).is_const

    def test_best_effort_is_carried(self):
        alias = ResolvedType("Name", "Name", [], "::std::string", kind=ResolvedKind.TYPEDEF, best_effort=True)
        t = resolve("Name", [alias])
        assert t.best_effort
        assert t.to_full_name() == "::std::string"

    def test_solve_type(self):
        assert solve_type("N::S", [_struct(["N"], "S")]) == "::N::S"
        assert solve_type("T", []) == "::T"


class TestMergeQualifiers:
    def test_sums_depths_and_ors_const(self):
        base = ResolvedType("S", "S", pointer_depth=1)
        merged = merge_qualifiers(base, ResolvedType(pointer_depth=1, reference_depth=1), ResolvedType(is_const=True))
        assert merged.pointer_depth == 2
        assert merged.reference_depth == 1
        assert merged.is_const
        assert base.pointer_depth == 1


class TestResolveParameter:
    def test_builds_named_parameter(self):
        param = resolve_parameter(pointer(builtin(TypeKind.INT)), [], "count")
        assert param.name == "count"
        assert param.to_string() == "int*"

    def test_invalid_type_raises(self):
        with pytest.raises(ValueError):
            resolve_parameter(FakeType(TypeKind.INVALID), [], "broken")
