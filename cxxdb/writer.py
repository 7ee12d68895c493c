"""Serialize a finished symbol database to plain dicts and JSON.

The output is meant for downstream generators (bindings, documentation):
every name in it is already resolved, so consumers never see cursors.

Example
-------
::

    from cxxdb.writer import write_json

    print(write_json(result.registry))
"""

from __future__ import (
    annotations,
)

import json
from typing import (
    Any,
    Optional,
)

from cxxdb.ir import (
    Class,
    Enum,
    Field,
    Function,
    Invokable,
    Method,
    Parameter,
    ResolvedType,
    TemplateParameter,
)
from cxxdb.registry import (
    SymbolRegistry,
)


def _parameter(param: Optional[Parameter]) -> Optional[dict[str, Any]]:
    if param is None:
        return None
    result: dict[str, Any] = {
        "name": param.name,
        "type": param.type_name,
        "is_const": param.is_const,
        "pointer_depth": param.pointer_depth,
        "reference_depth": param.reference_depth,
        "spelling": param.to_string(),
    }
    if param.type_alias is not None:
        result["type_alias"] = param.type_alias
    return result


def _field(item: Field) -> dict[str, Any]:
    result = _parameter(item)
    result["is_static"] = item.is_static
    result["visibility"] = item.visibility
    return result


def _template_parameter(param: TemplateParameter) -> dict[str, Any]:
    return {"name": param.name, "type": param.type, "default": param.default_value}


def _invokable(invokable: Invokable) -> dict[str, Any]:
    return {
        "return_type": _parameter(invokable.return_type),
        "params": [_parameter(param) for param in invokable.params],
        "template_parameters": [_template_parameter(param) for param in invokable.template_parameters],
        "is_variadic": invokable.is_variadic,
    }


def _method(method: Method) -> dict[str, Any]:
    result = {
        "name": method.name,
        "is_static": method.is_static,
        "is_virtual": method.is_virtual,
        "is_pure_virtual": method.is_pure_virtual,
        "is_const": method.is_const,
        "visibility": method.visibility,
    }
    result.update(_invokable(method))
    return result


def _class(klass: Class) -> dict[str, Any]:
    return {
        "name": klass.name,
        "full_name": klass.full_name,
        "kind": klass.kind,
        "from_file": klass.from_file,
        "include_path": klass.include_path,
        "bases": list(klass.bases),
        "known_bases": list(klass.known_bases),
        "template_parameters": [_template_parameter(param) for param in klass.template_parameters],
        "constructors": [_method(ctor) for ctor in klass.constructors],
        "methods": [_method(method) for method in klass.methods],
        "fields": [_field(item) for item in klass.fields],
    }


def _enum(enum: Enum) -> dict[str, Any]:
    return {
        "name": enum.name,
        "full_name": enum.full_name,
        "from_file": enum.from_file,
        "constants": dict(enum.constants),
    }


def _function(function: Function) -> dict[str, Any]:
    result = {
        "name": function.name,
        "full_name": function.full_name,
        "from_file": function.from_file,
        "include_path": function.include_path,
    }
    result.update(_invokable(function))
    return result


def _type(resolved: ResolvedType) -> dict[str, Any]:
    return {
        "name": resolved.resolved_name,
        "scope": list(resolved.scope_path),
        "full_name": resolved.to_full_name(),
        "kind": resolved.kind.value,
        "is_const": resolved.is_const,
        "pointer_depth": resolved.pointer_depth,
        "reference_depth": resolved.reference_depth,
        "best_effort": resolved.best_effort,
    }


def to_dict(registry: SymbolRegistry) -> dict[str, Any]:
    """Render the whole database as JSON-compatible dicts, in registration order."""
    return {
        "namespaces": [namespace.full_name for namespace in registry.namespaces],
        "classes": [_class(klass) for klass in registry.classes],
        "enums": [_enum(enum) for enum in registry.enums],
        "functions": [_function(function) for function in registry.functions],
        "types": [_type(resolved) for resolved in registry.types],
    }


def write_json(registry: SymbolRegistry, indent: Optional[int] = 2) -> str:
    return json.dumps(to_dict(registry), indent=indent)
