"""Avro schema provider.

Parses Avro schema JSON, renders a canonical form for fingerprinting and
decides reader/writer compatibility following the Avro schema resolution
rules:

- primitive types match themselves and the permitted promotions
  (int -> long/float/double, long -> float/double, float -> double,
  string <-> bytes);
- records match by unqualified name or reader alias; every reader field must
  exist in the writer (by name or alias) or declare a default, while writer-only
  fields are ignored;
- enums match by name and the reader must know every writer symbol unless it
  declares an enum default;
- fixed types match by name and size;
- arrays and maps match when their items/values match;
- a writer union is readable when every branch is readable, and a reader union
  reads a writer type when any branch does.

Well-formedness is checked with fastavro, which also validates field
defaults against their types, and the canonical form builds on the Avro
Parsing Canonical Form. Logical types are resolved through their underlying
types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import fastavro
from fastavro.schema import UnknownType, to_parsing_canonical_form

from ..exceptions import InvalidSchemaError
from .base import SchemaProvider

PRIMITIVE_TYPES = frozenset(
    {"null", "boolean", "int", "long", "float", "double", "bytes", "string"}
)
NAMED_TYPES = frozenset({"record", "error", "enum", "fixed"})

# writer type -> reader types that can read it
PROMOTIONS: dict[str, frozenset[str]] = {
    "int": frozenset({"long", "float", "double"}),
    "long": frozenset({"float", "double"}),
    "float": frozenset({"double"}),
    "string": frozenset({"bytes"}),
    "bytes": frozenset({"string"}),
}


def _short_name(fullname: str) -> str:
    return fullname.rsplit(".", 1)[-1]


def _describe(node: dict[str, Any]) -> str:
    return node.get("name") or node["type"]


@dataclass(frozen=True)
class AvroSchema:
    """A parsed Avro schema.

    ``canonical`` is the Parsing Canonical Form computed by fastavro and
    ``root`` the resolution tree: named types are shared nodes, so recursive
    references point back at the node that defines them.
    """

    canonical: str
    root: dict[str, Any]


class AvroSchemaProvider(SchemaProvider):
    """Schema provider for Apache Avro schemas."""

    type = "avro"

    # Parsing

    def parse(self, schema_text: str) -> AvroSchema:
        try:
            data = json.loads(schema_text)
        except (TypeError, ValueError) as e:
            raise InvalidSchemaError(f"Avro schema is not valid JSON: {e}") from e
        try:
            fastavro.parse_schema(data)
            canonical = to_parsing_canonical_form(data)
        except UnknownType as e:
            raise InvalidSchemaError(
                f"Unknown Avro type '{e}'",
                suggestions=["Define named types before referencing them"],
            ) from e
        except Exception as e:
            raise InvalidSchemaError(f"Invalid Avro schema: {e}") from e
        return AvroSchema(canonical, self._parse_node(data, namespace=None, names={}))

    def _parse_node(
        self, node: Any, namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        if isinstance(node, str):
            return self._resolve_name(node, namespace, names)
        if isinstance(node, list):
            return self._parse_union(node, namespace, names)
        if not isinstance(node, dict):
            raise InvalidSchemaError(f"Invalid Avro schema node: {node!r}")

        type_ = node.get("type")
        if type_ is None:
            raise InvalidSchemaError(f"Avro schema object has no 'type': {node!r}")
        if isinstance(type_, (dict, list)):
            return self._parse_node(type_, namespace, names)
        if not isinstance(type_, str):
            raise InvalidSchemaError(f"Invalid Avro type: {type_!r}")

        if type_ in PRIMITIVE_TYPES:
            parsed: dict[str, Any] = {"type": type_}
            if "logicalType" in node:
                parsed["logicalType"] = node["logicalType"]
            return parsed
        if type_ in ("record", "error"):
            return self._parse_record(node, namespace, names)
        if type_ == "enum":
            return self._parse_enum(node, namespace, names)
        if type_ == "fixed":
            return self._parse_fixed(node, namespace, names)
        if type_ == "array":
            if "items" not in node:
                raise InvalidSchemaError("Avro array schema requires 'items'")
            return {"type": "array", "items": self._parse_node(node["items"], namespace, names)}
        if type_ == "map":
            if "values" not in node:
                raise InvalidSchemaError("Avro map schema requires 'values'")
            return {"type": "map", "values": self._parse_node(node["values"], namespace, names)}
        return self._resolve_name(type_, namespace, names)

    def _resolve_name(
        self, name: str, namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        if name in PRIMITIVE_TYPES:
            return {"type": name}
        if "." in name or namespace is None:
            candidates = [name]
        else:
            candidates = [f"{namespace}.{name}", name]
        for candidate in candidates:
            if candidate in names:
                return names[candidate]
        raise InvalidSchemaError(
            f"Unknown Avro type '{name}'",
            suggestions=["Define named types before referencing them"],
        )

    def _parse_union(
        self, branches: list[Any], namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        parsed = [self._parse_node(b, namespace, names) for b in branches]
        seen: set[str] = set()
        for branch in parsed:
            if branch["type"] == "union":
                raise InvalidSchemaError("Avro unions may not immediately contain unions")
            key = _describe(branch)
            if key in seen:
                raise InvalidSchemaError(f"Avro union contains duplicate type '{key}'")
            seen.add(key)
        return {"type": "union", "branches": parsed}

    def _named(
        self, node: dict[str, Any], namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> tuple[dict[str, Any], str | None]:
        name = node.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidSchemaError(f"Avro {node['type']} schema requires a 'name'")
        if "." in name:
            fullname = name
            namespace = name.rsplit(".", 1)[0]
        else:
            namespace = node.get("namespace", namespace) or None
            fullname = f"{namespace}.{name}" if namespace else name
        if fullname in names:
            raise InvalidSchemaError(f"Avro type '{fullname}' is defined more than once")
        aliases = node.get("aliases", [])
        if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
            raise InvalidSchemaError(f"Aliases of '{fullname}' must be a list of strings")
        parsed: dict[str, Any] = {"type": node["type"], "name": fullname}
        if aliases:
            parsed["aliases"] = list(aliases)
        names[fullname] = parsed
        return parsed, namespace

    def _parse_record(
        self, node: dict[str, Any], namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        parsed, record_namespace = self._named(node, namespace, names)
        parsed["type"] = "record"
        fields = node.get("fields")
        if not isinstance(fields, list):
            raise InvalidSchemaError(f"Avro record '{parsed['name']}' requires a 'fields' list")

        parsed_fields: list[dict[str, Any]] = []
        field_names: set[str] = set()
        for field in fields:
            if not isinstance(field, dict) or not isinstance(field.get("name"), str):
                raise InvalidSchemaError(
                    f"Every field of record '{parsed['name']}' needs a string 'name'"
                )
            if "type" not in field:
                raise InvalidSchemaError(
                    f"Field '{field['name']}' of record '{parsed['name']}' has no 'type'"
                )
            if field["name"] in field_names:
                raise InvalidSchemaError(
                    f"Record '{parsed['name']}' has duplicate field '{field['name']}'"
                )
            field_names.add(field["name"])
            parsed_field: dict[str, Any] = {
                "name": field["name"],
                "type": self._parse_node(field["type"], record_namespace, names),
            }
            if "default" in field:
                parsed_field["default"] = field["default"]
            if field.get("aliases"):
                parsed_field["aliases"] = list(field["aliases"])
            parsed_fields.append(parsed_field)
        parsed["fields"] = parsed_fields
        return parsed

    def _parse_enum(
        self, node: dict[str, Any], namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        parsed, _ = self._named(node, namespace, names)
        symbols = node.get("symbols")
        if (
            not isinstance(symbols, list)
            or not all(isinstance(s, str) for s in symbols)
            or len(set(symbols)) != len(symbols)
        ):
            raise InvalidSchemaError(
                f"Avro enum '{parsed['name']}' requires a list of unique string symbols"
            )
        parsed["symbols"] = list(symbols)
        if "default" in node:
            if node["default"] not in symbols:
                raise InvalidSchemaError(
                    f"Default of enum '{parsed['name']}' is not one of its symbols"
                )
            parsed["default"] = node["default"]
        return parsed

    def _parse_fixed(
        self, node: dict[str, Any], namespace: str | None, names: dict[str, dict[str, Any]]
    ) -> dict[str, Any]:
        parsed, _ = self._named(node, namespace, names)
        size = node.get("size")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            raise InvalidSchemaError(
                f"Avro fixed '{parsed['name']}' requires a non-negative integer 'size'"
            )
        parsed["size"] = size
        return parsed

    # Canonical form

    def canonical_form(self, parsed: AvroSchema) -> str:
        """Return the Parsing Canonical Form, followed by the defaults and
        aliases it strips when the schema declares any.

        Defaults and aliases change how readers resolve data, so two schemas
        differing only in them get different fingerprints.
        """
        attributes = self._resolution_attributes(parsed.root, emitted=set())
        if not attributes:
            return parsed.canonical
        return parsed.canonical + "\n" + json.dumps(
            attributes, separators=(",", ":"), sort_keys=True
        )

    def _resolution_attributes(self, node: dict[str, Any], emitted: set[str]) -> list[Any]:
        type_ = node["type"]
        if type_ == "union":
            return [
                a for b in node["branches"] for a in self._resolution_attributes(b, emitted)
            ]
        if type_ == "array":
            return self._resolution_attributes(node["items"], emitted)
        if type_ == "map":
            return self._resolution_attributes(node["values"], emitted)
        if type_ in PRIMITIVE_TYPES or node["name"] in emitted:
            return []
        emitted.add(node["name"])

        found: list[Any] = []
        own = {k: node[k] for k in ("aliases", "default") if k in node}
        if own:
            found.append([node["name"], own])
        for field in node.get("fields", []):
            extra = {k: field[k] for k in ("aliases", "default") if k in field}
            if extra:
                found.append([f"{node['name']}.{field['name']}", extra])
            found.extend(self._resolution_attributes(field["type"], emitted))
        return found

    # Compatibility

    def reader_incompatibilities(self, reader: AvroSchema, writer: AvroSchema) -> list[str]:
        return self._match(reader.root, writer.root, path="", visiting=frozenset())

    def _match(
        self,
        reader: dict[str, Any],
        writer: dict[str, Any],
        path: str,
        visiting: frozenset[tuple[int, int]],
    ) -> list[str]:
        location = path or "<root>"
        reader_type, writer_type = reader["type"], writer["type"]

        if writer_type == "union":
            errors: list[str] = []
            for branch in writer["branches"]:
                errors.extend(self._match(reader, branch, path, visiting))
            return errors

        if reader_type == "union":
            for branch in reader["branches"]:
                if not self._match(branch, writer, path, visiting):
                    return []
            return [
                f"{location}: no branch of the reader union can read "
                f"writer type '{_describe(writer)}'"
            ]

        if reader_type in PRIMITIVE_TYPES:
            if reader_type == writer_type or reader_type in PROMOTIONS.get(
                writer_type, frozenset()
            ):
                return []
            return [
                f"{location}: reader type '{reader_type}' cannot read "
                f"writer type '{_describe(writer)}'"
            ]

        if reader_type != writer_type:
            return [
                f"{location}: reader type '{_describe(reader)}' cannot read "
                f"writer type '{_describe(writer)}'"
            ]

        if reader_type == "array":
            return self._match(reader["items"], writer["items"], f"{path}[]", visiting)
        if reader_type == "map":
            return self._match(reader["values"], writer["values"], f"{path}{{}}", visiting)

        if not self._names_match(reader, writer):
            return [
                f"{location}: reader {reader_type} '{reader['name']}' does not match "
                f"writer {writer_type} '{writer['name']}'"
            ]

        if reader_type == "fixed":
            if reader["size"] != writer["size"]:
                return [
                    f"{location}: fixed '{reader['name']}' size changed from "
                    f"{writer['size']} to {reader['size']}"
                ]
            return []

        if reader_type == "enum":
            missing = [s for s in writer["symbols"] if s not in reader["symbols"]]
            if missing and "default" not in reader:
                return [
                    f"{location}: enum '{reader['name']}' is missing writer "
                    f"symbols {missing} and declares no default"
                ]
            return []

        pair = (id(reader), id(writer))
        if pair in visiting:
            return []
        return self._match_record(reader, writer, path, visiting | {pair})

    def _match_record(
        self,
        reader: dict[str, Any],
        writer: dict[str, Any],
        path: str,
        visiting: frozenset[tuple[int, int]],
    ) -> list[str]:
        writer_fields = {f["name"]: f for f in writer["fields"]}
        errors: list[str] = []
        for field in reader["fields"]:
            field_path = f"{path}.{field['name']}" if path else field["name"]
            writer_field = writer_fields.get(field["name"])
            if writer_field is None:
                for alias in field.get("aliases", []):
                    if alias in writer_fields:
                        writer_field = writer_fields[alias]
                        break
            if writer_field is not None:
                errors.extend(
                    self._match(field["type"], writer_field["type"], field_path, visiting)
                )
            elif "default" not in field:
                errors.append(
                    f"{field_path}: reader field is missing from the writer "
                    "schema and has no default"
                )
        return errors

    @staticmethod
    def _names_match(reader: dict[str, Any], writer: dict[str, Any]) -> bool:
        if _short_name(reader["name"]) == _short_name(writer["name"]):
            return True
        aliases = reader.get("aliases", [])
        return writer["name"] in aliases or _short_name(writer["name"]) in aliases
