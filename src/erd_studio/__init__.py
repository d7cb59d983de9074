from erd_studio.dbml_writer import to_dbml, write_dbml
from erd_studio.errors import Diagnostic, DuplicateColumnError, DuplicateTableError, InputError, SchemaError
from erd_studio.interchange import schema_from_json, schema_to_json
from erd_studio.model import Column, ColumnRef, Reference, Schema, Table
from erd_studio.normalize import normalize_schema
from erd_studio.parsers import ParseResult, parse_dbml, parse_sql
from erd_studio.sql_writer import to_sql, write_sql

__all__ = [
    "Column",
    "ColumnRef",
    "Diagnostic",
    "DuplicateColumnError",
    "DuplicateTableError",
    "InputError",
    "ParseResult",
    "Reference",
    "Schema",
    "SchemaError",
    "Table",
    "normalize_schema",
    "parse_dbml",
    "parse_sql",
    "schema_from_json",
    "schema_to_json",
    "to_dbml",
    "to_sql",
    "write_dbml",
    "write_sql",
]
