from erd_studio.parsers.base import ParseResult, Parser
from erd_studio.parsers.dbml import DbmlParser, parse_dbml
from erd_studio.parsers.sql_ddl import SqlDdlParser, parse_sql

__all__ = ["DbmlParser", "ParseResult", "Parser", "SqlDdlParser", "parse_dbml", "parse_sql"]
