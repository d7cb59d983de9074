"""스키마 변환: SQL / DBML / JSON 파일 → SQL / DBML / JSON 파일."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional

from rich.console import Console

from erd_studio.config import settings
from erd_studio.dbml_writer import to_dbml
from erd_studio.errors import Diagnostic, InputError
from erd_studio.interchange import schema_from_json, schema_to_json
from erd_studio.model import Schema
from erd_studio.normalize import normalize_schema
from erd_studio.parsers.base import ParseResult
from erd_studio.parsers.dbml import DbmlParser
from erd_studio.parsers.sql_ddl import SqlDdlParser
from erd_studio.sql_writer import to_sql

Format = Literal["sql", "dbml", "json"]

FORMAT_SUFFIX = {"sql": ".sql", "dbml": ".dbml", "json": ".json"}
PARSERS = {"sql": SqlDdlParser(), "dbml": DbmlParser()}

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class Conversion:
    text: str
    schema: Schema
    diagnostics: List[Diagnostic] = field(default_factory=list)


def detect_format(path: Path) -> Format:
    for name, parser in PARSERS.items():
        if parser.can_parse(path):
            return name
    if path.suffix.lower() == ".json":
        return "json"
    raise InputError(f"Cannot tell the input format of '{path.name}'; use --from sql|dbml|json")


def read_input(path: Path, max_bytes: Optional[int] = None) -> str:
    """입력 파일 검사. 문제가 있으면 변환을 시작하지 않고 InputError."""
    limit = max_bytes if max_bytes is not None else settings.max_input_bytes
    if not path.is_file():
        raise InputError(f"Input file not found: {path}")
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e.strerror or e}") from e
    if len(raw) > limit:
        raise InputError(f"{path.name} is {len(raw)} bytes; the limit is {limit} (ERD_MAX_INPUT_BYTES)")
    if b"\x00" in raw:
        raise InputError(f"{path.name} does not look like a text file")
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InputError(f"{path.name} is not valid UTF-8 text") from e
    if not text.strip():
        raise InputError(f"{path.name} is empty")
    return text


def load_schema(text: str, source: Format) -> ParseResult:
    if source == "json":
        return ParseResult(schema=schema_from_json(text))
    return PARSERS[source].parse(text)


def render(schema: Schema, target: Format, diagnostics: Optional[List[Diagnostic]] = None) -> str:
    if target == "dbml":
        return to_dbml(schema, diagnostics)
    if target == "sql":
        return to_sql(schema, diagnostics)
    return schema_to_json(schema) + "\n"


def convert_text(
    text: str,
    source: Format,
    target: Format,
    drop_unresolved: Optional[bool] = None,
) -> Conversion:
    if not text or not text.strip():
        raise InputError("Nothing to convert: input is empty")
    drop = settings.drop_unresolved_refs if drop_unresolved is None else drop_unresolved

    result = load_schema(text, source)
    diagnostics = list(result.diagnostics)
    if drop:
        # 파서가 이미 경고를 남겼으므로 여기서는 조용히 걸러낸다
        normalize_schema(result.schema)
    out = render(result.schema, target, diagnostics)
    logger.info("Converted %s → %s (%d diagnostics)", source, target, len(diagnostics))
    return Conversion(text=out, schema=result.schema, diagnostics=diagnostics)


def run_convert(
    input_path: Path,
    target: Format,
    source: Optional[Format] = None,
    out_dir: Optional[Path] = None,
    out_file: Optional[str] = None,
    drop_unresolved: Optional[bool] = None,
) -> tuple[Path, List[Diagnostic]]:
    """
    파일을 읽어 변환하고 결과 파일을 쓴다.
    반환: (출력 경로, diagnostics)
    """
    source = source or detect_format(input_path)
    text = read_input(input_path)
    console.print(f"[bold]Input:[/bold] {input_path} ({source})")

    conv = convert_text(text, source, target, drop_unresolved=drop_unresolved)

    base = out_dir or settings.output_dir
    base.mkdir(parents=True, exist_ok=True)
    out_path = base / (out_file or f"{input_path.stem}{FORMAT_SUFFIX[target]}")
    out_path.write_text(conv.text, encoding="utf-8")

    console.print(
        f"Tables: [green]{len(conv.schema.tables)}[/green], "
        f"Refs: [green]{len(conv.schema.references)}[/green]"
    )
    console.print(f"[bold green]{target.upper()}:[/bold green] {out_path}")
    return out_path, conv.diagnostics
