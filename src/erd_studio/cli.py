"""
스키마 변환 CLI.
- erd-studio convert: SQL / DBML / JSON 사이 변환 (입력 형식은 확장자로 판단)
- erd-studio sql2dbml, dbml2sql: 자주 쓰는 변환 단축 명령
- erd-studio check: 파싱만 하고 테이블/관계/진단 결과 출력
"""
from __future__ import annotations
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table as RichTable

from erd_studio.commands import convert as cmd_convert
from erd_studio.config import settings
from erd_studio.errors import Diagnostic, InputError, has_errors

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="erd-studio",
    add_completion=False,
    help="SQL DDL / DBML / 에디터 JSON 스키마 변환 도구",
)


class Fmt(str, Enum):
    sql = "sql"
    dbml = "dbml"
    json = "json"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="디버그 로그 출력"),
):
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_diagnostics(diagnostics: List[Diagnostic]) -> None:
    for d in diagnostics:
        style = "red" if d.severity == "error" else "yellow"
        err_console.print(f"[{style}]{d}[/{style}]", markup=True, highlight=False)


def _convert(
    input_path: Path,
    target: Fmt,
    source: Optional[Fmt],
    out: Optional[Path],
    stdout: bool,
    keep_unresolved: bool,
) -> None:
    drop = False if keep_unresolved else None
    try:
        if stdout:
            src = source.value if source else cmd_convert.detect_format(input_path)
            conv = cmd_convert.convert_text(
                cmd_convert.read_input(input_path), src, target.value, drop_unresolved=drop
            )
            typer.echo(conv.text, nl=False)
            diagnostics = conv.diagnostics
        else:
            _, diagnostics = cmd_convert.run_convert(
                input_path,
                target.value,
                source=source.value if source else None,
                out_dir=out.parent if out else None,
                out_file=out.name if out else None,
                drop_unresolved=drop,
            )
    except InputError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=2)
    _print_diagnostics(diagnostics)


@app.command("convert")
def convert(
    input_path: Path = typer.Argument(..., help="입력 파일 (.sql / .dbml / .json)"),
    to: Fmt = typer.Option(..., "--to", "-t", help="출력 형식"),
    source: Optional[Fmt] = typer.Option(None, "--from", "-f", help="입력 형식 (기본: 확장자로 판단)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="출력 파일 경로 (기본: ERD_OUTPUT_DIR/<입력명>.<형식>)"),
    stdout: bool = typer.Option(False, "--stdout", help="파일 대신 표준 출력으로"),
    keep_unresolved: bool = typer.Option(False, help="해석되지 않는 Ref도 남긴다 (JSON 출력용)"),
):
    """스키마 파일을 다른 형식으로 변환."""
    _convert(input_path, to, source, out, stdout, keep_unresolved)


@app.command("sql2dbml")
def sql2dbml(
    input_path: Path = typer.Argument(..., help="입력 SQL 파일"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="출력 DBML 파일 경로"),
    stdout: bool = typer.Option(False, "--stdout", help="파일 대신 표준 출력으로"),
):
    """SQL DDL → DBML."""
    _convert(input_path, Fmt.dbml, Fmt.sql, out, stdout, keep_unresolved=False)


@app.command("dbml2sql")
def dbml2sql(
    input_path: Path = typer.Argument(..., help="입력 DBML 파일"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="출력 SQL 파일 경로"),
    stdout: bool = typer.Option(False, "--stdout", help="파일 대신 표준 출력으로"),
):
    """DBML → SQL DDL."""
    _convert(input_path, Fmt.sql, Fmt.dbml, out, stdout, keep_unresolved=False)


@app.command("check")
def check(
    input_path: Path = typer.Argument(..., help="입력 파일 (.sql / .dbml / .json)"),
    source: Optional[Fmt] = typer.Option(None, "--from", "-f", help="입력 형식 (기본: 확장자로 판단)"),
):
    """파싱만 수행하고 결과 요약. 오류 진단이 있으면 종료 코드 1."""
    try:
        src = source.value if source else cmd_convert.detect_format(input_path)
        result = cmd_convert.load_schema(cmd_convert.read_input(input_path), src)
    except InputError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=2)

    schema = result.schema
    tables = RichTable(title=f"Tables ({len(schema.tables)})")
    tables.add_column("Table")
    tables.add_column("Columns", justify="right")
    tables.add_column("Primary key")
    for t in schema.tables:
        pk = t.primary_key
        tables.add_row(t.name, str(len(t.columns)), pk.name if pk else "-")
    console.print(tables)

    refs = RichTable(title=f"Relationships ({len(schema.references)})")
    refs.add_column("Ref")
    refs.add_column("Options")
    refs.add_column("Resolved")
    for r in schema.references:
        refs.add_row(str(r), r.options or "-", "yes" if schema.resolves(r) else "[red]no[/red]")
    console.print(refs)

    _print_diagnostics(result.diagnostics)
    if has_errors(result.diagnostics):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
