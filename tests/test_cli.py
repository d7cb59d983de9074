"""Tests for the erd-studio command line."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from erd_studio.cli import app
from erd_studio.commands.convert import convert_text, detect_format, read_input
from erd_studio.errors import InputError

SHOP_SQL = """
CREATE TABLE customers (id INT PRIMARY KEY, email VARCHAR(255) NOT NULL);
CREATE TABLE orders (
  id INT PRIMARY KEY,
  customer_id INT REFERENCES customers(id)
);
"""

runner = CliRunner()


@pytest.fixture(name="shop_sql")
def shop_sql_file(tmp_path: Path) -> Path:
    path = tmp_path / "shop.sql"
    path.write_text(SHOP_SQL, encoding="utf-8")
    return path


def test_sql2dbml_to_stdout(shop_sql: Path) -> None:
    result = runner.invoke(app, ["sql2dbml", str(shop_sql), "--stdout"])

    assert result.exit_code == 0, result.output
    assert "Table customers {" in result.output
    assert "Ref: orders.customer_id > customers.id" in result.output


def test_convert_writes_output_file(shop_sql: Path, tmp_path: Path) -> None:
    out = tmp_path / "result" / "shop.dbml"

    result = runner.invoke(app, ["convert", str(shop_sql), "--to", "dbml", "--out", str(out)])

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").startswith("Table customers {")


def test_dbml2sql_round_trip(shop_sql: Path, tmp_path: Path) -> None:
    dbml = tmp_path / "shop.dbml"
    runner.invoke(app, ["sql2dbml", str(shop_sql), "--out", str(dbml)])

    result = runner.invoke(app, ["dbml2sql", str(dbml), "--stdout"])

    assert result.exit_code == 0, result.output
    assert "REFERENCES customers(id);" in result.output


def test_empty_input_exits_with_code_2(tmp_path: Path) -> None:
    empty = tmp_path / "empty.sql"
    empty.write_text("  \n", encoding="utf-8")

    result = runner.invoke(app, ["sql2dbml", str(empty), "--stdout"])

    assert result.exit_code == 2
    assert "empty" in result.output


def test_check_reports_errors_with_exit_code_1(tmp_path: Path) -> None:
    bad = tmp_path / "bad.sql"
    bad.write_text("CREATE TABLE ok (id INT);\nCREATE TABLE broken (id INT;\n", encoding="utf-8")

    result = runner.invoke(app, ["check", str(bad)])

    assert result.exit_code == 1
    assert "ok" in result.output


def test_check_clean_file(shop_sql: Path) -> None:
    result = runner.invoke(app, ["check", str(shop_sql)])

    assert result.exit_code == 0, result.output
    assert "customers" in result.output


def test_detect_format_by_suffix() -> None:
    assert detect_format(Path("a.SQL")) == "sql"
    assert detect_format(Path("a.dbml")) == "dbml"
    assert detect_format(Path("a.json")) == "json"
    with pytest.raises(InputError):
        detect_format(Path("a.txt"))


def test_read_input_rejects_binary_and_oversized(tmp_path: Path) -> None:
    binary = tmp_path / "x.sql"
    binary.write_bytes(b"CREATE\x00TABLE")
    with pytest.raises(InputError):
        read_input(binary)

    big = tmp_path / "big.sql"
    big.write_text("CREATE TABLE t (id INT);", encoding="utf-8")
    with pytest.raises(InputError):
        read_input(big, max_bytes=10)


def test_convert_text_drops_unresolved_refs() -> None:
    conv = convert_text("Table a {\n  id int\n}\nRef: a.id > b.id\n", "dbml", "json", drop_unresolved=True)

    assert conv.schema.references == []
    assert [d.severity for d in conv.diagnostics] == ["warning"]


def test_convert_text_can_keep_unresolved_refs() -> None:
    conv = convert_text("Table a {\n  id int\n}\nRef: a.id > b.id\n", "dbml", "json", drop_unresolved=False)

    assert '"targetTable": "b"' in conv.text


def test_convert_text_rejects_empty_input() -> None:
    with pytest.raises(InputError):
        convert_text("", "sql", "dbml")
