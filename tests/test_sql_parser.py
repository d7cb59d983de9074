"""Tests for the SQL DDL parser."""

import pytest

from erd_studio.model import Reference
from erd_studio.parsers import parse_sql
from erd_studio.parsers.text import find_closing, split_statements, split_top_level, strip_comments


def test_top_level_split_keeps_nested_commas() -> None:
    parts = split_top_level("a DECIMAL(10,2), b ENUM('x,y','z'), c INT")

    assert parts == ["a DECIMAL(10,2)", "b ENUM('x,y','z')", "c INT"]


def test_comment_markers_inside_strings_are_kept() -> None:
    text = "a TEXT DEFAULT '--not a comment' -- real comment\nb INT /* gone */"

    assert strip_comments(text).split() == ["a", "TEXT", "DEFAULT", "'--not", "a", "comment'", "b", "INT"]


def test_deep_nesting_does_not_recurse() -> None:
    text = "(" * 20000 + ")" * 20000

    assert find_closing(text, 0) == len(text) - 1


def test_unbalanced_statement_does_not_swallow_the_next() -> None:
    assert split_statements("CREATE TABLE a (x INT;\nCREATE TABLE b (y INT);") == [
        "CREATE TABLE a (x INT",
        "CREATE TABLE b (y INT)",
    ]


def test_unterminated_string_does_not_swallow_later_tables() -> None:
    """Splitting resumes at the next line starting with CREATE."""
    sql = "CREATE TABLE a (x INT DEFAULT 'oops);\nCREATE TABLE b (id INT);\nCREATE TABLE c (id INT);"

    result = parse_sql(sql)

    assert [t.name for t in result.schema.tables] == ["b", "c"]
    assert [d.severity for d in result.diagnostics] == ["error"]


def test_unterminated_string_in_last_statement() -> None:
    result = parse_sql("CREATE TABLE b (id INT);\nCREATE TABLE a (x TEXT DEFAULT 'oops);")

    assert [t.name for t in result.schema.tables] == ["b"]
    assert not result.ok


def test_hash_inside_expression_is_not_a_comment() -> None:
    """Postgres XOR in a CHECK keeps the closing parenthesis."""
    result = parse_sql("CREATE TABLE t (a INT CHECK (a # 1 > 0), b INT);")

    table = result.schema.get_table("t")
    assert [c.name for c in table.columns] == ["a", "b"]
    assert table.get_column("a").check_constraint == "a # 1 > 0"


def test_hash_comment_at_statement_level_is_stripped() -> None:
    sql = "# dump header\nCREATE TABLE t (a INT, # trailing note\n  b INT);"

    assert strip_comments(sql).split() == ["CREATE", "TABLE", "t", "(a", "INT,", "b", "INT);"]
    assert [c.name for c in parse_sql(sql).schema.get_table("t").columns] == ["a", "b"]


def test_users_table_columns_and_flags() -> None:
    result = parse_sql(
        "CREATE TABLE Users (id INT PRIMARY KEY AUTO_INCREMENT, email VARCHAR(255) NOT NULL UNIQUE);"
    )

    assert result.diagnostics == []
    users = result.schema.get_table("Users")
    assert [c.name for c in users.columns] == ["id", "email"]
    id_col, email = users.columns
    assert (id_col.type, id_col.is_primary_key, id_col.is_auto_increment) == ("INT", True, True)
    assert (email.type, email.is_not_null, email.is_unique) == ("VARCHAR(255)", True, True)
    assert not email.is_primary_key


def test_nested_commas_do_not_split_columns() -> None:
    result = parse_sql("CREATE TABLE t (a DECIMAL(10,2), b ENUM('x,y','z'));")

    table = result.schema.get_table("t")
    assert [(c.name, c.type) for c in table.columns] == [
        ("a", "DECIMAL(10,2)"),
        ("b", "ENUM('x,y','z')"),
    ]


def test_quoted_identifiers_and_trailing_comma() -> None:
    result = parse_sql('CREATE TABLE `users` (`id` INT, "full name" TEXT, plain INT,);')

    table = result.schema.get_table("users")
    assert [c.name for c in table.columns] == ["id", "full name", "plain"]


def test_comments_are_ignored() -> None:
    sql = """
    -- header comment
    CREATE TABLE t (
      a INT /* inline */,
      b INT # mysql style
    );
    """
    result = parse_sql(sql)

    assert [c.name for c in result.schema.get_table("t").columns] == ["a", "b"]


def test_table_level_primary_and_foreign_keys() -> None:
    sql = """
    CREATE TABLE customers (id INT NOT NULL, PRIMARY KEY (id));
    CREATE TABLE orders (
      id INT PRIMARY KEY,
      customer_id INT,
      CONSTRAINT fk_c FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE CASCADE
    );
    """
    result = parse_sql(sql)

    assert result.diagnostics == []
    assert result.schema.get_table("customers").primary_key.name == "id"
    assert result.schema.references == [
        Reference("orders", "customer_id", "customers", "id", ">", "delete: cascade")
    ]


def test_inline_reference_without_column_targets_primary_key() -> None:
    result = parse_sql(
        "CREATE TABLE u (uid INT PRIMARY KEY); CREATE TABLE p (owner INT REFERENCES u);"
    )

    assert result.schema.references == [Reference("p", "owner", "u", "uid")]


def test_foreign_key_declared_before_referenced_table() -> None:
    sql = """
    CREATE TABLE orders (id INT, customer_id INT REFERENCES customers(id));
    CREATE TABLE customers (id INT PRIMARY KEY);
    """
    result = parse_sql(sql)

    assert result.schema.unresolved_references() == []
    assert len(result.schema.references) == 1


def test_malformed_table_is_skipped_and_others_parse() -> None:
    sql = """
    CREATE TABLE good1 (id INT);
    CREATE TABLE broken (id INT, name VARCHAR(20);
    CREATE TABLE good2 (id INT);
    """
    result = parse_sql(sql)

    assert [t.name for t in result.schema.tables] == ["good1", "good2"]
    assert [d.severity for d in result.diagnostics] == ["error"]


def test_bad_column_definition_skips_only_that_column() -> None:
    result = parse_sql("CREATE TABLE t (a INT, b, c TEXT);")

    assert [c.name for c in result.schema.get_table("t").columns] == ["a", "c"]
    assert not result.ok


def test_non_create_statements_are_ignored() -> None:
    sql = "INSERT INTO t VALUES (1, 'a;b'); DROP TABLE x; CREATE TABLE t (id INT);"
    result = parse_sql(sql)

    assert result.diagnostics == []
    assert [t.name for t in result.schema.tables] == ["t"]


@pytest.mark.parametrize("text", ["", "   ", "CREATE TABLE (", ";;;", "CREATE TABLE t ("])
def test_garbage_never_raises(text: str) -> None:
    result = parse_sql(text)

    assert result.schema.tables == []


def test_unreadable_create_table_is_reported() -> None:
    result = parse_sql("CREATE TABLE (id INT);")

    assert not result.ok


def test_duplicate_column_is_reported() -> None:
    result = parse_sql("CREATE TABLE t (a INT, A TEXT);")

    assert [(c.name, c.type) for c in result.schema.get_table("t").columns] == [("a", "INT")]
    assert not result.ok


def test_second_inline_primary_key_is_demoted() -> None:
    result = parse_sql("CREATE TABLE t (a INT PRIMARY KEY, b INT PRIMARY KEY);")

    table = result.schema.get_table("t")
    assert [c.name for c in table.columns if c.is_primary_key] == ["a"]
    assert [d.severity for d in result.diagnostics] == ["warning"]


def test_composite_primary_key_keeps_first_column() -> None:
    result = parse_sql("CREATE TABLE m (a INT, b INT, PRIMARY KEY (a, b));")

    table = result.schema.get_table("m")
    assert table.primary_key.name == "a"
    assert not table.get_column("b").is_primary_key
    assert [d.severity for d in result.diagnostics] == ["warning"]


def test_postgres_dialect() -> None:
    sql = """
    CREATE TABLE IF NOT EXISTS public.accounts (
      id BIGSERIAL PRIMARY KEY,
      email CHARACTER VARYING(255) NOT NULL,
      owner_id INTEGER REFERENCES public.users (id) ON DELETE SET NULL,
      created_at TIMESTAMP WITH TIME ZONE DEFAULT now(),
      status TEXT DEFAULT 'active'::text CHECK (status IN ('active', 'closed'))
    );
    """
    result = parse_sql(sql)

    table = result.schema.get_table("accounts")
    cols = {c.name: c for c in table.columns}
    assert cols["id"].is_auto_increment and cols["id"].is_primary_key
    assert cols["email"].type == "CHARACTER VARYING(255)"
    assert cols["created_at"].type == "TIMESTAMP WITH TIME ZONE"
    assert cols["created_at"].default_value == "now()"
    assert cols["status"].default_value == "'active'::text"
    assert cols["status"].check_constraint == "status IN ('active', 'closed')"
    assert result.schema.references == [
        Reference("accounts", "owner_id", "users", "id", ">", "delete: set null")
    ]
    # users is not defined in the script
    assert [d.severity for d in result.diagnostics] == ["warning"]


def test_mysql_dialect() -> None:
    sql = """
    CREATE TABLE `products` (
      `id` int(11) NOT NULL AUTO_INCREMENT,
      `sku` varchar(64) COLLATE utf8mb4_unicode_ci NOT NULL,
      `price` decimal(10,2) unsigned DEFAULT '0.00',
      `category_id` int(11) DEFAULT NULL,
      PRIMARY KEY (`id`),
      UNIQUE KEY `uniq_sku` (`sku`),
      KEY `idx_category` (`category_id`)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
    """
    result = parse_sql(sql)

    assert result.diagnostics == []
    cols = {c.name: c for c in result.schema.get_table("products").columns}
    assert list(cols) == ["id", "sku", "price", "category_id"]
    assert cols["id"].is_primary_key and cols["id"].is_auto_increment and cols["id"].is_not_null
    assert cols["sku"].type == "varchar(64)" and cols["sku"].is_unique and cols["sku"].is_not_null
    assert cols["price"].type == "decimal(10,2) unsigned"
    assert cols["price"].default_value == "'0.00'"
    assert cols["category_id"].is_indexed


def test_keyword_named_column_is_a_column() -> None:
    result = parse_sql("CREATE TABLE kv (key VARCHAR(50) NOT NULL, value TEXT);")

    table = result.schema.get_table("kv")
    assert [(c.name, c.type) for c in table.columns] == [("key", "VARCHAR(50)"), ("value", "TEXT")]


def test_alter_table_and_create_index() -> None:
    sql = """
    CREATE TABLE customers (id INT PRIMARY KEY);
    CREATE TABLE orders (id INT PRIMARY KEY, customer_id INT);
    ALTER TABLE orders ADD CONSTRAINT fk_orders_customer FOREIGN KEY (customer_id) REFERENCES customers(id);
    ALTER TABLE orders ADD COLUMN note TEXT;
    CREATE INDEX idx_orders_customer_id ON orders(customer_id);
    CREATE UNIQUE INDEX uq_orders_note ON orders (note);
    """
    result = parse_sql(sql)

    assert result.diagnostics == []
    orders = result.schema.get_table("orders")
    assert orders.get_column("customer_id").is_indexed
    assert orders.get_column("note").is_unique
    assert result.schema.references == [Reference("orders", "customer_id", "customers", "id")]


def test_composite_foreign_key_becomes_one_reference_per_pair() -> None:
    sql = """
    CREATE TABLE a (x INT, y INT);
    CREATE TABLE b (ax INT, ay INT, FOREIGN KEY (ax, ay) REFERENCES a (x, y));
    """
    result = parse_sql(sql)

    assert result.schema.references == [Reference("b", "ax", "a", "x"), Reference("b", "ay", "a", "y")]
    assert [d.severity for d in result.diagnostics] == ["warning"]


def test_reference_names_follow_declared_case() -> None:
    sql = """
    CREATE TABLE Customers (Id INT PRIMARY KEY);
    CREATE TABLE Orders (CustomerId INT REFERENCES customers(id));
    """
    result = parse_sql(sql)

    assert result.schema.references == [Reference("Orders", "CustomerId", "Customers", "Id")]
