"""Unit tests for the MySQL dialect connector."""

import io

import pytest

from schemadesk.core.exceptions import CatalogParseError, ErrorCodes, UnsupportedOperationError
from schemadesk.database.connectors.mysql import parse_enum_values
from schemadesk.database.models import Tristate


class TestParseEnumValues:
    """Test cases for ENUM/SET definition parsing."""

    @pytest.mark.parametrize(
        "definition, expected",
        [
            ("enum('a','b','c')", ["a", "b", "c"]),
            ("enum('it''s','x')", ["it's", "x"]),
            ("SET('read','write')", ["read", "write"]),
            ("enum('')", [""]),
            ("enum('a,b','c')", ["a,b", "c"]),
        ],
    )
    def test_parse(self, definition, expected):
        assert parse_enum_values(definition) == expected

    @pytest.mark.parametrize("definition", ["int(11)", "enum('a'", "enum('a)"])
    def test_malformed(self, definition):
        with pytest.raises(CatalogParseError) as exc_info:
            parse_enum_values(definition)

        assert exc_info.value.code == ErrorCodes.CATALOG_PARSE_FAILED


class TestMySQLDialect:
    """Test cases for quoting, literals and capabilities."""

    @pytest.mark.parametrize(
        "identifier, expected",
        [("name", "name"), ("key", "`key`"), ("Users", "`Users`"), ("a`b", "`a``b`")],
    )
    def test_backtick_quoting(self, mysql_connector, identifier, expected):
        assert mysql_connector.quote_column(identifier) == expected

    def test_backslash_literals(self, mysql_connector):
        assert mysql_connector.escape_literal("O'Brien") == "'O\\'Brien'"
        assert mysql_connector.get_select_where_clause(["name"], ["a\\b"]) == "name LIKE 'a\\\\b'"

    def test_capabilities(self, mysql_connector):
        assert mysql_connector.supports_foreign_keys() is False
        assert mysql_connector.supports_check_constraints() is False
        assert mysql_connector.get_limit_clause(10, 20) == "limit 10,20"

    def test_foreign_keys_not_introspected(self, mysql_connector, fake_driver):
        assert len(mysql_connector.get_imported_keys("orders")) == 0
        assert len(mysql_connector.get_exported_keys("users")) == 0
        assert fake_driver.statements == []

    def test_add_foreign_key_unsupported(self, mysql_connector, fake_driver):
        with pytest.raises(UnsupportedOperationError) as exc_info:
            mysql_connector.add_foreign_key("orders", "fk", "user_id", "users", "id")

        assert exc_info.value.code == ErrorCodes.OPERATION_NOT_SUPPORTED
        assert exc_info.value.context == {"engine": "mysql", "operation": "add_foreign_key"}
        assert fake_driver.statements == []


class TestMySQLIntrospection:
    """Test cases for catalog reads."""

    def test_get_columns(self, mysql_connector, fake_driver):
        fake_driver.respond("information_schema.COLUMNS", [
            ("id", "int", 10, "NO", None, "auto_increment", "int(11)"),
            ("status", "enum", None, "YES", "a", "", "enum('a','it''s')"),
            ("created", "timestamp", None, "NO", "CURRENT_TIMESTAMP", "DEFAULT_GENERATED", "timestamp"),
            ("visits", "int", 10, "YES", "0", "", "int(11)"),
        ])

        columns = mysql_connector.get_columns("users")

        assert columns.names == ("id", "status", "created", "visits")
        assert columns.lengths == ("10", "'a','it''s'", None, "10")
        assert columns.nullable == (Tristate.FALSE, Tristate.TRUE, Tristate.FALSE, Tristate.TRUE)
        assert columns.defaults == (None, "Va", "FCURRENT_TIMESTAMP", "V0")
        assert columns.remarks == ("auto_increment", "", "", "")
        assert fake_driver.last[1] == ("users",)

    def test_get_indexes(self, mysql_connector, fake_driver):
        fake_driver.respond("information_schema.STATISTICS", [
            ("PRIMARY", 0, "id"),
            ("idx_name", 1, "name"),
        ])

        indexes = mysql_connector.get_indexes("users")

        assert indexes.names == ("PRIMARY", "idx_name")
        assert indexes.unique == (Tristate.TRUE, Tristate.FALSE)

    def test_get_tables(self, mysql_connector, fake_driver):
        fake_driver.respond("SHOW TABLES", [("orders",), ("users",)])

        assert mysql_connector.get_tables() == ["orders", "users"]

    def test_types_are_static(self, mysql_connector, fake_driver):
        types = mysql_connector.get_types()

        assert "VARCHAR" in types
        assert "ENUM" in types
        assert fake_driver.statements == []

    def test_function_list_by_return_type(self, mysql_connector):
        numeric = mysql_connector.get_function_list("int")
        dates = mysql_connector.get_function_list("DATETIME")

        assert "ABS" in numeric
        assert "CONCAT" not in numeric
        assert "VERSION" in numeric
        assert "NOW" in dates
        assert numeric == sorted(numeric)

    def test_full_function_list(self, mysql_connector):
        functions = mysql_connector.get_function_list()

        assert {"ABS", "CONCAT", "NOW", "USER"} <= set(functions)

    def test_possible_values_of_enum(self, mysql_connector, fake_driver):
        fake_driver.respond("SHOW COLUMNS FROM users", [
            ("status", "enum('new','done')", "YES", "", None, ""),
        ])

        values = mysql_connector.get_possible_values("users", "status", "enum")

        assert values == ["new", "done"]
        assert fake_driver.last == ("SHOW COLUMNS FROM users LIKE %s", ("status",))

    def test_possible_values_of_plain_column(self, mysql_connector, fake_driver):
        assert mysql_connector.get_possible_values("users", "name", "varchar") is None
        assert fake_driver.statements == []

    def test_table_privileges_without_grantor(self, mysql_connector, fake_driver):
        fake_driver.respond("information_schema.TABLE_PRIVILEGES", [
            ("'bob'@'%'", "SELECT", "NO"),
            ("'bob'@'%'", "UPDATE", "YES"),
        ])

        privileges = mysql_connector.get_table_privileges("users")

        sql, params = fake_driver.last
        assert "GRANTOR" not in sql.upper()
        assert "TABLE_SCHEMA = DATABASE()" in sql
        assert params == ("users",)
        assert privileges.grantors == ("", "")
        assert privileges.grantees == ("'bob'@'%'", "'bob'@'%'")
        assert privileges.grantable == (Tristate.FALSE, Tristate.TRUE)

    def test_primary_keys_join_within_schema(self, mysql_connector, fake_driver):
        fake_driver.respond("key_column_usage", [("id", "PRIMARY")])

        keys = mysql_connector.get_primary_keys("users")

        sql = fake_driver.last[0]
        assert keys.columns == ("id",)
        assert "kcu.constraint_schema = tc.constraint_schema" in sql
        assert "kcu.table_schema = tc.table_schema" in sql
        assert "kcu.table_name = tc.table_name" in sql
        assert "tc.table_schema = DATABASE()" in sql


class TestMySQLStatements:
    """Test cases for generated DDL and DML."""

    def test_add_primary_key_without_existing_key(self, mysql_connector, fake_driver):
        mysql_connector.add_primary_key("users", "id")

        assert fake_driver.sql[-1] == "ALTER TABLE users DROP PRIMARY KEY, ADD PRIMARY KEY(id)"

    def test_rename_table(self, mysql_connector, fake_driver):
        mysql_connector.rename_table("users", "people")

        assert fake_driver.sql == ["ALTER TABLE users RENAME people"]

    def test_grant_flushes_privileges(self, mysql_connector, fake_driver):
        mysql_connector.grant_privileges("users", "bob", ["SELECT", "UPDATE"])

        assert fake_driver.sql == ["GRANT SELECT,UPDATE ON users TO bob", "FLUSH PRIVILEGES"]

    def test_revoke_flushes_privileges(self, mysql_connector, fake_driver):
        mysql_connector.revoke_privileges("users", "bob", ["SELECT"])

        assert fake_driver.sql == ["REVOKE SELECT ON users FROM bob", "FLUSH PRIVILEGES"]

    def test_edit_column(self, mysql_connector, fake_driver):
        mysql_connector.edit_column("users", "name", "full_name", "varchar", "64", "V", "NOT NULL")

        assert fake_driver.sql == [
            "ALTER TABLE users CHANGE name full_name varchar(64) DEFAULT '' NOT NULL"
        ]

    def test_insert_uses_format_placeholders(self, mysql_connector, fake_driver):
        mysql_connector.insert_row("users", ["id", "key"], [1, "k"])

        assert fake_driver.last == ("INSERT INTO users (id, `key`) VALUES (%s, %s)", (1, "k"))

    def test_dump_escapes_newlines(self, mysql_connector, fake_driver):
        fake_driver.respond("SELECT * FROM users", [(1, "a\nb")])
        out = io.StringIO()

        mysql_connector.dump_table_contents("users", out)

        assert out.getvalue() == "INSERT INTO users VALUES ('1','a\\nb');\n"

    def test_insert_function_with_percent_sign(self, mysql_connector, fake_driver):
        mysql_connector.insert_row(
            "logs", ["day", "msg"], [None, "hi"], ["DATE_FORMAT(NOW(), '%Y-%m-%d')", None]
        )

        assert fake_driver.last == (
            "INSERT INTO logs (day, msg) VALUES (DATE_FORMAT(NOW(), '%%Y-%%m-%%d'), %s)",
            ("hi",),
        )

    def test_delete_from_table_with_percent_sign(self, mysql_connector, fake_driver):
        mysql_connector.delete_row("50%_off", ["id"], ["7"])

        assert fake_driver.last == ("DELETE FROM `50%%_off` WHERE id=%s", ("7",))

    def test_percent_sign_kept_without_parameters(self, mysql_connector, fake_driver):
        mysql_connector.rename_table("50%_off", "half_off")

        assert fake_driver.last == ("ALTER TABLE `50%_off` RENAME half_off", ())
