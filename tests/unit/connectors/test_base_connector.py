"""Unit tests for the engine-neutral dialect connector."""

import io

import pytest

from schemadesk.core.exceptions import (
    CatalogParseError,
    ErrorCodes,
    MetadataError,
    UnsupportedOperationError,
    ValidationError,
)
from schemadesk.database.models import ColumnDefinition, Tristate


class TestQuoting:
    """Test cases for identifier quoting."""

    @pytest.mark.parametrize(
        "identifier, expected",
        [
            ("name", "name"),
            ("col_1", "col_1"),
            ("user", '"user"'),
            ("ORDER", '"ORDER"'),
            ("Name", '"Name"'),
            ("first name", '"first name"'),
            ("1col", '"1col"'),
            ('a"b', '"a""b"'),
            ("", '""'),
        ],
    )
    def test_quote_column(self, base_connector, identifier, expected):
        assert base_connector.quote_column(identifier) == expected

    def test_quote_none_rejected(self, base_connector):
        with pytest.raises(TypeError):
            base_connector.quote_table(None)

    def test_keywords_are_case_insensitive(self, base_connector):
        assert base_connector.is_keyword("SELECT")
        assert base_connector.is_keyword("select")
        assert not base_connector.is_keyword("users")


class TestCapabilities:
    def test_defaults(self, base_connector):
        assert base_connector.supports_foreign_keys() is True
        assert base_connector.supports_check_constraints() is False
        assert base_connector.get_limit_clause(10, 20) is None

    def test_effective_type(self, base_connector):
        assert base_connector.get_effective_type("ENUM") == "text"
        assert base_connector.get_effective_type("set") == "text"
        assert base_connector.get_effective_type("varchar") == "varchar"

    def test_rule_description(self, base_connector):
        assert base_connector.get_rule_description(0) == "CASCADE"
        assert base_connector.get_rule_description(7) == "NOT DEFERRABLE"

    def test_unknown_rule_code(self, base_connector):
        with pytest.raises(CatalogParseError) as exc_info:
            base_connector.get_rule_description(42)

        assert exc_info.value.code == ErrorCodes.CATALOG_PARSE_FAILED
        assert exc_info.value.context["rule_code"] == 42

    def test_check_constraints_empty_without_support(self, base_connector, fake_driver):
        assert len(base_connector.get_check_constraints("users")) == 0
        assert fake_driver.statements == []


class TestSelectWhereClause:
    """Test cases for search filters."""

    def test_mixed_conditions(self, base_connector):
        clause = base_connector.get_select_where_clause(
            ["name", "age", "email"], ["a%", None, ""]
        )

        assert clause == "name LIKE 'a%' AND ISNULL(age)"

    def test_blank_column_skipped(self, base_connector):
        assert base_connector.get_select_where_clause(["", "name"], ["x", "O'B"]) == "name LIKE 'O''B'"

    def test_no_conditions(self, base_connector):
        assert base_connector.get_select_where_clause(["name"], [""]) == ""


class TestIntrospection:
    """Test cases for information_schema introspection."""

    def test_get_columns(self, base_connector, fake_driver):
        fake_driver.respond("information_schema.columns", [
            ("id", "integer", None, "NO", None),
            ("name", "varchar", 20, "YES", "x"),
        ])

        columns = base_connector.get_columns("users")

        assert columns.names == ("id", "name")
        assert columns.lengths == (None, "20")
        assert columns.nullable == (Tristate.FALSE, Tristate.TRUE)
        assert columns.defaults == (None, "Vx")
        assert fake_driver.last[1] == ("users",)

    def test_get_default_and_remark(self, base_connector, fake_driver):
        fake_driver.respond("information_schema.columns", [("name", "varchar", 20, "YES", "x")])

        assert base_connector.get_default("users", "name") == "Vx"
        assert base_connector.get_remark("users", "name") == ""

    def test_missing_column(self, base_connector):
        with pytest.raises(MetadataError) as exc_info:
            base_connector.get_default("users", "missing")

        assert exc_info.value.code == ErrorCodes.METADATA_EXTRACTION_FAILED
        assert exc_info.value.context["column"] == "missing"

    def test_empty_foreign_keys(self, base_connector):
        keys = base_connector.get_imported_keys("users")

        assert len(keys) == 0
        assert keys.for_column("id") is None

    def test_table_privileges(self, base_connector, fake_driver):
        fake_driver.respond("information_schema.table_privileges", [
            ("root", "bob", "SELECT", "NO"),
            ("root", "bob", "UPDATE", "YES"),
        ])

        privileges = base_connector.get_table_privileges("users")

        assert privileges.privileges == ("SELECT", "UPDATE")
        assert privileges.grantable == (Tristate.FALSE, Tristate.TRUE)

    def test_count_records(self, base_connector, fake_driver):
        fake_driver.respond("SELECT count(*) FROM users", [(12,)])

        assert base_connector.count_records("users") == 12

    def test_database_schema(self, base_connector, fake_driver):
        fake_driver.respond("information_schema.tables", [("orders",), ("users",)])
        fake_driver.respond("information_schema.columns", [("id", "integer", None, "NO", None)])

        schema = base_connector.get_database_schema()

        assert [t.name for t in schema] == ["orders", "users"]
        assert schema[0].columns.names == ("id",)
        assert len(schema[0].imported_keys) == 0


class TestTableDDL:
    """Test cases for table level statements."""

    def test_create_table(self, base_connector, fake_driver):
        base_connector.create_table("users", [
            ColumnDefinition("id", "int", null_clause="NOT NULL", primary_key=True),
            ColumnDefinition("name", "varchar", "20", default="Vx", index=True),
        ])

        assert fake_driver.sql == [
            "CREATE TABLE users (id int NOT NULL, name varchar(20) DEFAULT 'x', PRIMARY KEY (id))",
            "ALTER TABLE users ADD INDEX users_name_idx (name)",
        ]

    def test_create_table_without_columns(self, base_connector, fake_driver):
        with pytest.raises(ValidationError) as exc_info:
            base_connector.create_table("users", [])

        assert exc_info.value.code == ErrorCodes.CONFIG_VALIDATION_FAILED
        assert fake_driver.statements == []

    def test_add_column_ignores_length_of_text(self, base_connector, fake_driver):
        base_connector.add_column("users", "bio", "TEXT", "200", "Fnow()", "NULL")

        assert fake_driver.sql == ["ALTER TABLE users ADD bio TEXT DEFAULT now() NULL"]

    def test_rename_and_drop(self, base_connector, fake_driver):
        base_connector.rename_table("users", "people")
        base_connector.drop_table("people")

        assert fake_driver.sql == ["ALTER TABLE users RENAME TO people", "DROP TABLE people"]

    def test_add_primary_key_extends_existing(self, base_connector, fake_driver):
        fake_driver.respond("tc.constraint_type = 'PRIMARY KEY'", [("id", "users_pkey")])

        base_connector.add_primary_key("users", "tenant")

        assert fake_driver.sql[-1] == "ALTER TABLE users DROP PRIMARY KEY, ADD PRIMARY KEY(id, tenant)"

    def test_drop_primary_key(self, base_connector, fake_driver):
        fake_driver.respond("tc.constraint_type = 'PRIMARY KEY'", [("id", "pk"), ("tenant", "pk")])

        base_connector.drop_primary_key("users", "tenant")

        assert fake_driver.sql[-1] == "ALTER TABLE users DROP PRIMARY KEY, ADD PRIMARY KEY(id)"

    def test_add_foreign_key(self, base_connector, fake_driver):
        base_connector.add_foreign_key(
            "orders", "orders_user_fk", "user_id", "users", "id",
            match_type="FULL", on_delete="CASCADE", deferrable=True, initially="DEFERRED",
        )

        assert fake_driver.sql == [
            "ALTER TABLE orders ADD CONSTRAINT orders_user_fk FOREIGN KEY(user_id)"
            " REFERENCES users (id) MATCH FULL ON DELETE CASCADE ON UPDATE NO ACTION"
            " DEFERRABLE INITIALLY DEFERRED"
        ]

    def test_check_constraint_unsupported(self, base_connector):
        with pytest.raises(UnsupportedOperationError) as exc_info:
            base_connector.add_check_constraint("users", "age_check", "age > 0")

        assert exc_info.value.code == ErrorCodes.OPERATION_NOT_SUPPORTED

    def test_drop_constraint_with_behaviour(self, base_connector, fake_driver):
        base_connector.drop_constraint("users", "users_name_key", "CASCADE")

        assert fake_driver.sql == ["ALTER TABLE users DROP CONSTRAINT users_name_key CASCADE"]


class TestPrivileges:
    def test_grant(self, base_connector, fake_driver):
        base_connector.grant_privileges("users", "bob", ["SELECT", "INSERT"])

        assert fake_driver.sql == ["GRANT SELECT,INSERT ON users TO bob"]

    def test_revoke(self, base_connector, fake_driver):
        base_connector.revoke_privileges("users", "bob", ["DELETE"])

        assert fake_driver.sql == ["REVOKE DELETE ON users FROM bob"]

    def test_empty_privilege_list(self, base_connector, fake_driver):
        with pytest.raises(ValidationError) as exc_info:
            base_connector.grant_privileges("users", "bob", [])

        assert exc_info.value.code == ErrorCodes.CONFIG_VALIDATION_FAILED
        assert fake_driver.statements == []


class TestRows:
    """Test cases for row statements."""

    def test_insert_row(self, base_connector, fake_driver):
        count = base_connector.insert_row("users", ["id", "name"], [1, "a"])

        assert count == 1
        assert fake_driver.last == ("INSERT INTO users (id, name) VALUES (?, ?)", (1, "a"))

    def test_insert_row_with_function(self, base_connector, fake_driver):
        base_connector.insert_row("users", ["id", "created"], [1, "ignored"], [None, "now()"])

        assert fake_driver.last == ("INSERT INTO users (id, created) VALUES (?, now())", (1,))

    def test_edit_row(self, base_connector, fake_driver):
        base_connector.edit_row("users", ["name", "age"], ["b", 30], ["id"], [7])

        assert fake_driver.last == ("UPDATE users SET name=?, age=? WHERE id=?", ("b", 30, 7))

    def test_delete_row_with_null_key(self, base_connector, fake_driver):
        base_connector.delete_row("users", ["id", "tenant"], [7, None])

        assert fake_driver.last == ("DELETE FROM users WHERE id=? AND ISNULL(tenant)", (7,))

    def test_get_row(self, base_connector, fake_driver):
        fake_driver.respond("SELECT * FROM users", [(7, "a")], ["id", "name"])

        assert base_connector.get_row("users", ["id"], [7]) == {"id": 7, "name": "a"}
        assert fake_driver.last == ("SELECT * FROM users WHERE id=?", (7,))

    def test_get_missing_row(self, base_connector):
        assert base_connector.get_row("users", ["id"], [7]) is None


class TestDumps:
    """Test cases for structure and content dumps."""

    def test_dump_table_structure(self, base_connector, fake_driver):
        fake_driver.respond("information_schema.columns", [
            ("id", "integer", None, "NO", None),
            ("name", "varchar", 20, "YES", "x"),
        ])
        fake_driver.respond("tc.constraint_type = 'PRIMARY KEY'", [("id", "users_pkey")])
        fake_driver.respond("IN ('PRIMARY KEY', 'UNIQUE')", [
            ("users_pkey", "PRIMARY KEY", "id"),
            ("users_name_key", "UNIQUE", "name"),
        ])
        out = io.StringIO()

        base_connector.dump_table_structure("users", out)

        assert out.getvalue() == (
            "CREATE TABLE users (\n"
            "  id integer NOT NULL,\n"
            "  name varchar(20) NULL DEFAULT 'x',\n"
            "  PRIMARY KEY (id)\n"
            ");\n"
            "CREATE UNIQUE INDEX users_name_key ON users (name);\n"
        )

    def test_dump_table_contents(self, base_connector, fake_driver):
        fake_driver.respond("SELECT * FROM users", [(1, "O'Brien", None), (2, "b", "x")])
        out = io.StringIO()

        base_connector.dump_table_contents("users", out)

        assert out.getvalue() == (
            "INSERT INTO users VALUES ('1','O''Brien',NULL);\n"
            "INSERT INTO users VALUES ('2','b','x');\n"
        )

    def test_repr(self, base_connector):
        assert repr(base_connector) == "BaseDialectConnector('mysql://root@localhost:3306/test')"
