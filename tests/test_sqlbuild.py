import pytest

from barintodo.sqlbuild import (
    ColumnKind,
    Columns,
    build_upsert_query,
    ident_quote,
    make_cache_key,
    placeholders,
    set_complement,
    set_intersect,
    set_param_names,
    where_clause,
    where_clause_repeated,
)

ALL_COLUMNS = ["id", "title", "description", "status", "deadline", "created_at", "updated_at", "deleted"]
WITHOUT_DEFAULT = ["title", "description", "deadline"]
WITH_DEFAULT = ["id", "status", "created_at", "updated_at", "deleted"]
PRIMARY_KEYS = ["id"]


def test_columns_kind_predicates():
    assert Columns.whitelist("deleted").is_whitelist()
    assert not Columns.infer().is_whitelist()
    assert Columns.none().is_none()
    assert not Columns.infer().is_none()
    assert Columns.whitelist("a", "b").cols == ("a", "b")


def test_insert_column_set_infer_matches_insert_readback():
    insert, returning = Columns.infer().insert_column_set(
        ALL_COLUMNS, WITH_DEFAULT, WITHOUT_DEFAULT, ["created_at", "updated_at"]
    )
    assert insert == sorted(WITHOUT_DEFAULT + ["created_at", "updated_at"])
    assert returning == ["id", "status", "deleted"]


def test_insert_column_set_whitelist_and_none():
    insert, returning = Columns.whitelist("id", "title").insert_column_set(
        ALL_COLUMNS, WITH_DEFAULT, WITHOUT_DEFAULT, []
    )
    assert insert == ["id", "title"]
    assert returning == []
    assert Columns.none().insert_column_set(ALL_COLUMNS, WITH_DEFAULT, WITHOUT_DEFAULT, []) == ([], [])


def test_update_column_set():
    assert Columns.infer().update_column_set(ALL_COLUMNS, PRIMARY_KEYS) == ALL_COLUMNS[1:]
    assert Columns.whitelist("deleted").update_column_set(ALL_COLUMNS, PRIMARY_KEYS) == ["deleted"]
    assert Columns.none().update_column_set(ALL_COLUMNS, PRIMARY_KEYS) == []


def test_make_cache_key_distinguishes_inputs():
    base = make_cache_key(Columns.infer(), None)
    with_nz = make_cache_key(Columns.infer(), ["created_at"])
    assert base != with_nz
    assert with_nz.startswith(base)
    assert with_nz.endswith(".created_at")
    assert make_cache_key(Columns.infer(), []) == base
    assert make_cache_key(Columns.whitelist("deleted"), None) != base
    assert make_cache_key(Columns.whitelist("deleted"), None).endswith("deleted")
    assert make_cache_key(Columns.whitelist("deleted"), None).startswith(str(int(ColumnKind.WHITELIST)))


def test_ident_quote():
    assert ident_quote("todos") == "`todos`"
    assert ident_quote("`todos`") == "`todos`"
    assert ident_quote("todos.id") == "`todos`.`id`"
    assert ident_quote("*") == "*"


@pytest.mark.parametrize("count", [0, 1, 3, 8])
def test_placeholders_count(count):
    result = placeholders(count)
    assert result.count("?") == count
    assert result.replace("?", "").replace(",", "") == ""
    assert result.count(",") == max(count - 1, 0)


def test_placeholders_negative():
    with pytest.raises(ValueError):
        placeholders(-1)


def test_where_clause():
    assert where_clause(["id"]) == "`id`=?"
    parts = where_clause(["id", "title"]).split(" AND ")
    assert parts == [where_clause(["id"]), where_clause(["title"])]


def test_where_clause_repeated():
    single = where_clause(["id"])
    repeated = where_clause_repeated(["id"], 3)
    assert repeated.split(" OR ") == [f"({single})"] * 3
    assert where_clause_repeated(["id"], 0) == ""
    with pytest.raises(ValueError):
        where_clause_repeated(["id"], -2)


def test_set_param_names():
    cols = ["title", "status"]
    assert set_param_names(cols).split(",") == [where_clause([c]) for c in cols]


def test_set_complement_and_intersect():
    comp = set_complement(ALL_COLUMNS, WITH_DEFAULT)
    assert comp == ["title", "description", "deadline"]
    assert not set(comp) & set(WITH_DEFAULT)
    inter = set_intersect(ALL_COLUMNS, WITH_DEFAULT)
    assert inter == ["id", "status", "created_at", "updated_at", "deleted"]
    assert sorted(comp + inter) == sorted(ALL_COLUMNS)


def test_build_upsert_query_without_update_is_insert_ignore():
    query = build_upsert_query("`todos`", [], ["title", "description"])
    assert query == "INSERT IGNORE INTO `todos` (`title`,`description`) VALUES (?,?)"


def test_build_upsert_query_with_update():
    query = build_upsert_query("todos", ["title", "status"], ["id", "title", "status"])
    head, tail = query.split(" ON DUPLICATE KEY UPDATE ")
    assert head == f"INSERT INTO `todos` (`id`,`title`,`status`) VALUES ({placeholders(3)})"
    assert tail.split(",") == ["`title` = VALUES(`title`)", "`status` = VALUES(`status`)"]