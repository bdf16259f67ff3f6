from newsharvest.db import DBConn, connect_db, qmark_to_format


def test_qmark_to_format_skips_quoted_literals():
    sql = "SELECT id FROM articles WHERE title = '?' AND media_id = ? AND article_id IN (?, ?)"
    assert qmark_to_format(sql) == (
        "SELECT id FROM articles WHERE title = '?' AND media_id = %s AND article_id IN (%s, %s)"
    )


def test_postgres_backend_rewrites_placeholders():
    class Cursor:
        def __init__(self):
            self.executed = []

        def execute(self, sql, params):
            self.executed.append((sql, params))

    cursor = Cursor()

    class Raw:
        def cursor(self):
            return cursor

    DBConn(Raw(), "postgres").execute("SELECT 1 FROM news_media WHERE slug = ?", ("err",))
    assert cursor.executed == [("SELECT 1 FROM news_media WHERE slug = %s", ("err",))]


def test_connect_db_creates_sqlite_directory(tmp_path):
    path = tmp_path / "nested" / "state.sqlite3"
    conn = connect_db(str(path))
    try:
        assert conn.backend == "sqlite"
        row = conn.execute("SELECT slug FROM news_media WHERE id = ?", (2,)).fetchone()
        assert row == ("err",)
    finally:
        conn.close()
    assert path.exists()
