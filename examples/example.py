"""Example: Basic threadlite usage.

threadlite loads the system SQLite library. To use a specific build:
    THREADLITE_SQLITE_LIB=/path/to/libsqlite3.so python example.py
"""

import logging
import os
import tempfile
import threading
import threadlite


def main():
    logging.basicConfig(level=logging.INFO)
    print(f"SQLite {threadlite.sqlite3_version()}")

    # Create a temporary database file for this example.
    db_path = os.path.join(tempfile.gettempdir(), "threadlite_example.db")
    if os.path.exists(db_path):
        os.unlink(db_path)

    conn = threadlite.connect(db_path, busy_timeout=2.0)

    # Create a table.
    conn.execute("""
        CREATE TABLE users (
            id    INTEGER PRIMARY KEY,
            name  TEXT NOT NULL,
            email TEXT UNIQUE
        )
    """)

    # Insert rows, one statement per parameter set.
    users = [
        ("Alice", "alice@example.com"),
        ("Bob", "bob@example.com"),
        ("Carol", "carol@example.com"),
    ]
    conn.batch_execute("INSERT INTO users (name, email) VALUES (?, ?)", users)

    # Query all users.
    print("All users:")
    for row in conn.query("SELECT id, name, email FROM users ORDER BY id"):
        print(f"  id={row['id']}  name={row['name']}  email={row['email']}")

    # Parameterised lookup, positional and named.
    name = conn.query_single_value("SELECT name FROM users WHERE email = ?", "bob@example.com")
    print(f"\nLookup by email: {name}")
    row = conn.query_single_row("SELECT * FROM users WHERE name = :name", {"name": "Carol"})
    print(f"Lookup by name: {row}")

    # Transaction example: committed on success, rolled back on error.
    with conn.transaction():
        conn.execute("INSERT INTO users (name, email) VALUES (?, ?)", "Dave", "dave@example.com")
    try:
        with conn.transaction():
            conn.execute("INSERT INTO users (name, email) VALUES (?, ?)", "Eve", "eve@example.com")
            conn.execute("INSERT INTO users (name, email) VALUES (?, ?)", "Mallory", "alice@example.com")
    except threadlite.SQLError as e:
        print(f"\nRolled back: {e}")

    count = conn.query_single_value("SELECT count(*) FROM users")
    print(f"Total users after transactions: {count}")

    # Another thread cancels a long-running query.
    timer = threading.Timer(0.2, conn.interrupt)
    timer.start()
    try:
        conn.query_single_value(
            "WITH RECURSIVE c(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM c) SELECT count(*) FROM c"
        )
    except threadlite.InterruptError as e:
        print(f"\nLong query: {e}")
    timer.join()

    # Copy the database into memory.
    mem = threadlite.connect()
    conn.backup(mem, progress=lambda remaining, total: print(f"Backup: {total - remaining}/{total} pages"))
    print(f"In-memory copy has {mem.query_single_value('SELECT count(*) FROM users')} users")
    mem.close()

    conn.close()

    # Clean up.
    for suffix in ("", "-journal"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass

    print("\nDone.")


if __name__ == "__main__":
    main()
