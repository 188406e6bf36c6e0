import threadlite
import threading
import time
import os

COUNT = 100000

# Single engine step that keeps the engine busy for a while.
SLOW_QUERY = (
    "WITH RECURSIVE c(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM c WHERE n < 3000000) "
    "SELECT count(*) FROM c"
)


def bench_insert_and_fetch(db_path):
    conn = threadlite.connect(db_path)

    print("Setting up data...")
    conn.execute("CREATE TABLE bench (id INTEGER, val TEXT, f REAL)")
    data = [(i, f"value_{i}", float(i)) for i in range(COUNT)]

    start_time = time.perf_counter()
    with conn.transaction():
        conn.batch_execute("INSERT INTO bench VALUES (?, ?, ?)", data)
    end_time = time.perf_counter()
    print(f"Insert {COUNT} rows: {end_time - start_time:.4f}s")
    conn.close()

    for name in ("query", "query_tuple"):
        conn = threadlite.connect(db_path)
        start_time = time.perf_counter()
        rows = getattr(conn, name)("SELECT * FROM bench")
        end_time = time.perf_counter()
        print(f"{name} {COUNT} rows: {end_time - start_time:.4f}s")
        assert len(rows) == COUNT
        conn.close()

    conn = threadlite.connect(db_path)
    print("Benchmarking next_tuple()...")
    start_time = time.perf_counter()
    total = 0
    with conn.prepare("SELECT * FROM bench") as stmt:
        while stmt.next_tuple() is not None:
            total += 1
    end_time = time.perf_counter()
    print(f"next_tuple() {COUNT} rows: {end_time - start_time:.4f}s")
    assert total == COUNT
    conn.close()


def bench_yield_thresholds(db_path):
    """How much work a second thread gets done while a query steps."""
    print("Benchmarking yield thresholds...")
    for threshold in (0, 1, 10, 100, 1000):
        conn = threadlite.connect(db_path, yield_threshold=threshold)
        done = threading.Event()
        ticks = [0]

        def ticker():
            while not done.is_set():
                ticks[0] += 1
                time.sleep(0.0005)

        thread = threading.Thread(target=ticker)
        thread.start()

        start_time = time.perf_counter()
        conn.query_single_value(SLOW_QUERY)
        rows = conn.query_tuple("SELECT * FROM bench")
        end_time = time.perf_counter()

        done.set()
        thread.join()
        conn.close()
        assert len(rows) == COUNT
        print(f"yield_threshold={threshold:<5} {end_time - start_time:.4f}s, other thread ticks: {ticks[0]}")


def run_benchmark():
    db_path = "bench_fetch.db"
    if os.path.exists(db_path):
        os.remove(db_path)

    bench_insert_and_fetch(db_path)
    bench_yield_thresholds(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)


if __name__ == "__main__":
    run_benchmark()
