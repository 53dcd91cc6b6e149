"""SQLite persistence — single file, zero config."""
import sqlite3
from contextlib import contextmanager

from closing.config import get_settings

SCHEMA = """\
CREATE TABLE IF NOT EXISTS transactions(
  id TEXT PRIMARY KEY, user_id TEXT NOT NULL,
  offer_id TEXT UNIQUE NOT NULL, listing_id TEXT NOT NULL,
  status TEXT DEFAULT 'under_contract',
  closing_date TEXT, earnest_money REAL DEFAULT 0,
  created TEXT DEFAULT(strftime('%Y-%m-%dT%H:%M:%f','now','localtime')),
  updated TEXT DEFAULT(strftime('%Y-%m-%dT%H:%M:%f','now','localtime'))
);
CREATE TABLE IF NOT EXISTS tasks(
  id TEXT PRIMARY KEY, txn TEXT NOT NULL,
  title TEXT NOT NULL, description TEXT DEFAULT '',
  due TEXT, completed INTEGER DEFAULT 0, completed_at TEXT,
  sort_order INTEGER DEFAULT 0,
  FOREIGN KEY(txn) REFERENCES transactions(id)
);
CREATE INDEX IF NOT EXISTS tasks_txn ON tasks(txn, sort_order);
CREATE TABLE IF NOT EXISTS audit(
  id INTEGER PRIMARY KEY AUTOINCREMENT, txn TEXT,
  action TEXT, detail TEXT,
  ts TEXT DEFAULT(datetime('now','localtime'))
);"""

NOW = "strftime('%Y-%m-%dT%H:%M:%f','now','localtime')"


@contextmanager
def conn():
    c = sqlite3.connect(str(get_settings().db_path), timeout=15)
    c.row_factory = sqlite3.Row
    c.executescript(SCHEMA)
    try:
        yield c
        c.commit()
    finally:
        c.close()


def txn(c, tid):
    r = c.execute("SELECT * FROM transactions WHERE id=?", (tid,)).fetchone()
    return dict(r) if r else None


def txn_for_offer(c, offer_id):
    r = c.execute("SELECT * FROM transactions WHERE offer_id=?", (offer_id,)).fetchone()
    return dict(r) if r else None


def active(c, user_id):
    r = c.execute(
        "SELECT * FROM transactions WHERE user_id=? ORDER BY created DESC, rowid DESC LIMIT 1",
        (user_id,),
    ).fetchone()
    return dict(r) if r else None


def task(c, task_id):
    r = c.execute("SELECT * FROM tasks WHERE id=?", (task_id,)).fetchone()
    return dict(r) if r else None


def tasks(c, tid) -> list[dict]:
    rows = c.execute("SELECT * FROM tasks WHERE txn=? ORDER BY sort_order", (tid,))
    return [dict(r) for r in rows]


def set_status_if(c, tid: str, expected: str, status: str) -> bool:
    """Compare-and-set the stage; False if another writer moved it first."""
    cur = c.execute(
        f"UPDATE transactions SET status=?, updated={NOW} WHERE id=? AND status=?",
        (status, tid, expected),
    )
    return cur.rowcount == 1


def log(c, txn_id: str, action: str, detail: str = ""):
    c.execute("INSERT INTO audit(txn,action,detail) VALUES(?,?,?)", (txn_id, action, detail))


def audit(c, txn_id: str) -> list[dict]:
    rows = c.execute("SELECT * FROM audit WHERE txn=? ORDER BY id", (txn_id,))
    return [dict(r) for r in rows]
