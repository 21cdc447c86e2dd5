from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import astuple, dataclass
from pathlib import Path

from .models import Direction, Tick

FEATURE_WINDOW = 60
LABEL_HORIZON = 120

_MFE_COLUMNS: dict[str, str] = {
    "up": "mfe_up_120",
    "down": "mfe_down_120",
}


@dataclass(frozen=True)
class MicrostructureFeatures:
    vel10: float
    vel30: float
    vel60: float
    accel: float
    comp60: float


@dataclass(frozen=True)
class SampleRow:
    symbol: str
    epoch: int
    quote: float
    vel10: float
    vel30: float
    vel60: float
    accel: float
    comp60: float
    mfe_up_120: float
    mfe_down_120: float


def _features_at(prices: Sequence[float], index: int) -> MicrostructureFeatures:
    price = prices[index]
    vel10 = price - prices[index - 10]
    vel30 = price - prices[index - 30]
    vel60 = price - prices[index - 60]
    past = prices[index - FEATURE_WINDOW : index + 1]
    return MicrostructureFeatures(
        vel10=vel10,
        vel30=vel30,
        vel60=vel60,
        accel=vel10 - (vel30 / 3),
        comp60=max(past) - min(past),
    )


def microstructure_features(ticks: Sequence[Tick]) -> MicrostructureFeatures | None:
    if len(ticks) <= FEATURE_WINDOW:
        return None
    prices = [tick.price for tick in ticks]
    return _features_at(prices, len(prices) - 1)


def build_sample_rows(
    symbol: str,
    ticks: Sequence[Tick],
    *,
    horizon: int = LABEL_HORIZON,
) -> Iterator[SampleRow]:
    """Label each tick with the forward excursions over the next `horizon` ticks.

    Only ticks with a full feature window behind them and a full horizon
    ahead of them produce a row.
    """
    prices = [tick.price for tick in ticks]
    for i in range(FEATURE_WINDOW, len(prices) - horizon):
        features = _features_at(prices, i)
        future = prices[i + 1 : i + horizon + 1]
        price = prices[i]
        yield SampleRow(
            symbol=symbol,
            epoch=ticks[i].epoch,
            quote=price,
            vel10=features.vel10,
            vel30=features.vel30,
            vel60=features.vel60,
            accel=features.accel,
            comp60=features.comp60,
            mfe_up_120=max(max(future), price) - price,
            mfe_down_120=price - min(min(future), price),
        )


def write_samples(db_path: str, rows: Iterable[SampleRow]) -> int:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS mfe_dataset (
                    symbol TEXT,
                    epoch INTEGER,
                    quote REAL,
                    vel10 REAL,
                    vel30 REAL,
                    vel60 REAL,
                    accel REAL,
                    comp60 REAL,
                    mfe_up_120 REAL,
                    mfe_down_120 REAL,
                    PRIMARY KEY (symbol, epoch)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_mfe_symbol_epoch ON mfe_dataset(symbol, epoch)"
            )
            cursor = conn.executemany(
                """
                INSERT OR IGNORE INTO mfe_dataset (
                    symbol, epoch, quote, vel10, vel30, vel60, accel, comp60,
                    mfe_up_120, mfe_down_120
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (astuple(row) for row in rows),
            )
            return cursor.rowcount
    finally:
        conn.close()


class SampleRepository:
    """Read-only view over the labelled historical sample table."""

    def __init__(self, db_path: str = "data/ticks.db") -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        if not self._db_path.is_file():
            raise sqlite3.OperationalError(f"sample database not found: {self._db_path}")
        conn = sqlite3.connect(f"file:{self._db_path.as_posix()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    def available(self) -> bool:
        try:
            conn = self._connect()
        except sqlite3.Error:
            return False
        try:
            conn.execute("SELECT 1 FROM mfe_dataset LIMIT 1").fetchall()
            return True
        except sqlite3.Error:
            return False
        finally:
            conn.close()

    def count(self, symbol: str) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM mfe_dataset WHERE symbol = ?",
                (symbol,),
            ).fetchone()
        finally:
            conn.close()
        return int(row["total"]) if row is not None else 0

    def touch_counts(self, symbol: str, barrier: float, direction: Direction) -> tuple[int, int]:
        column = _MFE_COLUMNS[direction]
        conn = self._connect()
        try:
            row = conn.execute(
                f"""
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN {column} >= ? THEN 1 ELSE 0 END) AS hits
                FROM mfe_dataset
                WHERE symbol = ?
                """,
                (barrier, symbol),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return 0, 0
        return int(row["total"] or 0), int(row["hits"] or 0)
