# data.py
"""Rating-file parsing, writing and console logging shared by every stage.

All stages hand off through tab-separated text files without a header, one
record per line:

  user_id <TAB> item_id <TAB> value [<TAB> timestamp]

`value` is the observed rating in split files and the predicted score in
recommendation and strategy files. Files are read back into pandas DataFrames
with canonical columns `user_id`, `item_id`, `rating` and, when present,
`timestamp`.

Parsers:
  parse_movielens  MovieLens `u.data` style (tab, or any separator such as "::").
  parse_simple     Files written by this package (save_data_model and the
                   recommendation writer).

Libraries
  pandas: CSV I/O and dtype coercion, the same reader/writer the rest of the
    pipeline uses for grouping and joins.
  sys/traceback: progress is printed to stdout, failures and their
    tracebacks to stderr.
"""

import argparse, sys, traceback
from pathlib import Path
import pandas as pd

COLUMNS = ["user_id", "item_id", "rating", "timestamp"]

def log(msg):
    print(msg, flush=True)

def log_error(msg, with_trace=False):
    """Report a failure on stderr; optionally dump the active traceback."""
    print(msg, file=sys.stderr, flush=True)
    if with_trace:
        traceback.print_exc()

def positive_int(value):
    """argparse type for counts such as folds, cutoffs and neighbourhood sizes."""
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected an integer >= 1, got {value}")
    return n

def empty_ratings():
    return pd.DataFrame({"user_id": pd.Series(dtype="int64"),
                         "item_id": pd.Series(dtype="int64"),
                         "rating":  pd.Series(dtype="float64")})

def clean_ratings(df):
    """
    Coerce a raw ratings frame to canonical dtypes.

    Drops rows with a missing id or a non-numeric rating and keeps the last
    occurrence of each (user_id, item_id) pair. The timestamp column is kept
    only when at least one row carries one.
    """
    need = {"user_id", "item_id", "rating"}
    if not need.issubset(df.columns):
        raise ValueError(f"Missing columns: need {need}, have {set(df.columns)}")

    df = df.copy()
    df["rating"] = pd.to_numeric(df["rating"], errors="coerce")
    df = df.dropna(subset=["user_id", "item_id", "rating"])
    df["user_id"] = df["user_id"].astype("int64")
    df["item_id"] = df["item_id"].astype("int64")
    df["rating"]  = df["rating"].astype("float64")
    if "timestamp" in df.columns:
        ts = pd.to_numeric(df["timestamp"], errors="coerce")
        if ts.isna().all():
            df = df.drop(columns="timestamp")
        else:
            df["timestamp"] = ts.fillna(0).astype("int64")
    df = df.drop_duplicates(subset=["user_id", "item_id"], keep="last")
    return df.reset_index(drop=True)

def _read(path, sep):
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing ratings file: {path}")
    if path.stat().st_size == 0:
        return empty_ratings()
    # python engine handles multi-character separators such as "::"
    engine = "c" if len(sep) == 1 else "python"
    df = pd.read_csv(path, sep=sep, header=None, engine=engine)
    if df.shape[1] < 3:
        raise ValueError(f"{path}: expected at least 3 columns, found {df.shape[1]}")
    df = df.iloc[:, :4]
    df.columns = COLUMNS[:df.shape[1]]
    return clean_ratings(df)

def parse_movielens(path, sep="\t"):
    """Parse a MovieLens ratings file (user, item, rating, timestamp)."""
    return _read(path, sep)

def parse_simple(path):
    """Parse a tab-separated user/item/value file written by this package."""
    return _read(path, "\t")

def save_data_model(df, path):
    """Write a ratings frame as tab-separated user/item/value[/timestamp] lines, overwriting `path`."""
    path = Path(path)
    cols = ["user_id", "item_id", "rating"] + (["timestamp"] if "timestamp" in df.columns else [])
    df[cols].to_csv(path, sep="\t", header=False, index=False)
    return path

def items_per_user(df):
    """Map user_id -> set of item_ids present in `df`."""
    return {int(u): set(int(i) for i in g) for u, g in df.groupby("user_id")["item_id"]}
