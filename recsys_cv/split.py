# split.py
"""Split a ratings file into N cross-validation folds, per user or globally.

Each rating is placed in exactly one test fold; the training half of fold f
is every rating not in test fold f, so train_f and test_f are disjoint and the
N test files together cover the input once.

Per-user split: each user's ratings are shuffled with a seeded numpy
  generator and dealt round-robin, so the j-th shuffled rating of a user goes
  to test fold j % N. A user with a single rating only ever appears in test
  fold 0 (and in every other fold's training half).

Global split: all ratings are shuffled together and dealt round-robin.

Input rows are deduplicated on (user_id, item_id) and sorted before
shuffling, so the same seed and the same ratings always give byte-identical
fold files regardless of input row order. Output rows are sorted by
(user_id, item_id).

Outputs (under --outdir):
  - train_{i}.csv, test_{i}.csv   tab-separated user/item/rating[/timestamp]
  - split_stats.json

Libraries
  pandas: parsing, grouping and the tab-separated writers.
  numpy: seeded Generator for reproducible permutations.
"""

import argparse, json
from pathlib import Path
import numpy as np

from .config import N_FOLDS, SEED, parse_bool
from .data import log, log_error, parse_movielens, positive_int, save_data_model
from .paths import FoldPaths

class CrossValidationSplitter:
    """k-fold splitter returning alternating (train, test) frames."""

    def __init__(self, n_folds=N_FOLDS, per_user=True, seed=SEED):
        if int(n_folds) < 1:
            raise ValueError(f"n_folds must be >= 1, got {n_folds}")
        self.n_folds = int(n_folds)
        self.per_user = bool(per_user)
        self.seed = int(seed)

    def assign_folds(self, df):
        """Return the test fold of every row of `df` (positional)."""
        rng = np.random.default_rng(self.seed)
        folds = np.empty(len(df), dtype=np.int64)
        if self.per_user:
            groups = df.groupby("user_id", sort=True).indices
            for uid in sorted(groups):
                idx = groups[uid]
                perm = rng.permutation(len(idx))
                folds[idx[perm]] = np.arange(len(idx)) % self.n_folds
        else:
            perm = rng.permutation(len(df))
            folds[perm] = np.arange(len(df)) % self.n_folds
        return folds

    def split(self, df):
        """Return [train_0, test_0, train_1, test_1, ...] for `df`."""
        df = (df.drop_duplicates(subset=["user_id", "item_id"], keep="last")
                .sort_values(["user_id", "item_id"], kind="mergesort")
                .reset_index(drop=True))
        folds = self.assign_folds(df)
        out = []
        for f in range(self.n_folds):
            out.append(df[folds != f].reset_index(drop=True))
            out.append(df[folds == f].reset_index(drop=True))
        return out

def split_stats(splits, n_folds, per_user, seed):
    stats = {"n_folds": n_folds, "per_user": per_user, "seed": seed, "folds": []}
    for i in range(len(splits) // 2):
        train, test = splits[2 * i], splits[2 * i + 1]
        stats["folds"].append({
            "fold": i,
            "n_rows_train": int(len(train)),
            "n_rows_test": int(len(test)),
            "n_users_train": int(train["user_id"].nunique()),
            "n_users_test": int(test["user_id"].nunique()),
            "n_items_train": int(train["item_id"].nunique()),
            "n_items_test": int(test["item_id"].nunique()),
            "test_items_covered_in_train": float(test["item_id"].isin(train["item_id"]).mean()) if len(test) else None,
        })
    return stats

def prepare_splits(n_folds, in_file, out_dir, per_user=True, seed=SEED, sep="\t"):
    """
    Parse `in_file`, split it into `n_folds` folds and save each half.

    Returns the list of (train_path, test_path) written, or None when the
    dataset could not be parsed or `out_dir` could not be created; both
    cases are reported on stderr and no fold is written.
    """
    try:
        data = parse_movielens(in_file, sep=sep)
    except (OSError, ValueError) as e:
        log_error(f"could not parse {in_file}: {e}", with_trace=True)
        return None

    splits = CrossValidationSplitter(n_folds, per_user, seed).split(data)

    out_dir = Path(out_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_error(f"Directory {out_dir} could not be created")
        return None

    paths = FoldPaths(out_dir)
    written = []
    for i in range(len(splits) // 2):
        training, test = splits[2 * i], splits[2 * i + 1]
        train_file, test_file = paths.train(i), paths.test(i)
        log(f"train: {train_file}")
        log(f"test: {test_file}")
        save_data_model(training, train_file)
        save_data_model(test, test_file)
        written.append((train_file, test_file))

    stats = split_stats(splits, n_folds, per_user, seed)
    stats["n_rows_in"] = int(len(data))
    (out_dir / "split_stats.json").write_text(json.dumps(stats, indent=2))
    return written

def main(argv=None):
    ap = argparse.ArgumentParser(description="Write k-fold train/test splits of a ratings file.")
    ap.add_argument("--ratings", required=True, help="MovieLens style ratings file (user, item, rating, timestamp)")
    ap.add_argument("--outdir", default="data/ml-100k/model")
    ap.add_argument("--folds", type=positive_int, default=N_FOLDS)
    ap.add_argument("--per_user", type=parse_bool, default=True)
    ap.add_argument("--seed", type=int, default=SEED)
    ap.add_argument("--sep", default="\t")
    args = ap.parse_args(argv)
    prepare_splits(args.folds, args.ratings, args.outdir, args.per_user, args.seed, sep=args.sep)

if __name__ == "__main__":
    main()
