# evaluate.py
"""Average nDCG@K, RMSE and precision@K of every fold's recommendations.

For each fold the test split and the recommendation file are reloaded and
scored with `metrics.evaluate_fold`. Fold values are summed and divided by
the number of folds (an unweighted mean, no variance). A fold whose files
cannot be loaded is reported on stderr and contributes NaN, so the averages
come out NaN instead of a mean over the folds that happened to load.

Output, one line each:
  NDCG@10: <value>
  RMSE: <value>
  P@10: <value>
"""

import argparse, json
from pathlib import Path

from .config import AT, N_FOLDS, REL_TH
from .data import log, log_error, parse_simple, positive_int
from .metrics import evaluate_fold
from .paths import FoldPaths

def failed_fold(fold, at):
    nan = float("nan")
    return {"fold": fold, "users_evaluated": 0, f"ndcg@{at}": nan, f"precision@{at}": nan, "rmse": nan, "rmse_pairs": 0}

def evaluate(n_folds, split_dir, rec_dir, at=AT, threshold=REL_TH):
    """Score every fold and print the fold-averaged metrics; return them with per-fold values."""
    paths = FoldPaths(split_dir, rec_dir)
    per_fold = []
    for i in range(n_folds):
        try:
            test = parse_simple(paths.test(i))
            recs = parse_simple(paths.recs(i))
        except (OSError, ValueError) as e:
            log_error(f"fold {i}: could not load models: {e}", with_trace=True)
            per_fold.append(failed_fold(i, at))
            continue
        res = evaluate_fold(recs, test, at=at, threshold=threshold)
        res["fold"] = i
        per_fold.append(res)

    ndcg_res = sum(r[f"ndcg@{at}"] for r in per_fold) / n_folds
    rmse_res = sum(r["rmse"] for r in per_fold) / n_folds
    precision_res = sum(r[f"precision@{at}"] for r in per_fold) / n_folds

    log(f"NDCG@{at}: {ndcg_res}")
    log(f"RMSE: {rmse_res}")
    log(f"P@{at}: {precision_res}")
    return {
        "folds": n_folds,
        "at": at,
        "threshold": threshold,
        f"ndcg@{at}": ndcg_res,
        "rmse": rmse_res,
        f"precision@{at}": precision_res,
        "per_fold": per_fold,
    }

def main(argv=None):
    ap = argparse.ArgumentParser(description="Average per-fold nDCG, RMSE and precision of recommendation files.")
    ap.add_argument("--splits", default="data/ml-100k/model")
    ap.add_argument("--recs", default="data/ml-100k/recommendations")
    ap.add_argument("--folds", type=positive_int, default=N_FOLDS)
    ap.add_argument("--at", type=positive_int, default=AT)
    ap.add_argument("--threshold", type=float, default=REL_TH)
    ap.add_argument("--out", default="", help="optional path of a JSON report")
    args = ap.parse_args(argv)
    results = evaluate(args.folds, args.splits, args.recs, args.at, args.threshold)
    if args.out:
        Path(args.out).write_text(json.dumps(results, indent=2))
        log(str(Path(args.out).resolve()))

if __name__ == "__main__":
    main()
