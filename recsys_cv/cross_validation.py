# cross_validation.py
"""MovieLens 100k user-kNN example with k-fold cross-validation.

Pipeline:
  1) Download and unpack the dataset if data/ml-100k/u.data is missing.
  2) Split the ratings into N folds (per user or global, seeded).
  3) Fit a user-kNN per fold and write a full ranked list per test user.
  4) Filter each fold's recommendations through the evaluation strategy.
  5) Average nDCG@K, RMSE and precision@K over folds and print them.

CLI:
  -t/--threshold  relevance threshold (default: 3.0)
  -u/--per_user   per-user split, true/false (default: true)
  -n/--neighbors  neighbourhood size (default: 50)
  --folds, --at, --seed, --similarity, --strategy, --url, --data_dir, --data_file

Outputs (under --data_dir):
  model/train_{i}.csv, model/test_{i}.csv, model/split_stats.json
  recommendations/recs_{i}.csv
  model/strategymodel_{i}.csv
  model/cv_metrics.json
"""

import json

from .config import parse_cli
from .data import log
from .download import provision_dataset
from .evaluate import evaluate
from .recommend import recommend
from .split import prepare_splits
from .strategy import prepare_strategy

def run(settings):
    """Run the four stages in order with `settings`; return the evaluation results."""
    provision_dataset(settings.url, settings.data_dir, settings.data_path)
    paths = settings.fold_paths()

    log(f"split: folds={settings.folds}, per_user={settings.per_user}, seed={settings.seed}")
    prepare_splits(settings.folds, settings.data_path, paths.split_dir, settings.per_user, settings.seed)

    log(f"recommend: neighbors={settings.neighbors}, similarity={settings.similarity}")
    recommend(settings.folds, paths.split_dir, paths.rec_dir, settings.neighbors, settings.similarity)

    log(f"strategy: {settings.strategy}, threshold={settings.threshold}")
    prepare_strategy(settings.folds, paths.split_dir, paths.rec_dir, paths.strategy_dir,
                     settings.strategy, settings.threshold)

    results = evaluate(settings.folds, paths.split_dir, paths.rec_dir, settings.at, settings.threshold)
    results["settings"] = {
        "per_user": settings.per_user,
        "neighbors": settings.neighbors,
        "similarity": settings.similarity,
        "strategy": settings.strategy,
        "seed": settings.seed,
    }
    paths.split_dir.mkdir(parents=True, exist_ok=True)
    out = paths.split_dir / "cv_metrics.json"
    out.write_text(json.dumps(results, indent=2))
    log(str(out.resolve()))
    return results

def main(argv=None):
    run(parse_cli(argv))

if __name__ == "__main__":
    main()
