# strategy.py
"""Evaluation strategies: which items are eligible to be scored for each user.

A strategy is built from a fold's (training, test, threshold) and answers
`candidate_items(user)`. Applying it to a recommendation file keeps only the
recommended (user, item, score) rows whose item is a candidate for that
user; the result is the "model to evaluate" saved as strategymodel_{i}.csv.

Strategies (configuration key -> class):
  user_test    items the user has in the test split.
  test_items   every test-split item the user did not rate in training.
  train_items  every training-split item the user did not rate in training.
  all_items    every item of train or test the user did not rate in training.
  rel_plus_n   the user's relevant test items (rating >= threshold) plus N
               items sampled from those the user rated in neither split.
               Sampling is seeded per user, so a candidate set does not
               depend on the order users are asked in.

The set is closed: unknown keys raise ValueError, which stops the run.
"""

import argparse
import numpy as np
import pandas as pd

from .data import items_per_user, log, log_error, parse_simple, positive_int, save_data_model
from .paths import FoldPaths

REL_TH = 3.0

class EvaluationStrategy:
    """Base strategy holding the fold's per-user item sets."""

    def __init__(self, training, test, threshold=REL_TH):
        self.training = training
        self.test = test
        self.threshold = float(threshold)
        self._train_items = items_per_user(training)
        self._test_items = items_per_user(test)

    def rated_in_training(self, user):
        return self._train_items.get(int(user), set())

    def candidate_items(self, user):
        raise NotImplementedError

class UserTest(EvaluationStrategy):
    def candidate_items(self, user):
        return set(self._test_items.get(int(user), ()))

class TestItems(EvaluationStrategy):
    def __init__(self, training, test, threshold=REL_TH):
        super().__init__(training, test, threshold)
        self._catalog = set(int(i) for i in test["item_id"].unique())

    def candidate_items(self, user):
        return self._catalog - self.rated_in_training(user)

class TrainItems(EvaluationStrategy):
    def __init__(self, training, test, threshold=REL_TH):
        super().__init__(training, test, threshold)
        self._catalog = set(int(i) for i in training["item_id"].unique())

    def candidate_items(self, user):
        return self._catalog - self.rated_in_training(user)

class AllItems(EvaluationStrategy):
    def __init__(self, training, test, threshold=REL_TH):
        super().__init__(training, test, threshold)
        self._catalog = set(int(i) for i in pd.concat([training["item_id"], test["item_id"]]).unique())

    def candidate_items(self, user):
        return self._catalog - self.rated_in_training(user)

class RelPlusN(EvaluationStrategy):
    """Relevant test items plus `n` sampled unrated items per user."""

    def __init__(self, training, test, threshold=REL_TH, n=100, seed=2048):
        super().__init__(training, test, threshold)
        self.n = int(n)
        self.seed = int(seed)
        self._catalog = np.sort(pd.concat([training["item_id"], test["item_id"]]).unique())
        rel = test[test["rating"] >= self.threshold]
        self._relevant = items_per_user(rel)

    def candidate_items(self, user):
        user = int(user)
        rated = self.rated_in_training(user) | self._test_items.get(user, set())
        pool = [int(i) for i in self._catalog if int(i) not in rated]
        take = min(self.n, len(pool))
        extra = set()
        if take:
            rng = np.random.default_rng([self.seed, user])
            extra = set(int(i) for i in rng.choice(pool, size=take, replace=False))
        return set(self._relevant.get(user, ())) | extra

STRATEGIES = {
    "user_test": UserTest,
    "test_items": TestItems,
    "train_items": TrainItems,
    "all_items": AllItems,
    "rel_plus_n": RelPlusN,
}

def strategy_class(name):
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown evaluation strategy {name!r}; choose from {sorted(STRATEGIES)}") from None

def build_strategy(name, training, test, threshold=REL_TH, **kwargs):
    return strategy_class(name)(training, test, threshold, **kwargs)

def filter_recommendations(recs, strategy):
    """Keep the recommended rows whose item is a candidate for their user."""
    kept = []
    for u, g in recs.groupby("user_id", sort=True):
        candidates = strategy.candidate_items(u)
        kept.append(g[g["item_id"].isin(candidates)])
    if not kept:
        return recs.iloc[0:0]
    return pd.concat(kept).reset_index(drop=True)

def prepare_strategy(n_folds, split_dir, rec_dir, out_dir, strategy="user_test", threshold=REL_TH):
    """
    Save strategymodel_{i}.csv for every fold.

    Returns the list of files written. An unknown strategy raises before any
    fold is read; a fold whose files cannot be loaded stops the stage.
    """
    cls = strategy_class(strategy)
    paths = FoldPaths(split_dir, rec_dir, out_dir)
    paths.strategy_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for i in range(n_folds):
        try:
            training = parse_simple(paths.train(i))
            test = parse_simple(paths.test(i))
            recs = parse_simple(paths.recs(i))
        except (OSError, ValueError) as e:
            log_error(f"fold {i}: could not load models: {e}", with_trace=True)
            return written

        model_to_eval = filter_recommendations(recs, cls(training, test, threshold))
        out = save_data_model(model_to_eval, paths.strategy_model(i))
        log(f"fold {i}: {strategy} kept {len(model_to_eval)}/{len(recs)} recommendations -> {out}")
        written.append(out)
    return written

def main(argv=None):
    ap = argparse.ArgumentParser(description="Filter recommendations through an evaluation strategy.")
    ap.add_argument("--splits", default="data/ml-100k/model")
    ap.add_argument("--recs", default="data/ml-100k/recommendations")
    ap.add_argument("--outdir", default="data/ml-100k/model")
    ap.add_argument("--folds", type=positive_int, default=5)
    ap.add_argument("--strategy", choices=sorted(STRATEGIES), default="user_test")
    ap.add_argument("--threshold", type=float, default=REL_TH)
    args = ap.parse_args(argv)
    prepare_strategy(args.folds, args.splits, args.recs, args.outdir, args.strategy, args.threshold)

if __name__ == "__main__":
    main()
