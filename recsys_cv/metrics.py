"""Ranking and error metrics for one fold of recommendations.

nDCG@k uses graded relevance: an item's gain is 2^rating - 1 where rating is
the user's test rating (0 if the item is not in the user's test set), with
discount log2(rank + 1). The ideal ranking sorts the user's test ratings.

Precision@k counts recommended items in the top k whose test rating is at
least the relevance threshold, divided by k.

RMSE compares predicted scores to test ratings over the (user, item) pairs
present in both the recommendations and the test split.

Ranking metrics are averaged over test users that received at least one
recommendation; users without any are not counted.
"""

import math
import numpy as np

def gain(rel):
    return 2.0 ** rel - 1.0

def dcg(rels):
    """Discounted cumulative gain of relevance grades in rank order."""
    return sum(gain(rel) / math.log2(rank + 1) for rank, rel in enumerate(rels, start=1) if rel > 0)

def ndcg_at_k(rec_items, grades, k):
    """
    Compute nDCG@k for a single user.

    Args:
      rec_items (Sequence[int]): Ranked recommended item_ids.
      grades (dict[int,float]): Test item_id -> rating for this user.
      k (int): Cutoff.

    Returns:
      float: nDCG@k in [0,1]. 0 if k==0 or the ideal DCG is 0.
    """
    if k == 0: return 0.0
    idcg = dcg(sorted(grades.values(), reverse=True)[:k])
    if idcg == 0: return 0.0
    return dcg([grades.get(i, 0.0) for i in rec_items[:k]]) / idcg

def precision_at_k(rec_items, rel_set, k):
    """
    Compute precision@k for a single user.
    """
    if k == 0: return 0.0
    return sum(i in rel_set for i in rec_items[:k]) / k

def rmse(predicted, actual):
    """Root-mean-square error; NaN when there is nothing to compare."""
    y = np.asarray(actual, dtype=float)
    yhat = np.asarray(predicted, dtype=float)
    if y.size == 0: return float("nan")
    return float(np.sqrt(np.mean((y - yhat) ** 2)))

def evaluate_fold(recs, test, at=10, threshold=3.0):
    """
    Compute nDCG@at, precision@at and RMSE of `recs` against `test`.

    `recs` holds predicted scores in its `rating` column; rows are ranked per
    user by score descending, ties by item id.
    """
    recs = recs.sort_values(["user_id", "rating", "item_id"], ascending=[True, False, True], kind="mergesort")
    ranked = {int(u): [int(i) for i in g] for u, g in recs.groupby("user_id")["item_id"]}
    grades = {int(u): dict(zip(g["item_id"].astype(int), g["rating"].astype(float)))
              for u, g in test.groupby("user_id")}
    relevant = {u: {i for i, r in g.items() if r >= threshold} for u, g in grades.items()}

    users = sorted(set(grades).intersection(ranked))
    ndcgs, precs = [], []
    for u in users:
        rec = ranked[u]
        ndcgs.append(ndcg_at_k(rec, grades[u], at))
        precs.append(precision_at_k(rec, relevant[u], at))

    pairs = recs[["user_id", "item_id", "rating"]].merge(
        test[["user_id", "item_id", "rating"]], on=["user_id", "item_id"], suffixes=("_pred", "_true"))
    return {
        "users_evaluated": int(len(users)),
        f"ndcg@{at}": float(np.mean(ndcgs)) if ndcgs else 0.0,
        f"precision@{at}": float(np.mean(precs)) if precs else 0.0,
        "rmse": rmse(pairs["rating_pred"].values, pairs["rating_true"].values),
        "rmse_pairs": int(len(pairs)),
    }
