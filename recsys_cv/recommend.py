# recommend.py
"""User-based kNN collaborative filtering and the per-fold recommendation stage.

Model
  Users are rows of a sparse user x item rating matrix built from the fold's
  training split. Similarity between users is either:
    - pearson: cosine over mean-centred rating vectors (each user's mean over
      the items they rated is subtracted from their ratings), or
    - cosine: cosine over raw rating vectors.
  A brute-force kNN index (scikit-learn NearestNeighbors, cosine distance)
  returns each user's nearest users; the user themself and neighbours with
  non-positive similarity are dropped, leaving at most `n_neighbors`.

  The predicted preference of user u for item i is the similarity-weighted
  average of the neighbours' ratings of i:

      est(u, i) = sum_v sim(u, v) * r(v, i) / sum_v sim(u, v)

  over the neighbours v who rated i. Items rated by fewer than `min_support`
  neighbours get no estimate; items u already rated in training are never
  recommended. Lists are ordered by estimate descending, ties by item id.

Stage
  For each fold, fit on train_{i}.csv and, for every user in test_{i}.csv in
  ascending id order, ask for a list as long as the training catalog and
  write it to recs_{i}.csv (first user truncates, later users append).
  Users unknown to the training split get an empty list.

  - a fold whose splits cannot be loaded stops the stage; later folds are
    not produced.
  - an error while recommending stops that fold's remaining users and is
    reported on stderr; the next fold still runs. recs_{i}.csv is left as
    written so far, with no marker.

Outputs:
  <outdir>/recs_{i}.csv   tab-separated user/item/score, grouped by user.

Libraries
  scipy.sparse: CSR rating matrix keeps memory low on sparse data.
  scikit-learn: NearestNeighbors provides a tested brute-force cosine kNN.
  numpy: vectorised weighted sums over the neighbour rows.
  pandas: split loading and the recommendation writer.
"""

import argparse
from pathlib import Path
import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix
from sklearn.neighbors import NearestNeighbors

from .data import log, log_error, parse_simple, positive_int
from .paths import FoldPaths

NEIGH_SIZE = 50
SIMILARITIES = ("pearson", "cosine")

class UserKNN:
    """User-based kNN recommender.

    Attributes:
      n_neighbors (int): Maximum neighbours per user.
      similarity (str): "pearson" or "cosine".
      min_support (int): Neighbours that must have rated an item to score it.
      user_index (dict[int,int]): user_id -> row index.
      item_ids (np.ndarray): Column index -> item_id, ascending.
      R (csr_matrix): User x item rating matrix.
      B (csr_matrix): Binary "rated" mask with the same sparsity as R.
      neighbors (list[tuple[np.ndarray, np.ndarray]]): Per user row,
        neighbour row indices and their similarities.
    """
    def __init__(self, n_neighbors=NEIGH_SIZE, similarity="pearson", min_support=2):
        if similarity not in SIMILARITIES:
            raise ValueError(f"Unknown similarity {similarity!r}; choose from {SIMILARITIES}")
        if int(n_neighbors) < 1:
            raise ValueError(f"n_neighbors must be >= 1, got {n_neighbors}")
        if int(min_support) < 1:
            raise ValueError(f"min_support must be >= 1, got {min_support}")
        self.n_neighbors = int(n_neighbors)
        self.similarity = similarity
        self.min_support = int(min_support)
        self.user_index = None
        self.item_ids = None
        self.R = None
        self.B = None
        self.neighbors = None

    @property
    def n_items(self):
        return 0 if self.item_ids is None else len(self.item_ids)

    def fit(self, train_df):
        """Build the rating matrix and precompute every user's neighbourhood."""
        if train_df.empty:
            raise ValueError("Training data is empty")
        train_df = train_df.drop_duplicates(subset=["user_id", "item_id"], keep="last")
        users = np.sort(train_df["user_id"].unique())
        self.item_ids = np.sort(train_df["item_id"].unique())
        self.user_index = {int(u): i for i, u in enumerate(users)}
        item_index = {int(it): j for j, it in enumerate(self.item_ids)}

        ui = train_df["user_id"].map(self.user_index).values
        ii = train_df["item_id"].map(item_index).values
        rr = train_df["rating"].astype(float).values
        shape = (len(users), len(self.item_ids))
        self.R = csr_matrix((rr, (ui, ii)), shape=shape)
        self.B = csr_matrix((np.ones_like(rr), (ui, ii)), shape=shape)

        self.neighbors = [(np.empty(0, dtype=np.int64), np.empty(0)) for _ in range(len(users))]
        if len(users) < 2:
            return self

        X = self._user_vectors()
        eff = min(self.n_neighbors, len(users) - 1)
        model = NearestNeighbors(n_neighbors=eff + 1, metric="cosine", algorithm="brute")
        model.fit(X)
        distances, indices = model.kneighbors(X, return_distance=True)
        # cosine distance d => similarity s = 1 - d
        sims = 1.0 - distances
        for row in range(len(users)):
            keep = indices[row] != row
            ind, sim = indices[row][keep][:eff], sims[row][keep][:eff]
            pos = sim > 0
            self.neighbors[row] = (ind[pos], sim[pos])
        return self

    def _user_vectors(self):
        if self.similarity == "cosine":
            return self.R
        # mean-centre each user over the items they rated
        counts = np.diff(self.R.indptr)
        sums = np.asarray(self.R.sum(axis=1)).ravel()
        means = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
        X = self.R.copy()
        X.data = X.data - np.repeat(means, counts)
        return X

    def estimate(self, user):
        """Return (item_ids, estimates) for every item the user can be scored on."""
        uidx = self.user_index.get(int(user))
        if uidx is None:
            return np.empty(0, dtype=np.int64), np.empty(0)
        nb, sims = self.neighbors[uidx]
        if nb.size == 0:
            return np.empty(0, dtype=np.int64), np.empty(0)
        Rn, Bn = self.R[nb], self.B[nb]
        num = Rn.T @ sims
        den = Bn.T @ sims
        support = np.asarray(Bn.sum(axis=0)).ravel()
        ok = support >= self.min_support
        ok[self.B[uidx].indices] = False
        return self.item_ids[ok], num[ok] / den[ok]

    def recommend(self, user, n):
        """Top-`n` (item_id, score) pairs for `user`; [] for unknown users."""
        items, est = self.estimate(user)
        if items.size == 0:
            return []
        order = np.lexsort((items, -est))[:n]
        return [(int(items[j]), float(est[j])) for j in order]

def write_recommendations(user, items, out_dir, file_name, append):
    """Write one user's list; truncate the file unless `append`."""
    path = Path(out_dir) / file_name
    rows = pd.DataFrame([(int(user), int(i), float(s)) for i, s in items],
                        columns=["user_id", "item_id", "rating"])
    rows.to_csv(path, sep="\t", header=False, index=False, mode="a" if append else "w")
    return path

def recommend_fold(model, test, out_dir, file_name, progress_every=500):
    """Write recommendations for every test user; return the number of users written."""
    users = np.sort(test["user_id"].unique())
    n = model.n_items
    for idx, u in enumerate(users):
        items = model.recommend(u, n)
        write_recommendations(u, items, out_dir, file_name, append=idx > 0)
        if (idx + 1) % progress_every == 0: log(f"[recs] users processed: {idx + 1}")
    return len(users)

def recommend(n_folds, in_dir, out_dir, n_neighbors=NEIGH_SIZE, similarity="pearson", min_support=2):
    """
    Fit a UserKNN per fold and write recs_{i}.csv for every test user.

    Returns the list of recommendation files completed.
    """
    in_paths = FoldPaths(in_dir, rec_dir=out_dir)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    done = []
    for i in range(n_folds):
        try:
            train = parse_simple(in_paths.train(i))
            test = parse_simple(in_paths.test(i))
        except (OSError, ValueError) as e:
            log_error(f"fold {i}: could not load splits: {e}", with_trace=True)
            return done

        rec_file = in_paths.recs(i)
        try:
            model = UserKNN(n_neighbors=n_neighbors, similarity=similarity, min_support=min_support).fit(train)
            log(f"fold {i}: users(train,test)=({len(model.user_index)},{test['user_id'].nunique()}), "
                f"items={model.n_items}, neighbors={n_neighbors}, similarity={similarity}")
            n_users = recommend_fold(model, test, out_dir, rec_file.name)
        except Exception as e:
            log_error(f"fold {i}: recommendation aborted: {e}", with_trace=True)
            continue
        log(f"fold {i}: wrote {n_users} lists to {rec_file}")
        done.append(rec_file)
    return done

def main(argv=None):
    ap = argparse.ArgumentParser(description="Write user-kNN recommendations for every fold's test users.")
    ap.add_argument("--splits", default="data/ml-100k/model", help="directory holding train_i/test_i files")
    ap.add_argument("--outdir", default="data/ml-100k/recommendations")
    ap.add_argument("--folds", type=positive_int, default=5)
    ap.add_argument("--neighbors", type=positive_int, default=NEIGH_SIZE)
    ap.add_argument("--similarity", choices=SIMILARITIES, default="pearson")
    ap.add_argument("--min_support", type=positive_int, default=2)
    args = ap.parse_args(argv)
    recommend(args.folds, args.splits, args.outdir, args.neighbors, args.similarity, args.min_support)

if __name__ == "__main__":
    main()
