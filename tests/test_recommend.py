"""Tests for the user-kNN model and the recommend stage"""
import math

import pandas as pd
import pytest

from recsys_cv.data import parse_simple, save_data_model
from recsys_cv.recommend import UserKNN, recommend, write_recommendations
from recsys_cv.split import prepare_splits


@pytest.fixture
def train():
    rows = [
        (1, 1, 5.0), (1, 2, 3.0), (1, 3, 4.0),
        (2, 1, 5.0), (2, 2, 3.0), (2, 3, 4.0), (2, 4, 2.0), (2, 5, 5.0),
        (3, 1, 5.0), (3, 2, 3.0), (3, 3, 4.0), (3, 4, 4.0), (3, 5, 1.0),
        (4, 1, 1.0), (4, 2, 5.0), (4, 3, 2.0), (4, 4, 5.0),
    ]
    return pd.DataFrame(rows, columns=["user_id", "item_id", "rating"])


def neighbour_ids(model, user):
    rows, _ = model.neighbors[model.user_index[user]]
    inv = {v: k for k, v in model.user_index.items()}
    return {inv[r] for r in rows}


def test_neighbours_exclude_self_and_dissimilar_users(train):
    model = UserKNN(n_neighbors=50).fit(train)
    # user 4 rates against user 1's taste, pearson similarity is negative
    assert neighbour_ids(model, 1) == {2, 3}


def test_pearson_weighted_average(train):
    model = UserKNN(n_neighbors=50).fit(train)
    # mean-centred vectors: u1 (1,-1,0), u2 (1.2,-.8,.2,-1.8,1.2), u3 (1.6,-.4,.6,.6,-2.4)
    s2 = 2.0 / (math.sqrt(2) * math.sqrt(6.8))
    s3 = 2.0 / (math.sqrt(2) * math.sqrt(9.2))
    recs = model.recommend(1, model.n_items)
    assert [i for i, _ in recs] == [5, 4]
    assert recs[0][1] == pytest.approx((5 * s2 + 1 * s3) / (s2 + s3))
    assert recs[1][1] == pytest.approx((2 * s2 + 4 * s3) / (s2 + s3))


def test_single_neighbour_copies_its_ratings(train):
    model = UserKNN(n_neighbors=1, min_support=1).fit(train)
    assert neighbour_ids(model, 1) == {2}
    recs = model.recommend(1, 10)
    assert [i for i, _ in recs] == [5, 4]
    assert [s for _, s in recs] == pytest.approx([5.0, 2.0])


def test_min_support_filters_thinly_backed_items(train):
    model = UserKNN(n_neighbors=50, min_support=3).fit(train)
    assert model.recommend(1, 10) == []


def test_list_is_truncated_to_n(train):
    model = UserKNN().fit(train)
    assert len(model.recommend(1, 1)) == 1


def test_seen_items_never_recommended(train):
    for similarity in ("pearson", "cosine"):
        model = UserKNN(similarity=similarity, min_support=1).fit(train)
        for u, g in train.groupby("user_id"):
            got = {i for i, _ in model.recommend(u, model.n_items)}
            assert not got & set(g["item_id"])


def test_cosine_similarity_scores_between_neighbour_ratings(train):
    model = UserKNN(similarity="cosine", min_support=1).fit(train)
    recs = model.recommend(1, 10)
    assert {i for i, _ in recs} == {4, 5}
    for item, score in recs:
        rated = train[train.item_id == item]["rating"]
        assert rated.min() <= score <= rated.max()


def test_unknown_user_gets_empty_list(train):
    model = UserKNN().fit(train)
    assert model.recommend(99, 10) == []
    assert model.n_items == 5


def test_invalid_arguments(train):
    with pytest.raises(ValueError):
        UserKNN(similarity="jaccard")
    with pytest.raises(ValueError):
        UserKNN(n_neighbors=0)
    with pytest.raises(ValueError):
        UserKNN().fit(train.iloc[0:0])


def test_write_recommendations_truncates_then_appends(tmp_path):
    write_recommendations(1, [(5, 4.5), (4, 3.0)], tmp_path, "recs_0.csv", append=False)
    write_recommendations(2, [(1, 2.0)], tmp_path, "recs_0.csv", append=True)
    lines = (tmp_path / "recs_0.csv").read_text().splitlines()
    assert lines == ["1\t5\t4.5", "1\t4\t3.0", "2\t1\t2.0"]

    write_recommendations(3, [(7, 1.0)], tmp_path, "recs_0.csv", append=False)
    assert (tmp_path / "recs_0.csv").read_text().splitlines() == ["3\t7\t1.0"]


def test_recommend_stage_writes_lists_for_test_users_only(tmp_path, ratings_file):
    split_dir, rec_dir = tmp_path / "model", tmp_path / "recs"
    prepare_splits(5, ratings_file, split_dir, per_user=True, seed=2048)
    done = recommend(5, split_dir, rec_dir, n_neighbors=10)

    assert [p.name for p in done] == [f"recs_{i}.csv" for i in range(5)]
    for i in range(5):
        test = parse_simple(split_dir / f"test_{i}.csv")
        train = parse_simple(split_dir / f"train_{i}.csv")
        recs = parse_simple(rec_dir / f"recs_{i}.csv")
        assert not recs.empty
        assert set(recs["user_id"]) <= set(test["user_id"])
        assert not recs.duplicated(subset=["user_id", "item_id"]).any()
        # one contiguous block per user
        blocks = (recs["user_id"] != recs["user_id"].shift()).sum()
        assert blocks == recs["user_id"].nunique()
        seen = set(zip(train["user_id"], train["item_id"]))
        assert not seen & set(zip(recs["user_id"], recs["item_id"]))


def test_recommend_stage_stops_when_splits_missing(tmp_path, capsys):
    done = recommend(3, tmp_path / "missing", tmp_path / "recs")
    assert done == []
    assert "could not load splits" in capsys.readouterr().err


def test_failure_abandons_rest_of_fold_but_next_folds_run(tmp_path, ratings_file, monkeypatch, capsys):
    split_dir, rec_dir = tmp_path / "model", tmp_path / "recs"
    prepare_splits(3, ratings_file, split_dir, per_user=True, seed=2048)
    calls = []

    def flaky(self, user, n):
        calls.append(user)
        if len(calls) == 3:
            raise RuntimeError("estimate failed")
        return [(100 + len(calls), 4.0)]

    monkeypatch.setattr(UserKNN, "recommend", flaky)
    done = recommend(3, split_dir, rec_dir, n_neighbors=10)

    assert [p.name for p in done] == ["recs_1.csv", "recs_2.csv"]
    # fold 0 keeps the two users written before the failure
    assert parse_simple(rec_dir / "recs_0.csv")["user_id"].tolist() == [1, 2]
    for i in (1, 2):
        test = parse_simple(split_dir / f"test_{i}.csv")
        assert set(parse_simple(rec_dir / f"recs_{i}.csv")["user_id"]) == set(test["user_id"])
    assert "fold 0: recommendation aborted: estimate failed" in capsys.readouterr().err


def write_fold(split_dir, train, test_rows):
    split_dir.mkdir(parents=True, exist_ok=True)
    save_data_model(train, split_dir / "train_0.csv")
    save_data_model(pd.DataFrame(test_rows, columns=["user_id", "item_id", "rating"]), split_dir / "test_0.csv")


def test_cold_start_first_user_still_truncates_file(tmp_path, train):
    split_dir, rec_dir = tmp_path / "model", tmp_path / "recs"
    # user 0 is not in the training split
    write_fold(split_dir, train, [(0, 1, 4.0), (1, 4, 2.0)])
    rec_dir.mkdir()
    (rec_dir / "recs_0.csv").write_text("9\t9\t9.0\n")

    done = recommend(1, split_dir, rec_dir, n_neighbors=50)

    assert [p.name for p in done] == ["recs_0.csv"]
    recs = parse_simple(rec_dir / "recs_0.csv")
    assert recs["user_id"].tolist() == [1, 1]
    assert recs["item_id"].tolist() == [5, 4]


def test_only_cold_start_users_leave_empty_file(tmp_path, train):
    split_dir, rec_dir = tmp_path / "model", tmp_path / "recs"
    write_fold(split_dir, train, [(0, 1, 4.0), (7, 2, 3.0)])
    rec_dir.mkdir()
    (rec_dir / "recs_0.csv").write_text("9\t9\t9.0\n")

    recommend(1, split_dir, rec_dir)

    assert (rec_dir / "recs_0.csv").read_text() == ""
