import pandas as pd
import pytest


def synthetic_ratings(n_users=20, n_items=10):
    """Every user rates every item; users u and u+5 share the same ratings."""
    rows = [(u, i, float((3 * u + 7 * i) % 5 + 1), 880000000 + 100 * u + i)
            for u in range(1, n_users + 1) for i in range(1, n_items + 1)]
    return pd.DataFrame(rows, columns=["user_id", "item_id", "rating", "timestamp"])


def write_movielens(path, df):
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", header=False, index=False)
    return path


@pytest.fixture
def ratings():
    return synthetic_ratings()


@pytest.fixture
def ratings_file(tmp_path, ratings):
    return write_movielens(tmp_path / "ml-100k" / "u.data", ratings)
