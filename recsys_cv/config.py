"""Run settings for the cross-validation driver.

`Settings` is frozen: the CLI is parsed once and the same value is handed to
every stage. Defaults reproduce the MovieLens 100k tutorial run: 5 folds,
seed 2048, user-kNN with 50 neighbours, relevance threshold 3.0, cutoff 10.

Flags:
  -t/--threshold   relevance threshold (float)
  -u/--per_user    per-user split; only a case-insensitive "true" is true
  -n/--neighbors   neighbourhood size (int, read on its own)
"""

import argparse
from dataclasses import dataclass, field
from pathlib import Path

from .data import positive_int
from .download import ML100K_URL
from .paths import FoldPaths
from .recommend import NEIGH_SIZE, SIMILARITIES
from .strategy import REL_TH, STRATEGIES

N_FOLDS = 5
AT = 10
SEED = 2048

def parse_bool(value):
    """'true' in any case is True; everything else is False."""
    return str(value).lower() == "true"

@dataclass(frozen=True)
class Settings:
    threshold: float = REL_TH
    per_user: bool = True
    neighbors: int = NEIGH_SIZE
    folds: int = N_FOLDS
    at: int = AT
    seed: int = SEED
    similarity: str = "pearson"
    strategy: str = "user_test"
    url: str = ML100K_URL
    data_dir: Path = field(default_factory=lambda: Path("data/ml-100k"))
    data_file: str = "u.data"

    @property
    def data_path(self):
        return Path(self.data_dir) / self.data_file

    @property
    def model_dir(self):
        return Path(self.data_dir) / "model"

    @property
    def rec_dir(self):
        return Path(self.data_dir) / "recommendations"

    def fold_paths(self):
        return FoldPaths(self.model_dir, self.rec_dir, self.model_dir)

def build_parser():
    d = Settings()
    ap = argparse.ArgumentParser(prog="recsys-cv",
                                 description="k-fold cross-validation of a user-kNN recommender on MovieLens.")
    ap.add_argument("-t", "--threshold", type=float, default=d.threshold, help="relevance threshold")
    ap.add_argument("-u", "--per_user", type=parse_bool, default=d.per_user, help="per user split (true/false)")
    ap.add_argument("-n", "--neighbors", type=positive_int, default=d.neighbors, help="neighborhood size")
    ap.add_argument("--folds", type=positive_int, default=d.folds)
    ap.add_argument("--at", type=positive_int, default=d.at, help="cutoff for nDCG and precision")
    ap.add_argument("--seed", type=int, default=d.seed)
    ap.add_argument("--similarity", choices=SIMILARITIES, default=d.similarity)
    ap.add_argument("--strategy", choices=sorted(STRATEGIES), default=d.strategy)
    ap.add_argument("--url", default=d.url)
    ap.add_argument("--data_dir", default=str(d.data_dir))
    ap.add_argument("--data_file", default=d.data_file)
    return ap

def parse_cli(argv=None):
    args = build_parser().parse_args(argv)
    return Settings(
        threshold=args.threshold,
        per_user=args.per_user,
        neighbors=args.neighbors,
        folds=args.folds,
        at=args.at,
        seed=args.seed,
        similarity=args.similarity,
        strategy=args.strategy,
        url=args.url,
        data_dir=Path(args.data_dir),
        data_file=args.data_file,
    )
