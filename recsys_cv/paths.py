"""Per-fold file layout shared by the split, recommend, strategy and evaluate stages."""

from pathlib import Path

class FoldPaths:
    """Builds the file path of each stage's output for fold `i`.

    Layout:
      <split_dir>/train_{i}.csv, <split_dir>/test_{i}.csv
      <rec_dir>/recs_{i}.csv
      <strategy_dir>/strategymodel_{i}.csv

    `rec_dir` and `strategy_dir` default to `split_dir`.
    """
    def __init__(self, split_dir, rec_dir=None, strategy_dir=None):
        self.split_dir = Path(split_dir)
        self.rec_dir = Path(rec_dir) if rec_dir is not None else self.split_dir
        self.strategy_dir = Path(strategy_dir) if strategy_dir is not None else self.split_dir

    def train(self, fold):
        return self.split_dir / f"train_{fold}.csv"

    def test(self, fold):
        return self.split_dir / f"test_{fold}.csv"

    def recs(self, fold):
        return self.rec_dir / f"recs_{fold}.csv"

    def strategy_model(self, fold):
        return self.strategy_dir / f"strategymodel_{fold}.csv"
