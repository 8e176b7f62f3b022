"""k-fold offline evaluation of a user-based kNN recommender on MovieLens-style ratings."""

__version__ = "0.1.0"
