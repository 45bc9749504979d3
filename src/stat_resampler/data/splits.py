import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Iterator
from sklearn.model_selection import KFold

from stat_resampler.config import STRATEGIES
from stat_resampler.errors import InvalidArgument


@dataclass
class ResampleSplit:
    """One (training, testing) pair drawn from a dataset."""
    index: int
    train: pd.DataFrame
    test: pd.DataFrame | None
    train_indices: np.ndarray  # row positions into the source dataset
    test_indices: np.ndarray

    @property
    def train_size(self) -> int:
        return len(self.train)

    @property
    def test_size(self) -> int:
        return 0 if self.test is None else len(self.test)

    @property
    def has_test(self) -> bool:
        return self.test_size > 0


def _take(data: pd.DataFrame, positions: np.ndarray) -> pd.DataFrame:
    return data.iloc[positions].reset_index(drop=True)


class ResampleGenerator:
    """Produce N resample splits from a dataset.

    Each resample draws from its own child of one ``SeedSequence``, so split
    ``i`` depends only on ``(seed, i)``. Re-invoking :meth:`generate` with the
    same seed replays the same sequence, and splits can be handed to parallel
    workers without sharing a random stream.

    Strategies:
      - bootstrap: n rows drawn with replacement (optionally the out-of-bag
        rows as test set)
      - monte_carlo: round(f * n) rows without replacement, rest is test set
      - kfold: shuffled k-fold partition, one split per fold
    """

    def __init__(
        self,
        strategy: str = "bootstrap",
        n_resamples: int = 100,
        train_fraction: float | None = None,
        train_size: int | None = None,
        seed: int | None = None,
        out_of_bag: bool = False,
    ):
        if strategy not in STRATEGIES:
            raise InvalidArgument(
                f"strategy must be one of {STRATEGIES}, got '{strategy}'"
            )
        if isinstance(n_resamples, bool) or not isinstance(n_resamples, (int, np.integer)) \
                or n_resamples < 1:
            raise InvalidArgument(
                f"n_resamples must be a positive integer, got {n_resamples!r}"
            )
        if train_fraction is not None and not 0 < train_fraction < 1:
            raise InvalidArgument(
                f"train_fraction must be in (0, 1), got {train_fraction}"
            )
        if strategy == "monte_carlo" and train_fraction is None and train_size is None:
            train_fraction = 0.8

        self.strategy = strategy
        self.n_resamples = int(n_resamples)
        self.train_fraction = train_fraction
        self.train_size = train_size
        self.seed = seed
        self.out_of_bag = out_of_bag

    def __len__(self) -> int:
        return self.n_resamples

    def monte_carlo_train_size(self, n: int) -> int:
        """Training rows per Monte-Carlo split (half-up rounding of f * n)."""
        if self.train_size is not None:
            size = int(self.train_size)
        else:
            size = int(np.floor(self.train_fraction * n + 0.5))
        if size < 1 or size > n - 1:
            raise InvalidArgument(
                f"Training size {size} leaves an empty training or testing "
                f"subset for {n} rows"
            )
        return size

    def generate(self, data: pd.DataFrame) -> Iterator[ResampleSplit]:
        """Lazily yield ``n_resamples`` splits of ``data``.

        Validation happens before the first split is produced, so errors
        surface on the call rather than on first iteration.
        """
        n = len(data)
        if n < 1:
            raise InvalidArgument("Cannot resample an empty dataset")

        if self.strategy == "bootstrap":
            return self._bootstrap(data, n)
        if self.strategy == "monte_carlo":
            return self._monte_carlo(data, n, self.monte_carlo_train_size(n))
        if self.n_resamples < 2 or self.n_resamples > n:
            raise InvalidArgument(
                f"kfold needs 2 <= n_resamples <= {n}, got {self.n_resamples}"
            )
        return self._kfold(data, n)

    def _child_rngs(self) -> Iterator[np.random.Generator]:
        # spawn(1) repeatedly yields the same children as spawn(n), one at a time
        root = np.random.SeedSequence(self.seed)
        for _ in range(self.n_resamples):
            yield np.random.default_rng(root.spawn(1)[0])

    def _bootstrap(self, data: pd.DataFrame, n: int) -> Iterator[ResampleSplit]:
        all_rows = np.arange(n)
        for i, rng in enumerate(self._child_rngs()):
            train_idx = rng.integers(0, n, size=n)
            if self.out_of_bag:
                test_idx = np.setdiff1d(all_rows, train_idx)
            else:
                test_idx = np.array([], dtype=int)
            yield ResampleSplit(
                index=i,
                train=_take(data, train_idx),
                test=_take(data, test_idx) if len(test_idx) else None,
                train_indices=train_idx,
                test_indices=test_idx,
            )

    def _monte_carlo(
        self, data: pd.DataFrame, n: int, size: int
    ) -> Iterator[ResampleSplit]:
        for i, rng in enumerate(self._child_rngs()):
            perm = rng.permutation(n)
            train_idx = np.sort(perm[:size])
            test_idx = np.sort(perm[size:])
            yield ResampleSplit(
                index=i,
                train=_take(data, train_idx),
                test=_take(data, test_idx),
                train_indices=train_idx,
                test_indices=test_idx,
            )

    def _kfold(self, data: pd.DataFrame, n: int) -> Iterator[ResampleSplit]:
        state = int(np.random.SeedSequence(self.seed).generate_state(1)[0])
        kf = KFold(n_splits=self.n_resamples, shuffle=True, random_state=state)
        for i, (train_idx, test_idx) in enumerate(kf.split(np.arange(n))):
            yield ResampleSplit(
                index=i,
                train=_take(data, train_idx),
                test=_take(data, test_idx),
                train_indices=train_idx,
                test_indices=test_idx,
            )
