"""Split observation indices into training and validation subsets.

Functions in this module accept either a data container, in which case
they return views of it, or a number of observations, in which case they
return index sets.
"""

import numbers

import numpy as np

from .errors import DimensionMismatchError
from .indexing import obsview
from .observation import getobs, numobs
from .utils import as_rng, basic_getitem, clip, group_indices, isint


def _label_values(labels, n):
    if numobs(labels) != n:
        raise DimensionMismatchError(
            "expected {} labels, got {}".format(n, numobs(labels)))

    return [getobs(labels, i) for i in range(n)]


# Split -----------------------------------------------------------------------

def _check_at(at, n):
    values = at if isinstance(at, tuple) else (at,)

    if all(isint(a) for a in values):
        if any(a < 0 for a in values) or sum(values) > n:
            raise ValueError(
                "split sizes must be positive and sum to at most the "
                "number of observations ({})".format(n))
        return tuple(int(a) / n if n > 0 else 0. for a in values)

    elif all(isinstance(a, numbers.Real) for a in values):
        if any(not 0 <= a <= 1 for a in values):
            raise ValueError("split proportions must be within [0, 1]")
        if sum(values) > 1 + 1e-8:
            raise ValueError("split proportions must sum to at most 1")
        return tuple(float(a) for a in values)

    else:
        raise ValueError(
            "at must be a proportion, a number of observations or a tuple "
            "of either")


def _split_ranges(n, at):
    if len(at) == 0:
        return [range(n)]

    n1 = clip(round(at[0] * n), 0, n)
    rest = n - n1
    if rest > 0:
        tail = tuple(clip(a * n / rest, 0., 1.) for a in at[1:])
    else:
        tail = tuple(0. for _ in at[1:])

    return [range(n1)] + [range(n1 + r.start, n1 + r.stop)
                          for r in _split_ranges(rest, tail)]


def _split_indices(n, at, shuffle, stratified, rng):
    at = _check_at(at, n)

    if stratified is None:
        parts = _split_ranges(n, at)
        if shuffle:
            order = rng.permutation(n)
            parts = [order[p.start:p.stop] for p in parts]
        return parts

    groups = group_indices(_label_values(stratified, n))
    parts = [[] for _ in range(len(at) + 1)]
    for idx in groups.values():
        if shuffle:
            idx = rng.permutation(idx)
        for part, r in zip(parts, _split_ranges(len(idx), at)):
            part.append(idx[r.start:r.stop])

    parts = [np.concatenate(p) if p else np.zeros((0,), dtype=np.intp)
             for p in parts]
    if shuffle:
        parts = [rng.permutation(p) for p in parts]

    return parts


def splitobs(data, at, shuffle=False, stratified=None, rng=None):
    """Split observations into disjoint subsets.

    Args:
        data (Union[int, Any]):
            a data container or a number of observations.
        at (Union[float, int, Tuple[float], Tuple[int]]):
            the proportion (or number) of observations in the first subset,
            or a tuple of proportions (or numbers) for the first subsets,
            remaining observations form the last subset.
        shuffle (bool):
            randomly permute the observations before splitting.
        stratified (Optional[Sequence]):
            labels of the observations, each subset will then preserve the
            proportion of each label (up to rounding).
        rng (Optional[Union[numpy.random.Generator, int]]):
            random number generator or seed used when shuffling.

    Return:
        tuple: the index sets of the subsets when `data` is an integer, or
        views of `data` otherwise.

    Example:

        >>> obstools.splitobs(100, at=0.7)
        (range(0, 70), range(70, 100))
        >>> obstools.splitobs(100, at=(0.1, 0.4))
        (range(0, 10), range(10, 50), range(50, 100))
    """
    rng = as_rng(rng) if shuffle else None
    n = data if isint(data) else numobs(data)
    parts = _split_indices(n, at, shuffle, stratified, rng)

    if isint(data):
        return tuple(parts)
    else:
        return tuple(obsview(data, p) for p in parts)


# Folds -----------------------------------------------------------------------

def _fold_ranges(n, k, shift=0):
    # extra observations go to folds shift, shift + 1, ... (modulo k)
    folds = []
    offset = 0
    for i in range(k):
        size = n // k + (1 if (i - shift) % k < n % k else 0)
        folds.append(range(offset, offset + size))
        offset += size

    return folds


def _kfold_indices(n, k, stratified):
    if not isint(k) or not 2 <= k <= n:
        raise ValueError(
            "k must be within [2, {}], got {}".format(max(2, n), k))

    if stratified is None:
        val_indices = _fold_ranges(n, k)
    else:
        groups = group_indices(_label_values(stratified, n))
        parts = [[] for _ in range(k)]
        shift = 0
        for idx in groups.values():
            for part, r in zip(parts, _fold_ranges(len(idx), k, shift)):
                part.append(idx[r.start:r.stop])
            shift = (shift + len(idx)) % k
        val_indices = [np.concatenate(p) for p in parts]

    everything = np.arange(n)
    train_indices = [np.setdiff1d(everything, np.asarray(v, dtype=np.intp))
                     for v in val_indices]

    return train_indices, val_indices


class Folds:
    """Sequence of (train, validation) views of a data container."""

    def __init__(self, data, train_indices, val_indices):
        self.data = data
        self.train_indices = train_indices
        self.val_indices = val_indices

    def __len__(self):
        return len(self.val_indices)

    def __iter__(self):
        for i in range(len(self)):
            yield self[i]

    @basic_getitem
    def __getitem__(self, key):
        return (obsview(self.data, self.train_indices[key]),
                obsview(self.data, self.val_indices[key]))


def kfolds(data, k=5, stratified=None):
    """Repartition observations `k` times using a k-folds strategy.

    Each observation is assigned to a single validation fold, folds are
    contiguous and their sizes differ by at most one, extra observations
    go to the first folds. Shuffle the data beforehand with
    :func:`shuffleobs` for random assignments.

    Args:
        data (Union[int, Any]):
            a data container or a number of observations.
        k (int): number of folds, within :code:`[2, n]`.
        stratified (Optional[Sequence]):
            labels of the observations, folds are then computed for each
            label separately so that they preserve label proportions.

    Return:
        When `data` is an integer, a pair of lists with the training and
        the validation indices of each fold. Otherwise a lazy sequence of
        `k` pairs of (training, validation) views.

    Example:

        >>> train, val = obstools.kfolds(10, 5)
        >>> val[1]
        range(2, 4)
        >>> train[1]
        array([0, 1, 4, 5, 6, 7, 8, 9])
    """
    n = data if isint(data) else numobs(data)
    train_indices, val_indices = _kfold_indices(n, k, stratified)

    if isint(data):
        return train_indices, val_indices
    else:
        return Folds(data, train_indices, val_indices)


def leavepout(data, p=1):
    """Repartition observations using folds of size `p` (or `p + 1`).

    Equivalent to :func:`kfolds` with :code:`k = n // p`.
    """
    n = data if isint(data) else numobs(data)
    if not isint(p) or not 1 <= p <= n // 2:
        raise ValueError("p must be within [1, {}], got {}".format(n // 2, p))

    return kfolds(data, n // p)
