"""Rebalance labeled observations."""

import numpy as np

from .errors import DimensionMismatchError
from .indexing import obsview
from .observation import getobs, numobs
from .utils import as_rng, group_indices


def _unpack(data, labels):
    if labels is not None:
        return data, labels, False

    if not isinstance(data, tuple) or len(data) < 2:
        raise ValueError(
            "labels must be provided unless data is a tuple whose last "
            "element holds the labels")

    return tuple(data[:-1]), data[-1], True


def _groups(data, labels):
    n = numobs(data)
    if numobs(labels) != n:
        raise DimensionMismatchError(
            "got {} labels for {} observations".format(numobs(labels), n))

    return n, group_indices([getobs(labels, i) for i in range(n)])


def _pack(data, labels, indices, flat):
    views = obsview(data, indices)
    label_view = obsview(labels, indices)
    if flat:
        return tuple(views) + (label_view,)
    else:
        return views, label_view


def oversample(data, labels=None, fraction=1, shuffle=True, rng=None):
    """Rebalance labeled data by repeating observations.

    Every label will have at least :code:`round(fraction * m)` observations
    where `m` is the number of observations of the most frequent label.
    All original observations are kept, minority labels are first repeated
    entirely as many times as possible, then completed by a random subset
    (or the first observations if `shuffle` is false).

    Args:
        data: a data container.
        labels (Optional[Sequence]):
            labels of the observations, if omitted `data` must be a tuple
            whose last element holds the labels.
        fraction (float): target size of each label relative to the largest
            one.
        shuffle (bool): whether to shuffle the result, otherwise the
            additional observations follow the original ones, grouped by
            label.
        rng (Optional[Union[numpy.random.Generator, int]]):
            random number generator or seed.

    Return:
        tuple: a view of the resampled data and a view of the labels, or a
        flat tuple of views when labels were taken from `data`.

    Example:

        >>> x = np.arange(6)
        >>> y = ['a', 'b', 'b', 'b', 'b', 'a']
        >>> x_bal, y_bal = obstools.oversample(x, y, shuffle=False)
        >>> list(y_bal)
        ['a', 'b', 'b', 'b', 'b', 'a', 'a', 'a']
    """
    if fraction < 0:
        raise ValueError("fraction must be positive")

    data, labels, flat = _unpack(data, labels)
    n, groups = _groups(data, labels)
    rng = as_rng(rng)

    maxcount = max((len(idx) for idx in groups.values()), default=0)
    fraccount = round(fraction * maxcount)

    indices = [np.arange(n)]
    for idx in groups.values():
        missing = fraccount - len(idx)
        while missing > len(idx):
            missing -= len(idx)
            indices.append(idx)
        if missing > 0:
            if shuffle:
                indices.append(rng.choice(idx, missing, replace=False))
            else:
                indices.append(idx[:missing])

    indices = np.concatenate(indices)
    if shuffle:
        indices = rng.permutation(indices)

    return _pack(data, labels, indices, flat)


def undersample(data, labels=None, shuffle=True, rng=None):
    """Rebalance labeled data by dropping observations.

    Each label keeps as many observations as the least frequent one.

    Args:
        data: a data container.
        labels (Optional[Sequence]):
            labels of the observations, if omitted `data` must be a tuple
            whose last element holds the labels.
        shuffle (bool): sample observations randomly and shuffle the
            result, otherwise the first observations of each label are kept
            in their original order.
        rng (Optional[Union[numpy.random.Generator, int]]):
            random number generator or seed.
    """
    data, labels, flat = _unpack(data, labels)
    _, groups = _groups(data, labels)
    rng = as_rng(rng)

    mincount = min((len(idx) for idx in groups.values()), default=0)

    indices = []
    for idx in groups.values():
        if shuffle:
            indices.append(rng.choice(idx, mincount, replace=False))
        else:
            indices.append(idx[:mincount])

    indices = np.concatenate(indices) if indices \
        else np.zeros((0,), dtype=np.intp)
    if shuffle:
        indices = rng.permutation(indices)
    else:
        indices = np.sort(indices)

    return _pack(data, labels, indices, flat)
