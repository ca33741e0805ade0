"""Lazy subsets of data containers."""

from functools import singledispatch

import numpy as np

from .observation import DataContainer, getobs, getobs_into, numobs, \
    _getobs_into
from .utils import as_indices, as_rng, check_indices, compose_indices, \
    isint


class ObsView(DataContainer):
    """A subset of observations from a data container.

    The view stores a reference to the container and the indices of the
    selected observations, no data is copied until observations are
    requested. Views of views are flattened into a single view over the
    original container.

    Args:
        data: a data container.
        indices (Optional[Sequence[int]]):
            selected observation indices, a range or a collection of
            integers, possibly repeated and in any order. All observations
            by default.
    """

    def __init__(self, data, indices=None):
        n = numobs(data)
        if indices is None:
            indices = range(n)
        indices = as_indices(indices)
        check_indices(indices, n)

        if isinstance(data, ObsView):  # optimize nested subsets
            indices = compose_indices(data.indices, indices)
            data = data.data

        self.data = data
        self.indices = indices

    def __len__(self):
        return len(self.indices)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return ObsView(self, range(len(self))[key])

        elif isint(key):
            if key < -len(self) or key >= len(self):
                raise IndexError(
                    self.__class__.__name__ + " index out of range")
            if key < 0:
                key = len(self) + key

            return getobs(self.data, int(self.indices[key]))

        else:
            return ObsView(self, key)

    def __repr__(self):
        return "ObsView({}, {} observations)".format(
            self.data.__class__.__name__, len(self))


@numobs.register(ObsView)
def _(data):
    return len(data.indices)


@getobs.register(ObsView)
def _(data, idx=None):
    if idx is None:
        return getobs(data.data, data.indices)
    elif isint(idx):
        return getobs(data.data, int(data.indices[idx]))
    else:
        return getobs(data.data, compose_indices(data.indices, as_indices(idx)))


@_getobs_into.register(ObsView)
def _(data, buffer, idx):
    if isint(idx):
        return getobs_into(buffer, data.data, int(data.indices[idx]))
    else:
        return getobs_into(
            buffer, data.data, compose_indices(data.indices, as_indices(idx)))


@singledispatch
def obsview(data, indices=None):
    """Return a lazy subset of `data`.

    Numpy arrays indexed by a range are returned as native array views
    (sliced along their last axis), tuples and dicts of containers return a
    tuple or dict of views. Other containers are wrapped into
    :class:`ObsView`.

    Example:

        >>> data = ['a', 'b', 'c', 'd', 'e']
        >>> list(obstools.obsview(data, [4, 0, 0]))
        ['e', 'a', 'a']
    """
    return ObsView(data, indices)


@obsview.register(np.ndarray)
def _(data, indices=None):
    n = numobs(data)
    if indices is None:
        indices = range(n)
    indices = as_indices(indices)
    if data.ndim == 0 or not isinstance(indices, range):
        return ObsView(data, indices)

    check_indices(indices, n)
    if len(indices) == 0:
        return data[..., 0:0]
    stop = indices[-1] + indices.step
    return data[..., indices.start:stop if stop >= 0 else None:indices.step]


@obsview.register(tuple)
def _(data, indices=None):
    numobs(data)
    views = [obsview(d, indices) for d in data]
    if hasattr(data, '_fields'):
        return type(data)(*views)
    return tuple(views)


@obsview.register(dict)
def _(data, indices=None):
    numobs(data)
    return {k: obsview(v, indices) for k, v in data.items()}


def shuffleobs(data, rng=None):
    """Return a randomly permuted view of `data`.

    Args:
        data: a data container.
        rng (Optional[Union[numpy.random.Generator, int]]):
            random number generator or seed.
    """
    rng = as_rng(rng)
    return obsview(data, rng.permutation(numobs(data)))


def randobs(data, n=None, rng=None):
    """Pick random observations.

    Args:
        data: a data container.
        n (Optional[int]): number of observations to draw with replacement,
            by default a single observation is returned instead of a batch.
        rng (Optional[Union[numpy.random.Generator, int]]):
            random number generator or seed.
    """
    rng = as_rng(rng)
    size = numobs(data)
    if size == 0:
        raise IndexError("cannot draw observations from an empty container")

    if n is None:
        return getobs(data, int(rng.integers(size)))
    else:
        return getobs(data, rng.integers(size, size=n))
