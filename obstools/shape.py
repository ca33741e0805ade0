"""Operations that group observations together."""

import numbers

import numpy as np

from .errors import format_stack, wrap_evaluation_error
from .observation import DataContainer, getobs, getobs_into, numobs, \
    _getobs_into
from .utils import as_indices, basic_getitem, get_logger, isint


logger = get_logger(__name__)


def batch(observations):
    """Aggregate a list of observations into a single batch.

    Arrays are stacked along a new last axis, numbers are gathered into a
    1D array, tuples and dicts are batched member-wise, other values are
    returned as a list.

    Example:

        >>> obstools.batch([(1, 'a'), (2, 'b')])
        (array([1, 2]), ['a', 'b'])
    """
    observations = list(observations)
    if len(observations) == 0:
        raise ValueError("cannot batch an empty list of observations")

    first = observations[0]

    if isinstance(first, np.ndarray):
        return np.stack(observations, axis=-1)

    elif isinstance(first, (numbers.Number, np.generic)):
        return np.asarray(observations)

    elif isinstance(first, tuple):
        if any(not isinstance(o, tuple) or len(o) != len(first)
               for o in observations):
            raise ValueError("all observations must have the same length")
        values = [batch([o[j] for o in observations])
                  for j in range(len(first))]
        if hasattr(first, '_fields'):
            return type(first)(*values)
        return tuple(values)

    elif isinstance(first, dict):
        if any(not isinstance(o, dict) or o.keys() != first.keys()
               for o in observations):
            raise ValueError("all observations must have the same keys")
        return {k: batch([o[k] for o in observations]) for k in first}

    else:
        return observations


class BatchView(DataContainer):
    def __init__(self, data, batch_size=1, partial=True, collate=None):
        if not isint(batch_size) or batch_size <= 0:
            raise ValueError("batch_size must be a positive integer")
        if not (collate is None or collate is True or collate is False
                or callable(collate)):
            raise ValueError(
                "collate must be None, True, False or a callable")

        n = numobs(data)
        if 0 < n < batch_size:
            logger.warning(
                "batch_size %d is larger than the number of observations, "
                "using %d instead", batch_size, n)
            batch_size = n

        self.data = data
        self.nobs = n
        self.batch_size = batch_size
        self.partial = partial
        self.collate = collate
        self.stack = format_stack(2) if callable(collate) else None

        if partial:
            self.count = -(-n // batch_size)
        else:
            self.count = n // batch_size

    def __len__(self):
        return self.count

    def batch_range(self, i):
        """Return the indices of the observations in batch `i`."""
        if not isint(i) or not 0 <= i < self.count:
            raise IndexError("batch index {} out of range for {} "
                             "batches".format(i, self.count))

        start = i * self.batch_size
        return range(start, min(self.nobs, start + self.batch_size))

    def batch_indices(self, batches):
        """Return the concatenated indices of several batches."""
        ranges = [np.asarray(self.batch_range(int(i)), dtype=np.intp)
                  for i in as_indices(batches)]
        if len(ranges) == 0:
            return np.zeros((0,), dtype=np.intp)
        return np.concatenate(ranges)

    def materialize(self, indices, item=None):
        if self.collate is None:
            return getobs(self.data, indices)

        observations = [getobs(self.data, int(i)) for i in indices]
        if self.collate is False:
            return observations
        elif self.collate is True:
            return batch(observations)

        try:
            return self.collate(observations)
        except Exception as cause:
            wrap_evaluation_error(
                cause, self.__class__.__name__, item, self.stack)

    @basic_getitem
    def __getitem__(self, key):
        return getobs(self, key)

    def __repr__(self):
        return "BatchView({}, batch_size={}, partial={})".format(
            self.data.__class__.__name__, self.batch_size, self.partial)


@numobs.register(BatchView)
def _(data):
    return data.count


@getobs.register(BatchView)
def _(data, idx=None):
    if idx is None:
        return getobs(data.data)
    elif isint(idx):
        return data.materialize(data.batch_range(idx), idx)
    else:
        return data.materialize(data.batch_indices(idx), idx)


@_getobs_into.register(BatchView)
def _(data, buffer, idx):
    if data.collate is not None:
        return getobs(data, idx)
    elif isint(idx):
        return getobs_into(buffer, data.data, data.batch_range(idx))
    else:
        return getobs_into(buffer, data.data, data.batch_indices(idx))


def batchview(data, batch_size=1, partial=True, collate=None):
    """Return a view of `data` in groups of `batch_size` observations.

    Args:
        data: a data container.
        batch_size (int): number of observations per batch, reduced to the
            number of observations if larger.
        partial (bool): whether to keep the last batch if it contains less
            than `batch_size` observations (default True).
        collate (Optional[Union[bool, Callable[[list], Any]]]):
            how batches are assembled:

            - `None`: :code:`getobs(data, indices)` with the batch
              indices, for arrays this yields an array whose last axis
              indexes the observations.
            - `False`: a list of observations.
            - `True`: a list of observations aggregated by :func:`batch`.
            - a callable which receives the list of observations.

    Example:

        >>> x = np.arange(10)
        >>> bv = obstools.batchview(x, batch_size=4, partial=False)
        >>> len(bv)
        2
        >>> bv[1]
        array([4, 5, 6, 7])
    """
    return BatchView(data, batch_size, partial, collate)


class SlidingWindow(DataContainer):
    def __init__(self, data, size, stride=1):
        n = numobs(data)
        if not isint(size) or size <= 0:
            raise ValueError("window size must be strictly greater than 0")
        if size > n:
            raise ValueError(
                "window size is too large for {} observations".format(n))
        if not isint(stride) or stride <= 0:
            raise ValueError("stride must be strictly greater than 0")

        self.data = data
        self.size = size
        self.stride = stride
        self.count = (n - size + stride) // stride

    def __len__(self):
        return self.count

    def window_range(self, i):
        if not isint(i) or not 0 <= i < self.count:
            raise IndexError("window index {} out of range for {} "
                             "windows".format(i, self.count))

        return range(i * self.stride, i * self.stride + self.size)

    @basic_getitem
    def __getitem__(self, key):
        return getobs(self, key)

    def __repr__(self):
        return "slidingwindow({}, size={}, stride={})".format(
            self.data.__class__.__name__, self.size, self.stride)


@numobs.register(SlidingWindow)
def _(data):
    return data.count


@getobs.register(SlidingWindow)
def _(data, idx=None):
    if idx is None:
        return [getobs(data, i) for i in range(data.count)]
    elif isint(idx):
        return getobs(data.data, data.window_range(idx))
    else:
        return [getobs(data, int(i)) for i in as_indices(idx)]


def slidingwindow(data, size, stride=1):
    """Return a view of `data` as windows of adjacent observations.

    Only complete windows are included, trailing observations which do
    not fit in a window are ignored.

    Example:

        >>> windows = obstools.slidingwindow(list(range(10)), size=4, stride=3)
        >>> list(windows)
        [[0, 1, 2, 3], [3, 4, 5, 6], [6, 7, 8, 9]]
    """
    return SlidingWindow(data, size, stride)
