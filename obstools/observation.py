"""Observation access protocol.

Any container takes part in ObsTools by supporting two operations:

- :func:`numobs` returns the number of observations,
- :func:`getobs` returns one observation, or a batch of observations when
  given a collection of indices.

Both are :func:`python:functools.singledispatch` functions, so third party
types can be supported without subclassing::

    @obstools.numobs.register(MyTable)
    def _(data):
        return data.nrows

Objects that implement :code:`__len__` and :code:`__getitem__` work out of
the box. Numpy arrays store observations along their *last* axis, use
:class:`ObsDim` to pick another axis.
"""

from functools import singledispatch

import numpy as np

from .errors import DimensionMismatchError, UnsupportedContainerError
from .utils import as_indices, check_indices, get_logger, isint


logger = get_logger(__name__)


def _unsupported(data, what):
    return UnsupportedContainerError(
        "{} does not support {}, implement it or register {} for this "
        "type".format(data.__class__.__name__, what, what))


# Dispatchers -----------------------------------------------------------------

@singledispatch
def numobs(data):
    """Return the number of observations in `data`."""
    if not hasattr(data, '__len__'):
        raise _unsupported(data, 'numobs')

    return len(data)


@singledispatch
def getobs(data, idx=None):
    """Return the observation(s) of `data` at `idx`.

    Args:
        data: a data container.
        idx (Optional[Union[int, Sequence[int]]]):
            an observation index or a collection of indices, in which case
            a batch is returned. `None` materializes the whole container.
    """
    if idx is None:
        return data
    if not hasattr(data, '__getitem__'):
        raise _unsupported(data, 'getobs')

    if isint(idx):
        return data[idx]
    else:
        return [data[i] for i in as_indices(idx)]


@singledispatch
def _getobs_into(data, buffer, idx):
    return getobs(data, idx)


def getobs_into(buffer, data, idx):
    """Load the observation(s) of `data` at `idx` into `buffer`.

    The buffer is overwritten and returned. Containers which do not
    support in-place loading, or buffers which are not compatible, cause
    a fallback to :func:`getobs` and the buffer is left untouched, so
    callers should always use the returned value.

    Implementations dispatch on the type of `data` and should be
    registered with :code:`getobs_into.register(Type)`, they receive
    :code:`(data, buffer, idx)`.
    """
    return _getobs_into(data, buffer, idx)


getobs_into.register = _getobs_into.register
getobs_into.dispatch = _getobs_into.dispatch


class DataContainer:
    """Mixin providing iteration over observations."""

    def __iter__(self):
        for i in range(numobs(self)):
            yield getobs(self, i)


# Arrays ----------------------------------------------------------------------

@numobs.register(np.ndarray)
def _(data):
    return 1 if data.ndim == 0 else data.shape[-1]


@getobs.register(np.ndarray)
def _(data, idx=None):
    if idx is None:
        return data

    if data.ndim == 0:
        if isint(idx):
            if idx not in (0, -1):
                raise IndexError("index out of range: 1 observations "
                                 "but got {}".format(idx))
            return data[()]
        idx = as_indices(idx)
        check_indices(idx, 1)
        return np.full(len(idx), data[()], dtype=data.dtype)

    return np.take(data, idx if isint(idx) else as_indices(idx), axis=-1)


@_getobs_into.register(np.ndarray)
def _(data, buffer, idx):
    return _take_into(data, buffer, idx, -1)


def _take_into(data, buffer, idx, axis):
    if data.ndim == 0:
        return getobs(data, idx)

    axis = axis % data.ndim
    if isint(idx):
        shape = data.shape[:axis] + data.shape[axis + 1:]
    else:
        idx = as_indices(idx)
        shape = data.shape[:axis] + (len(idx),) + data.shape[axis + 1:]

    if not isinstance(buffer, np.ndarray) \
            or buffer.shape != shape or buffer.dtype != data.dtype \
            or not buffer.flags.writeable or len(shape) == 0:
        logger.debug("buffer is not compatible, allocating a new array")
        return np.take(data, idx, axis=axis)

    np.take(data, idx, axis=axis, out=buffer)
    return buffer


class ObsDim(DataContainer):
    """Select the observation axis of an array.

    Example:

        >>> x = np.zeros((100, 3))  # 100 observations of 3 features
        >>> obstools.numobs(obstools.ObsDim(x, 0))
        100
    """

    def __init__(self, data, dim=-1):
        self.data = np.asarray(data)
        if self.data.ndim == 0:
            raise ValueError("ObsDim requires at least one dimension")
        if not -self.data.ndim <= dim < self.data.ndim:
            raise ValueError("dim {} out of range for an array with {} "
                             "dimensions".format(dim, self.data.ndim))
        self.dim = dim % self.data.ndim

    def __len__(self):
        return self.data.shape[self.dim]

    def __repr__(self):
        return "ObsDim({}, dim={})".format(
            "x".join(map(str, self.data.shape)), self.dim)


@numobs.register(ObsDim)
def _(data):
    return len(data)


@getobs.register(ObsDim)
def _(data, idx=None):
    if idx is None:
        return data.data
    return np.take(data.data, idx if isint(idx) else as_indices(idx),
                   axis=data.dim)


@_getobs_into.register(ObsDim)
def _(data, buffer, idx):
    return _take_into(data.data, buffer, idx, data.dim)


# Groups ----------------------------------------------------------------------

def _group_numobs(values):
    counts = [numobs(v) for v in values]
    if any(c != counts[0] for c in counts[1:]):
        raise DimensionMismatchError(
            "all grouped containers must have the same number of "
            "observations, got {}".format(counts))

    return counts[0] if counts else 0


def _rebuild(template, values):
    if hasattr(template, '_fields'):  # namedtuple
        return type(template)(*values)
    else:
        return tuple(values)


@numobs.register(tuple)
def _(data):
    return _group_numobs(data)


@getobs.register(tuple)
def _(data, idx=None):
    if idx is None:
        return data

    _group_numobs(data)
    return _rebuild(data, [getobs(d, idx) for d in data])


@_getobs_into.register(tuple)
def _(data, buffer, idx):
    _group_numobs(data)
    if not isinstance(buffer, tuple) or len(buffer) != len(data):
        logger.debug("buffer is not compatible, allocating new values")
        return getobs(data, idx)

    return _rebuild(data, [getobs_into(b, d, idx)
                           for b, d in zip(buffer, data)])


@numobs.register(dict)
def _(data):
    return _group_numobs(list(data.values()))


@getobs.register(dict)
def _(data, idx=None):
    if idx is None:
        return data

    _group_numobs(list(data.values()))
    return {k: getobs(v, idx) for k, v in data.items()}


@_getobs_into.register(dict)
def _(data, buffer, idx):
    _group_numobs(list(data.values()))
    if not isinstance(buffer, dict) or buffer.keys() != data.keys():
        logger.debug("buffer is not compatible, allocating new values")
        return getobs(data, idx)

    for k, v in data.items():
        buffer[k] = getobs_into(buffer[k], v, idx)
    return buffer
