"""Miscellaneous tools for internal use."""

import logging
import numbers
from logging import NullHandler

import numpy as np


def isint(x):
    """Return wether `x` is an integral number."""
    return isinstance(x, numbers.Integral) and not isinstance(x, bool)


def clip(x, a, b):
    """Clip value within specified range."""
    return max(a, min(x, b))


def get_logger(name):
    logger = logging.getLogger(name)
    logger.addHandler(NullHandler())
    return logger


# Random number generation ----------------------------------------------------

_default_rng = None


def default_rng():
    """Return the process-wide random generator used when none is given."""
    global _default_rng
    if _default_rng is None:
        _default_rng = np.random.default_rng()
    return _default_rng


def as_rng(rng=None):
    """Resolve a random source argument into a numpy Generator.

    Args:
        rng (Optional[Union[numpy.random.Generator, int]]):
            a generator, used as is, a seed for a fresh generator, or
            `None` for the process-wide default generator.
    """
    if rng is None:
        return default_rng()
    elif isinstance(rng, np.random.Generator):
        return rng
    elif isint(rng):
        return np.random.default_rng(rng)
    else:
        raise TypeError(
            "rng must be a numpy Generator, a seed or None, not "
            + rng.__class__.__name__)


# Index sets ------------------------------------------------------------------

def as_indices(indices):
    """Convert an index collection into a range or a 1D integer array."""
    if isinstance(indices, range):
        return indices

    indices = np.asarray(indices)
    if indices.dtype == bool:
        return np.flatnonzero(indices)
    elif indices.size == 0:
        return np.zeros((0,), dtype=np.intp)
    elif indices.ndim != 1 or not np.issubdtype(indices.dtype, np.integer):
        raise TypeError("indices must be a 1D collection of integers")
    else:
        return indices.astype(np.intp, copy=False)


def compose_indices(outer, inner):
    """Return `outer[inner]` for two index sets."""
    if isinstance(outer, range) and isinstance(inner, range):
        if len(inner) == 0:
            return range(0)
        start = outer[inner[0]]
        step = outer.step * inner.step
        return range(start, start + step * len(inner), step)

    return np.asarray(outer, dtype=np.intp)[np.asarray(inner, dtype=np.intp)]


def check_indices(indices, size, name="index"):
    """Raise :class:`IndexError` if an index falls outside `0..size-1`."""
    if len(indices) == 0:
        return

    if isinstance(indices, range):
        lo, hi = min(indices[0], indices[-1]), max(indices[0], indices[-1])
    else:
        lo, hi = int(indices.min()), int(indices.max())

    if lo < 0 or hi >= size:
        raise IndexError(
            "{} out of range: {} observations but got {}".format(
                name, size, lo if lo < 0 else hi))


def group_indices(labels):
    """Group the positions of `labels` by label value.

    Return:
        dict: a mapping from each label to an integer array of the positions
        where it occurs, labels are ordered by first appearance.
    """
    groups = {}
    for i, lbl in enumerate(labels):
        if isinstance(lbl, np.generic):
            lbl = lbl.item()
        groups.setdefault(lbl, []).append(i)

    return {lbl: np.asarray(idx, dtype=np.intp) for lbl, idx in groups.items()}


def group_counts(labels):
    """Count the occurrences of each label, ordered by first appearance."""
    return {lbl: len(idx) for lbl, idx in group_indices(labels).items()}


# Slicing ---------------------------------------------------------------------

def basic_getitem(func):
    """Decorate a `__getitem__` method to add slicing support.

    Args:
        func (Callable[[Sequence, int], Any]):
            A `__getitem__` method that only accepts positive integer
            indices.

    Return:
        A `__getitem__` method that accepts negative indexing and
        slicing.
    """
    def getitem(self, key):
        if isinstance(key, slice):
            return SeqSlice(self, key)

        elif isint(key):
            size = len(self)
            if key < -size or key >= size:
                raise IndexError(self.__class__.__name__ + " index out of range")
            if key < 0:
                key = size + key

            return func(self, key)

        else:
            raise TypeError(
                self.__class__.__name__ + " indices must be integers or "
                "slices, not " + key.__class__.__name__)

    return getitem


class SeqSlice:
    def __init__(self, sequence, key):
        if isinstance(sequence, SeqSlice):
            self.sequence = sequence.sequence
            self.indices = sequence.indices[key]
        else:
            self.sequence = sequence
            self.indices = range(len(sequence))[key]

    def __len__(self):
        return len(self.indices)

    def __iter__(self):
        for i in self.indices:
            yield self.sequence[i]

    @basic_getitem
    def __getitem__(self, key):
        return self.sequence[self.indices[key]]
