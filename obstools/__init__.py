"""
A python library to iterate over data containers as sets of observations.

The obstools package treats arrays, tuples and dicts of containers, or any
object that supports indexing, as indexable sets of observations. On top
of this minimal protocol (:func:`numobs`, :func:`getobs`) it provides
lazy views to subset, shuffle and batch observations without copying
data, partitioning tools for cross-validation and class rebalancing, and
a data loader that iterates over shuffled batches.

Unless otherwise specified, all functions feature on-demand evaluation
which means observations are only loaded when needed.

The library also features a multithreading/multiprocessing prefetch
routine which overlaps loading observations with their consumption.
"""

from .dataloader import DataLoader, eachobs
from .errors import DimensionMismatchError, EmptyContainerError, \
    EvaluationError, UnsupportedContainerError, seterr
from .evaluation import Channel, ChannelClosed, prefetch
from .indexing import ObsView, obsview, randobs, shuffleobs
from .mapping import filterobs, groupobs, joinobs, mapobs
from .observation import DataContainer, ObsDim, getobs, getobs_into, numobs
from .partition import kfolds, leavepout, splitobs
from .resample import oversample, undersample
from .shape import BatchView, batch, batchview, slidingwindow
from .utils import group_counts, group_indices

__all__ = [
    "numobs",
    "getobs",
    "getobs_into",
    "ObsDim",
    "DataContainer",
    "ObsView",
    "obsview",
    "shuffleobs",
    "randobs",
    "BatchView",
    "batchview",
    "batch",
    "slidingwindow",
    "mapobs",
    "filterobs",
    "groupobs",
    "joinobs",
    "splitobs",
    "kfolds",
    "leavepout",
    "oversample",
    "undersample",
    "group_indices",
    "group_counts",
    "DataLoader",
    "eachobs",
    "prefetch",
    "Channel",
    "ChannelClosed",
    "EvaluationError",
    "UnsupportedContainerError",
    "DimensionMismatchError",
    "EmptyContainerError",
    "seterr",
]
