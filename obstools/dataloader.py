from .errors import EmptyContainerError
from .evaluation import check_workers, prefetch
from .indexing import ObsView, shuffleobs
from .observation import getobs, getobs_into, numobs
from .shape import BatchView
from .utils import as_rng, get_logger, isint


logger = get_logger(__name__)


class DataLoader:
    """Iterate over the observations of a data container, optionally shuffled
    and grouped in batches.

    Every iteration is a new pass over the data, with a new random order
    when `shuffle` is set.

    Args:
        data: a data container.
        batch_size (int): number of observations per batch, values lower
            or equal to 0 iterate over single observations (default 1).
        buffer (Union[bool, Any]): reuse a buffer filled in place with
            :func:`getobs_into` instead of allocating each value, either
            `True` to allocate one from the first value or a buffer object.
            Yielded values are then overwritten by the next step.
        collate (Optional[Union[bool, Callable]]): how batches are
            assembled, see :func:`batchview`.
        parallel (bool): load observations with background threads, the
            order of delivery is then unspecified.
        partial (bool): whether to keep the last batch if it contains less
            than `batch_size` observations (default True).
        rng (Optional[Union[numpy.random.Generator, int]]): random number
            generator or seed used for shuffling.
        shuffle (bool): reshuffle the observations at every pass.
        nworkers (int): number of parallel workers, negative values or zero
            indicate the number of cpu cores to spare.
        buffersize (Optional[int]): maximum number of values loaded ahead in
            parallel mode (default equals the number of workers).

    Example:

        >>> x = np.arange(10)
        >>> loader = obstools.DataLoader(x, batch_size=4, partial=False)
        >>> [b for b in loader]
        [array([0, 1, 2, 3]), array([4, 5, 6, 7])]
    """

    def __init__(self, data, batch_size=1, buffer=False, collate=None,
                 parallel=False, partial=True, rng=None, shuffle=False,
                 nworkers=0, buffersize=None):
        if not isint(batch_size):
            raise TypeError("batch_size must be an integer")
        if not (collate is None or collate is True or collate is False
                or callable(collate)):
            raise ValueError(
                "collate must be None, True, False or a callable")
        if buffersize is not None and buffersize <= 0:
            raise ValueError("buffersize must be greater than 0")
        if parallel:
            nworkers, buffersize = check_workers(nworkers, buffersize)

        nobs = numobs(data)
        if 0 < nobs < batch_size:
            logger.warning(
                "number of observations less than batch_size, decreasing "
                "batch_size to %d", nobs)
            batch_size = nobs

        self.data = data
        self.batch_size = batch_size
        self.buffer = buffer
        self.collate = collate
        self.parallel = parallel
        self.partial = partial
        self.rng = as_rng(rng)
        self.shuffle = shuffle
        self.nworkers = nworkers
        self.buffersize = buffersize

    def __len__(self):
        n = numobs(self.data)
        if self.batch_size <= 0:
            return n
        elif self.partial:
            return -(-n // self.batch_size)
        else:
            return n // self.batch_size

    def view(self):
        """Return the data container iterated by the next pass."""
        data = ObsView(self.data)
        if self.shuffle:
            data = shuffleobs(data, self.rng)
        if self.batch_size > 0:
            data = BatchView(data, self.batch_size, self.partial, self.collate)

        return data

    def __iter__(self):
        data = self.view()

        if self.parallel:
            yield from prefetch(data, nworkers=self.nworkers,
                                max_buffered=self.buffersize,
                                buffer=self.buffer)

        elif self.buffer is False:
            for i in range(numobs(data)):
                yield getobs(data, i)

        else:
            buffer = None if self.buffer is True else self.buffer
            for i in range(numobs(data)):
                if buffer is None:  # the first value becomes the buffer
                    buffer = getobs(data, i)
                    yield buffer
                else:
                    yield getobs_into(buffer, data, i)

    def first(self):
        """Return the first value of a pass over the data."""
        it = iter(self)
        try:
            return next(it)
        except StopIteration:
            raise EmptyContainerError("no observations in data") from None
        finally:
            it.close()

    def __repr__(self):
        args = [self.data.__class__.__name__]
        if self.buffer is not False:
            args.append("buffer={}".format(
                True if self.buffer is True else self.buffer.__class__.__name__))
        if self.parallel:
            args.append("parallel=True")
        if self.shuffle:
            args.append("shuffle=True")
        if self.batch_size != 1:
            args.append("batch_size={}".format(self.batch_size))
        if not self.partial:
            args.append("partial=False")
        if self.collate is not None:
            args.append("collate={}".format(
                getattr(self.collate, '__name__', self.collate)))

        return "DataLoader({})".format(", ".join(args))


def eachobs(data, batch_size=-1, **kwargs):
    """Iterate over the observations of `data`.

    Shorthand for :class:`DataLoader` which defaults to single observations,
    other keyword arguments are passed to it.
    """
    return DataLoader(data, batch_size=batch_size, **kwargs)
