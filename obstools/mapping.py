import bisect
import itertools

from .errors import format_stack, wrap_evaluation_error
from .indexing import obsview
from .observation import DataContainer, getobs, numobs
from .utils import as_indices, basic_getitem, isint


class Mapping(DataContainer):
    def __init__(self, f, data):
        if not callable(f):
            raise TypeError("f must be callable")

        self.data = data
        self.f = f
        self.stack = format_stack(2)

    def __len__(self):
        return numobs(self.data)

    def evaluate(self, item):
        try:
            return self.f(getobs(self.data, item))

        except Exception as cause:
            wrap_evaluation_error(
                cause, self.__class__.__name__, item, self.stack)

    @basic_getitem
    def __getitem__(self, item):
        return self.evaluate(item)


class NamedMapping(Mapping):
    def __init__(self, fs, data):
        if not all(callable(f) for f in fs.values()):
            raise TypeError("all mapped values must be callable")

        super().__init__(self.apply, data)
        self.fs = dict(fs)
        self.stack = format_stack(2)

    def apply(self, obs):
        return {k: f(obs) for k, f in self.fs.items()}


@numobs.register(Mapping)
def _(data):
    return len(data)


@getobs.register(Mapping)
def _(data, idx=None):
    if idx is None:
        return [data.evaluate(i) for i in range(len(data))]
    elif isint(idx):
        return data.evaluate(idx)
    else:
        return [data.evaluate(int(i)) for i in as_indices(idx)]


def mapobs(f, data):
    """Return a lazy mapping of `f` over the observations of `data`.

    Equivalent to :code:`[f(x) for x in data]` with on-demand evaluation.

    Args:
        f (Union[Callable, Tuple[Callable], Dict[str, Callable]]):
            the function to apply. A tuple of functions returns a tuple of
            mappings, a dict of functions returns a container whose
            observations are dicts with the same keys.
        data: a data container.

    Example:

        >>> data = [1, 2, 3, 4]
        >>> m = obstools.mapobs(lambda x: x + 2, data)
        >>> list(m)
        [3, 4, 5, 6]
        >>> m = obstools.mapobs({'sq': lambda x: x ** 2, 'neg': lambda x: -x}, data)
        >>> m[1]
        {'sq': 4, 'neg': -2}
    """
    if isinstance(f, tuple):
        return tuple(mapobs(g, data) for g in f)
    elif isinstance(f, dict):
        return NamedMapping(f, data)
    else:
        return Mapping(f, data)


def _keep_index(f, data, stack):
    for i in range(numobs(data)):
        try:
            keep = f(getobs(data, i))
        except Exception as cause:
            wrap_evaluation_error(cause, "filterobs", i, stack)

        yield i, keep


def filterobs(f, data):
    """Return a view on the observations for which `f` returns true.

    The predicate is evaluated immediately on every observation.
    """
    stack = format_stack(1)
    return obsview(data, [i for i, keep in _keep_index(f, data, stack) if keep])


def groupobs(f, data):
    """Split the observations of `data` according to the value of `f`.

    Return:
        dict: a view of the observations for each value returned by `f`,
        ordered by first appearance.
    """
    stack = format_stack(1)
    groups = {}
    for i, key in _keep_index(f, data, stack):
        groups.setdefault(key, []).append(i)

    return {k: obsview(data, idx) for k, idx in groups.items()}


class Join(DataContainer):
    def __init__(self, datas):
        self.datas = []
        for d in datas:
            if isinstance(d, Join):
                self.datas.extend(d.datas)
            else:
                self.datas.append(d)

        self.offsets = [0] + list(itertools.accumulate(
            numobs(d) for d in self.datas))

    def __len__(self):
        return self.offsets[-1]

    def locate(self, item):
        if not 0 <= item < len(self):
            raise IndexError("{} index out of range".format(
                self.__class__.__name__))

        target = bisect.bisect(self.offsets, item) - 1
        return self.datas[target], item - self.offsets[target]

    @basic_getitem
    def __getitem__(self, item):
        data, offset = self.locate(item)
        return getobs(data, offset)


@numobs.register(Join)
def _(data):
    return len(data)


@getobs.register(Join)
def _(data, idx=None):
    if idx is None:
        return [data[i] for i in range(len(data))]
    elif isint(idx):
        return data[idx]
    else:
        return [data[int(i)] for i in as_indices(idx)]


def joinobs(*datas):
    """Return a view on the concatenated observations of several containers.

    Example:

        >>> joined = obstools.joinobs([0, 1, 2], [3, 4], [5, 6, 7])
        >>> obstools.getobs(joined, 4)
        4
    """
    return Join(datas)
