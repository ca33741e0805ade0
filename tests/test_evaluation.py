import logging
import os
import random
import threading
from time import sleep

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from obstools import BatchView, Channel, ChannelClosed, EvaluationError, \
    ObsView, mapobs, prefetch, seterr
from obstools.evaluation import RingBuffer

logging.basicConfig(level=logging.DEBUG)
seed = int(random.random() * 100000)
# seed = 29130
random.seed(seed)

prefetch_kwargs_set = [
    {"method": "thread"},
    {"method": "process"},
]


def sleep_and_return(x):
    sleep(0.002 * (1 + random.random()))
    return x


class CustomException(Exception):
    pass


def fail_on_42(x):
    if x == 42:
        raise CustomException("42")
    return x


def die_on_42(x):
    if x == 42:
        sleep(0.5)
        os._exit(1)
    return x


def exit_on_5(x):
    if x == 5:
        raise SystemExit(3)
    return x


loaded = []
loaded_lock = threading.Lock()


def load_and_count(x):
    with loaded_lock:
        loaded.append(x)
    return np.full(3, x)


# Channels --------------------------------------------------------------------

def test_channel_basics():
    c = Channel(3)
    for i in range(3):
        c.put(i)
    assert len(c) == 3
    assert [c.get() for _ in range(2)] == [0, 1]

    c.put(3)
    assert c.close()
    assert not c.close()
    with pytest.raises(ChannelClosed):
        c.put(4)

    # pending items remain available
    assert c.get() == 2
    assert c.get() == 3
    with pytest.raises(ChannelClosed) as excinfo:
        c.get()
    assert excinfo.value.error is None

    with pytest.raises(ValueError):
        Channel(0)


def test_channel_error():
    c = Channel(5)
    c.put(1)
    error = ValueError("oops")
    c.close(item=7, error=error)

    with pytest.raises(ChannelClosed) as excinfo:
        c.get()
    assert excinfo.value.item == 7
    assert excinfo.value.error is error


@pytest.mark.timeout(10)
def test_channel_backpressure():
    c = Channel(2)
    sizes = []

    def produce():
        for i in range(100):
            c.put(i)
            sizes.append(len(c))
        c.close()

    producer = threading.Thread(target=produce)
    producer.start()

    values = []
    while True:
        try:
            values.append(c.get())
        except ChannelClosed:
            break
        sleep(0.001 * random.random())

    producer.join()
    assert values == list(range(100))
    assert max(sizes) <= 2


@pytest.mark.timeout(10)
def test_channel_close_wakes_consumer():
    c = Channel(1)
    errors = []

    def consume():
        try:
            c.get()
        except ChannelClosed as e:
            errors.append(e)

    consumer = threading.Thread(target=consume)
    consumer.start()
    sleep(0.1)
    c.close()
    consumer.join()
    assert len(errors) == 1


def test_ring_buffer():
    buffers = [np.zeros(3) for _ in range(3)]
    ring = RingBuffer(buffers)

    def fill(value):
        def f(buf):
            buf[:] = value
            return buf
        return f

    ring.put(fill(1))
    ring.put(fill(2))
    a = ring.take()
    assert_array_equal(a, 1)
    ring.put(fill(3))
    assert_array_equal(ring.take(), 2)
    ring.put(fill(4))  # recycles the first buffer
    assert_array_equal(ring.take(), 3)
    last = ring.take()
    assert_array_equal(last, 4)
    assert last is a

    ring.close()
    with pytest.raises(ChannelClosed):
        ring.take()
    with pytest.raises(ChannelClosed):
        ring.put(fill(5))


# Prefetch --------------------------------------------------------------------

@pytest.mark.parametrize("prefetch_kwargs", prefetch_kwargs_set)
@pytest.mark.timeout(30)
def test_prefetch_multiset(prefetch_kwargs):
    arr = np.random.rand(10, 200)
    y = mapobs(sleep_and_return, ObsView(arr))
    y = prefetch(y, nworkers=4, max_buffered=10, **prefetch_kwargs)

    assert len(y) == 200

    values = [v.copy() for v in y]
    assert len(values) == 200
    order = np.argsort([v[0] for v in values])
    assert_array_equal(np.stack(values, axis=-1)[:, order],
                       arr[:, np.argsort(arr[0])])

    # multiple passes
    for _ in range(3):
        assert sorted(v[0] for v in y) == sorted(arr[0])


@pytest.mark.parametrize("prefetch_kwargs", prefetch_kwargs_set)
@pytest.mark.timeout(30)
def test_prefetch_batches(prefetch_kwargs):
    data = list(range(100))
    y = prefetch(BatchView(data, 7), nworkers=3, **prefetch_kwargs)
    assert len(y) == 15

    batches = list(y)
    assert len(batches) == 15
    assert sorted(v for b in batches for v in b) == data


@pytest.mark.timeout(15)
def test_prefetch_buffered():
    arr = np.arange(500.).reshape((5, 100))
    y = prefetch(BatchView(arr, 10), nworkers=2, buffer=True)

    values = [v.copy() for v in y]
    assert len(values) == 10
    order = np.argsort([v[0, 0] for v in values])
    assert_array_equal(np.concatenate([values[i] for i in order], axis=-1), arr)

    # external buffer
    buf = np.zeros((5, 10))
    y = prefetch(BatchView(arr, 10), nworkers=2, buffer=buf)
    values = [v.copy() for v in y]
    assert sorted(v[0, 0] for v in values) == sorted(arr[0, ::10])

    # buffers are recycled
    y = prefetch(BatchView(arr, 10), nworkers=2, buffer=True)
    ids = {id(v) for v in y}
    assert len(ids) <= 5


@pytest.mark.parametrize("prefetch_kwargs", prefetch_kwargs_set)
@pytest.mark.parametrize("evaluation", ["wrap", "passthrough"])
@pytest.mark.timeout(30)
def test_prefetch_errors(prefetch_kwargs, evaluation):
    y = prefetch(mapobs(fail_on_42, list(range(100))), nworkers=2,
                 **prefetch_kwargs)

    seterr(evaluation)
    try:
        if evaluation == "wrap":
            with pytest.raises(EvaluationError) as excinfo:
                for _ in y:
                    pass
            assert isinstance(excinfo.value.__cause__, CustomException)
            assert "item 42" in str(excinfo.value)
        else:
            with pytest.raises(CustomException):
                for _ in y:
                    pass
    finally:
        seterr("wrap")


@pytest.mark.parametrize("prefetch_kwargs", prefetch_kwargs_set)
@pytest.mark.timeout(30)
def test_prefetch_exit_in_worker(prefetch_kwargs):
    y = prefetch(mapobs(exit_on_5, list(range(20))), nworkers=2,
                 **prefetch_kwargs)

    values = []
    with pytest.raises(EvaluationError) as excinfo:
        for v in y:
            values.append(v)
    assert isinstance(excinfo.value.__cause__, SystemExit)
    assert "item 5" in str(excinfo.value)
    assert 5 not in values


@pytest.mark.parametrize("buffer", [False, True])
@pytest.mark.timeout(15)
def test_prefetch_capacity(buffer):
    del loaded[:]
    y = prefetch(mapobs(load_and_count, list(range(100))), nworkers=2,
                 max_buffered=8, buffer=buffer)

    it = iter(y)
    next(it)
    sleep(0.5)
    # one value read, max_buffered queued, one per worker waiting
    assert 1 + 8 <= len(loaded) <= 1 + 8 + 2
    it.close()

    # observations are loaded once per pass
    del loaded[:]
    values = [v[0] for v in y]
    assert sorted(values) == list(range(100))
    assert sorted(loaded) == list(range(100))


@pytest.mark.timeout(30)
def test_prefetch_worker_death():
    y = prefetch(mapobs(die_on_42, list(range(100))), nworkers=2,
                 method="process")

    with pytest.raises(RuntimeError):
        for _ in y:
            pass


@pytest.mark.parametrize("prefetch_kwargs", prefetch_kwargs_set)
@pytest.mark.timeout(30)
def test_prefetch_early_exit(prefetch_kwargs):
    n_threads = threading.active_count()

    y = prefetch(mapobs(sleep_and_return, list(range(1000))), nworkers=2,
                 max_buffered=2, **prefetch_kwargs)
    it = iter(y)
    for _ in range(10):
        next(it)
    it.close()

    assert threading.active_count() == n_threads

    # a new pass starts from scratch
    assert sorted(y) == list(range(1000))


tls = threading.local()


def set_seed():
    tls.random = random.Random(42)


def draw(_):
    return tls.random.randint(0, 10)


@pytest.mark.timeout(15)
def test_prefetch_start_hook():
    y = list(prefetch(mapobs(draw, [None] * 100), nworkers=1,
                      start_hook=set_seed))

    set_seed()
    z = [draw(None) for _ in range(100)]

    assert y == z


def test_prefetch_checks():
    with pytest.raises(ValueError):
        prefetch([1, 2, 3], method="fiber")
    with pytest.raises(ValueError):
        prefetch([1, 2, 3], nworkers=2, max_buffered=0)
    with pytest.raises(ValueError):
        prefetch([1, 2, 3], nworkers=-1000)

    assert list(prefetch([], nworkers=2)) == []
