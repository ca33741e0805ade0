import copy
import multiprocessing
import pickle as pkl
import queue
import signal
import threading
from collections import deque

from tblib import pickling_support

from .errors import EvaluationError, format_stack, seterr
from .observation import getobs, getobs_into, numobs
from .utils import get_logger, isint


pickling_support.install()

logger = get_logger(__name__)


# Bounded channels ------------------------------------------------------------

class ChannelClosed(Exception):
    """Raised when using a closed :class:`Channel`.

    When the channel was closed because of an error, `item` and `error`
    hold the failed job and its error.
    """

    def __init__(self, item=None, error=None):
        super().__init__(item, error)
        self.item = item
        self.error = error


class Channel:
    """A bounded FIFO queue which can be closed.

    Producers block while the channel is full, consumers block while it is
    empty. Once closed, pending items can still be retrieved unless the
    channel was closed with an error, :meth:`get` then raises
    :class:`ChannelClosed`.
    """

    def __init__(self, maxsize):
        if maxsize <= 0:
            raise ValueError("channel capacity must be greater than 0")

        self.maxsize = maxsize
        self.items = deque()
        self.cond = threading.Condition()
        self.closed = False
        self.item = None
        self.error = None

    def __len__(self):
        with self.cond:
            return len(self.items)

    def put(self, value):
        with self.cond:
            while len(self.items) >= self.maxsize and not self.closed:
                self.cond.wait()
            if self.closed:
                raise ChannelClosed(self.item, self.error)

            self.items.append(value)
            self.cond.notify_all()

    def get(self):
        with self.cond:
            while len(self.items) == 0 and not self.closed:
                self.cond.wait()
            if self.error is not None:
                raise ChannelClosed(self.item, self.error)
            if len(self.items) == 0:
                raise ChannelClosed()

            value = self.items.popleft()
            self.cond.notify_all()
            return value

    def close(self, item=None, error=None):
        """Close the channel, return False if it was already closed."""
        with self.cond:
            if self.closed:
                return False

            self.closed = True
            self.item = item
            self.error = error
            self.cond.notify_all()
            return True

    def clear(self):
        with self.cond:
            self.items.clear()
            self.cond.notify_all()


class RingBuffer:
    """Rotate a fixed set of buffers between producers and a consumer.

    Producers take a free buffer, fill it and queue it, the consumer gets
    filled buffers one at a time. The last buffer returned by :meth:`take`
    is only recycled on the next call, so it can be read safely meanwhile.

    A `None` buffer is an unallocated slot, `fill(None)` must then return
    a new value which joins the pool. `maxsize` bounds the number of
    filled buffers waiting for the consumer (default all of them).
    """

    def __init__(self, buffers, maxsize=None):
        self.free = Channel(len(buffers))
        for b in buffers:
            self.free.put(b)
        self.results = Channel(maxsize or len(buffers))
        self.current = None

    def put(self, fill):
        buffer = self.free.get()
        self.results.put(fill(buffer))

    def take(self):
        if self.current is not None:
            try:
                self.free.put(self.current)
            except ChannelClosed:
                pass
            self.current = None

        self.current = self.results.get()
        return self.current

    def close(self, item=None, error=None):
        closed = self.results.close(item, error)
        self.free.close()
        return closed

    def clear(self):
        self.results.clear()


# Asynchronous observation loading backends -----------------------------------

class ThreadBackend:
    """Thread-based workers.

    Each worker repeatedly pops an index from the job queue and runs
    `job(index)`, which pushes results into `sink`. A supervisor thread
    starts the workers and closes the sink once they are all done. The
    first failure closes the sink with the failed index and its error.
    """

    def __init__(self, job, jobs, sink, nworkers, init_fn=None):
        self.jobs = queue.Queue()
        for item in jobs:
            self.jobs.put(item)
        self.sink = sink

        self.workers = [
            threading.Thread(target=self.__class__.worker,
                             args=(job, self.jobs, sink, init_fn),
                             daemon=True)
            for _ in range(nworkers)]

        self.supervisor = threading.Thread(target=self.supervise, daemon=True)
        self.supervisor.start()

    def supervise(self):
        for w in self.workers:
            w.start()
        for w in self.workers:
            w.join()

        self.sink.close()
        logger.debug("thread workers finished")

    @staticmethod
    def worker(job, jobs, sink, init_fn):
        try:
            if init_fn is not None:
                init_fn()
        except BaseException as error:
            sink.close(None, error)
            return

        seterr('passthrough')

        while True:
            # acquire job
            try:
                item = jobs.get_nowait()
            except queue.Empty:
                return

            try:
                job(item)
            except ChannelClosed:  # stop requested or another worker failed
                return
            except BaseException as error:
                sink.close(item, error)
                return

    def shutdown(self):
        self.sink.close()
        while True:
            try:
                self.jobs.get_nowait()
            except queue.Empty:
                break

        self.supervisor.join()
        logger.debug("thread backend stopped")


class ProcessBackend:
    """Process-based workers.

    Worker processes claim indices in `range(size)` from a shared counter,
    results are pickled back through a bounded result queue and forwarded
    into `sink` by a supervisor thread, which also reports workers that die
    unexpectedly.
    """

    def __init__(self, data, size, sink, nworkers, capacity, init_fn=None):
        self.size = size
        self.sink = sink

        self.counter = multiprocessing.Value("q", 0)
        self.result_queue = multiprocessing.Queue(maxsize=capacity)
        self.stop = multiprocessing.Event()

        self.workers = []
        in_main_thread = threading.current_thread() is threading.main_thread()
        for _ in range(nworkers):
            worker = multiprocessing.Process(
                target=self.__class__.worker,
                args=(data, size, self.counter, self.result_queue,
                      self.stop, init_fn),
                daemon=True)
            # workers must not receive the user's interruptions
            if in_main_thread:
                old_sig_hdl = signal.signal(signal.SIGINT, signal.SIG_IGN)
                worker.start()
                signal.signal(signal.SIGINT, old_sig_hdl)
            else:
                worker.start()
            self.workers.append(worker)

        self.supervisor = threading.Thread(target=self.supervise, daemon=True)
        self.supervisor.start()

    def supervise(self):
        remaining = self.size
        while remaining > 0:
            # results sent before exiting are already readable
            exited = all(w.exitcode is not None for w in self.workers)
            try:
                item, success, payload = self.result_queue.get(timeout=.1)
            except queue.Empty:
                if self.stop.is_set():
                    return
                if any(w.exitcode not in (None, 0) for w in self.workers):
                    self.sink.close(None, RuntimeError("a worker died unexpectedly"))
                    return
                if exited:
                    self.sink.close(None, RuntimeError(
                        "workers exited with {} items left".format(remaining)))
                    return
                continue

            remaining -= 1
            value = pkl.loads(payload)
            if not success:
                self.sink.close(item, value)
                return

            try:
                self.sink.put(value)
            except ChannelClosed:
                return

        self.sink.close()
        logger.debug("process workers finished")

    @staticmethod
    def worker(data, size, counter, result_queue, stop, init_fn):
        logger.debug("worker started")

        if init_fn is not None:
            init_fn()

        seterr('passthrough')

        while not stop.is_set():
            # acquire job
            with counter.get_lock():
                item = counter.value
                counter.value += 1
            if item >= size:
                break

            # collect value (or error trying)
            try:
                value = getobs(data, item)
            except BaseException as e:
                value = e
                success = False
            else:
                success = True

            # serialize it
            try:
                payload = pkl.dumps(value, protocol=-1)
            except Exception as e:  # gracefully recover failed serialization
                if success:
                    success = False
                    msg = ("failed to send item {} to parent process, ".format(item)
                           + "is it picklable? Error message was:\n{}".format(e))
                    payload = pkl.dumps(ValueError(msg))
                else:  # serialize error message because error can't be pickled
                    payload = pkl.dumps(str(value))

            # send it
            while True:
                try:
                    result_queue.put((item, success, payload), timeout=.1)
                    break
                except queue.Full:
                    if stop.is_set():
                        result_queue.cancel_join_thread()
                        logger.debug("worker stopping on request")
                        return

            if not success:
                break

        logger.debug("worker stopped")

    def shutdown(self):
        self.stop.set()
        self.sink.close()
        self.supervisor.join()

        for w in self.workers:
            w.join(timeout=1)
            if w.is_alive():
                w.terminate()
                w.join()

        self.result_queue.close()
        logger.debug("process backend stopped")


# -----------------------------------------------------------------------------

def reraise_err(item, error, stack_desc=None):
    """(re)Raise an evaluation error with contextual debug info."""

    if item is None and isinstance(error, BaseException):
        raise error

    msg = "failed to evaluate item {}".format(item)
    if stack_desc:
        msg += " in prefetch created at :\n{}".format(stack_desc)

    if isinstance(error, str):
        msg += "\n\noriginal error was:\n{}".format(error)
        raise EvaluationError(msg)

    elif seterr() == "passthrough":
        raise error

    else:
        raise EvaluationError(msg) from error


class ParallelLoader:
    """Iterate over the observations of a container using background workers.

    Every iteration starts a new pass with its own workers and channel,
    they are stopped when the pass completes or is interrupted. Observations
    are delivered in order of completion.
    """

    def __init__(self, data, nworkers, method, max_buffered, buffer,
                 start_hook=None, init_stack=None):
        self.data = data
        self.nworkers = nworkers
        self.method = method
        self.max_buffered = max_buffered
        self.buffer = buffer
        self.start_hook = start_hook
        self.creation_stack = init_stack

    def __len__(self):
        return numobs(self.data)

    def make_ring(self):
        # one slot per queued value, per busy worker and for the consumer
        count = self.max_buffered + self.nworkers + 1
        if self.buffer is True:  # allocated by the first fills
            buffers = [None] * count
        else:
            buffers = [self.buffer] + [copy.deepcopy(self.buffer)
                                       for _ in range(count - 1)]

        return RingBuffer(buffers, self.max_buffered)

    def start(self, n):
        data = self.data

        if self.method == "process":
            sink = Channel(self.max_buffered)
            backend = ProcessBackend(
                data, n, sink, self.nworkers, self.max_buffered,
                init_fn=self.start_hook)
            return sink.get, backend

        elif self.buffer is not False and n > 0:
            sink = self.make_ring()

            def fill(buf, item):
                if buf is None:
                    return getobs(data, item)
                return getobs_into(buf, data, item)

            def job(item):
                sink.put(lambda buf: fill(buf, item))

            backend = ThreadBackend(
                job, range(n), sink, self.nworkers, init_fn=self.start_hook)
            return sink.take, backend

        else:
            sink = Channel(self.max_buffered)

            def job(item):
                sink.put(getobs(data, item))

            backend = ThreadBackend(
                job, range(n), sink, self.nworkers, init_fn=self.start_hook)
            return sink.get, backend

    def __iter__(self):
        n = numobs(self.data)
        logger.debug("starting a pass over %d items with %d %s workers",
                     n, self.nworkers, self.method)
        take, backend = self.start(n)

        try:
            while True:
                try:
                    value = take()
                except ChannelClosed as closed:
                    if closed.error is None:
                        return
                    reraise_err(closed.item, closed.error, self.creation_stack)

                yield value

        finally:
            backend.shutdown()


def check_workers(nworkers, max_buffered=None):
    """Resolve the number of workers and of buffered values.

    Return:
        tuple: the number of workers and the buffer capacity.
    """
    if not isint(nworkers):
        raise TypeError("nworkers must be an integer")
    if nworkers <= 0:
        nworkers = multiprocessing.cpu_count() + nworkers
    if nworkers <= 0:
        raise ValueError("at least one worker required")

    if max_buffered is None:
        max_buffered = nworkers
    if not isint(max_buffered) or max_buffered <= 0:
        raise ValueError('max_buffered must be greater than 0')

    return nworkers, max_buffered


def prefetch(data, nworkers=0, method="thread", max_buffered=None,
             buffer=False, start_hook=None):
    """Wrap a data container to load observations ahead using background workers.

    Observations are computed by a pool of workers and pushed into a
    bounded queue read by the consumer. Workers block when the queue is
    full and the consumer blocks when it is empty. **Observations are
    delivered in order of completion**, which may differ from their index
    order.

    Args:
        data:
            The data source.
        nworkers (int):
            Number of workers, negative values or zero indicate the
            number of cpu cores to spare (default 0).
        method (str):
            Type of workers (default `'thread'`):

            * `'thread'` uses :class:`python:threading.Thread` which
              has low overhead but allows only one active worker at a
              time, ideal for IO-bound operations or code that releases
              the GIL.
            * `'process'` uses :class:`python:multiprocessing.Process`
              which provides full parallelism but adds communication
              overhead between workers and the parent process, data and
              observations must be picklable.
        max_buffered (Optional[int]):
            limit on the number of prefetched values at any time (default
            equals the number of workers).
        buffer (Union[bool, Any]):
            reuse a rotating set of buffers filled with
            :func:`getobs_into` instead of allocating new observations,
            either `True` or a buffer object used as a template. Returned
            values are only valid until the next one is requested. Only
            supported with threads.
        start_hook (Optional[Callable]):
            Optional callback run by workers on start.

    Returns:
        An iterable over the observations, with a length.
    """
    nworkers, max_buffered = check_workers(nworkers, max_buffered)

    if method not in ("thread", "process"):
        raise ValueError("invalid prefetching method")
    if method == "process" and buffer is not False:
        logger.warning("buffer reuse is not supported by process workers, "
                       "ignoring it")
        buffer = False

    return ParallelLoader(data, nworkers, method, max_buffered, buffer,
                          start_hook=start_hook, init_stack=format_stack())
