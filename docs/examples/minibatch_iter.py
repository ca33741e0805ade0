import time

import numpy as np

import obstools


features = np.random.rand(16, 2000)
labels = np.random.randint(0, 3, size=2000)


def preprocess(x):
    t = time.perf_counter()
    while time.perf_counter() - t < 0.0005:
        pass  # busy waiting
    return x * 2


train, test = obstools.splitobs((features, labels), at=0.8, shuffle=True,
                                stratified=labels, rng=0)
preprocessed = obstools.mapobs(preprocess, obstools.ObsView(train[0]))

t1 = time.time()
for batch in obstools.DataLoader(preprocessed, batch_size=64, collate=True,
                                 shuffle=True, rng=1):
    pass
t2 = time.time()
print("sequential read took {:.1f}\"".format(t2 - t1))


t1 = time.time()
for batch in obstools.DataLoader(preprocessed, batch_size=64, collate=True,
                                 shuffle=True, rng=1, parallel=True,
                                 nworkers=2, buffersize=8):
    pass
t2 = time.time()
print("threaded read took {:.1f}\"".format(t2 - t1))


batches = obstools.batchview(preprocessed, 64, collate=True)
t1 = time.time()
for batch in obstools.prefetch(batches, max_buffered=8, method="process",
                               nworkers=2):
    pass
t2 = time.time()
print("multiprocessing read took {:.1f}\"".format(t2 - t1))
