import random

import numpy as np
import pytest

from obstools import EvaluationError, ObsView, getobs, filterobs, groupobs, \
    joinobs, mapobs, numobs, seterr


def test_mapobs_basics():
    n = 100
    data = [random.random() for _ in range(n)]

    def do(x):
        do.call_cnt += 1
        return x + 1

    do.call_cnt = 0

    # indexing
    result = mapobs(do, data)
    assert numobs(result) == len(data)
    assert do.call_cnt == 0
    assert list(result) == [x + 1 for x in data]
    assert do.call_cnt == n
    assert [result[i] for i in range(len(result))] == [x + 1 for x in data]
    assert list(result[:]) == [x + 1 for x in data]
    assert getobs(result, [2, 0]) == [data[2] + 1, data[0] + 1]
    assert result[-1] == data[-1] + 1


def test_mapobs_groups():
    x = np.arange(10)

    neg, sq = mapobs((lambda v: -v, lambda v: v ** 2), x)
    assert getobs(neg, 3) == -3
    assert getobs(sq, 3) == 9

    named = mapobs({'neg': lambda v: -v, 'sq': lambda v: v ** 2}, x)
    assert numobs(named) == 10
    assert getobs(named, 4) == {'neg': -4, 'sq': 16}
    assert getobs(named, [1, 2]) == [{'neg': -1, 'sq': 1}, {'neg': -2, 'sq': 4}]

    # observations of groups are passed as a whole
    m = mapobs(lambda obs: obs[0] + obs[1], (x, x))
    assert list(m) == [2 * v for v in x]


class CustomException(Exception):
    pass


@pytest.mark.parametrize('evaluation', ['wrap', 'passthrough'])
def test_mapobs_exceptions(evaluation):
    def do(x):
        del x
        raise CustomException

    data = [random.random() for _ in range(100)]
    m = mapobs(do, data)

    seterr(evaluation)
    error_t = EvaluationError if evaluation == "wrap" else CustomException

    try:
        with pytest.raises(error_t):
            print(m[0])

        with pytest.raises(error_t):
            next(iter(m))

        with pytest.raises(error_t):
            filterobs(do, data)

    finally:
        seterr('wrap')

    with pytest.raises(TypeError):
        mapobs(None, data)


def test_wrapped_error_message():
    def do(x):
        raise CustomException

    m = mapobs(do, [1, 2, 3])
    with pytest.raises(EvaluationError) as excinfo:
        m[1]

    assert isinstance(excinfo.value.__cause__, CustomException)
    assert "item 1" in str(excinfo.value)
    assert "test_mapping.py" in str(excinfo.value)


def test_filterobs():
    data = list(range(-10, 11))
    positive = filterobs(lambda v: v > 5, data)
    assert isinstance(positive, ObsView)
    assert numobs(positive) == 5
    assert list(positive) == [6, 7, 8, 9, 10]

    assert numobs(filterobs(lambda v: False, data)) == 0


def test_groupobs():
    data = list(range(-10, 11))
    groups = groupobs(lambda v: v > 0, data)
    assert list(groups.keys()) == [False, True]
    assert list(groups[True]) == list(range(1, 11))
    assert list(groups[False]) == list(range(-10, 1))

    groups = groupobs(lambda v: v % 3, data)
    assert sum(numobs(g) for g in groups.values()) == len(data)


def test_joinobs():
    arrs = [[random.random() for _ in range(random.randint(100, 200))]
            for _ in range(5)]
    joined = joinobs(*arrs)
    expected = [x for a in arrs for x in a]
    assert numobs(joined) == len(expected)
    assert list(joined) == expected
    assert [getobs(joined, i) for i in range(len(joined))] == expected

    arrs.append([1, 2, 3, 4, 5])
    extra_joined = joinobs(joined, [1, 2, 3, 4, 5])
    assert list(extra_joined) == [x for a in arrs for x in a]
    assert len(extra_joined.datas) == 6

    assert list(extra_joined[250:]) == [x for a in arrs for x in a][250:]
    assert getobs(extra_joined, [0, -1]) == [arrs[0][0], 5]

    joined = joinobs([0, 1], [], [2], np.arange(3, 6))
    assert list(joined) == [0, 1, 2, 3, 4, 5]
    with pytest.raises(IndexError):
        getobs(joined, 6)
