import numpy as np
import pytest
from numpy.testing import assert_array_equal

from obstools.utils import SeqSlice, as_indices, as_rng, check_indices, \
    compose_indices, group_counts, group_indices, isint


def test_slice():
    arr = list(range(100))

    keys = [
        slice(None, None, None),
        slice(None, -10, None),
        slice(0, 0, 1),
        slice(0, 10, -1),
        slice(10, 0, -1),
        slice(250, -125, -1)]

    for k in keys:
        v = SeqSlice(arr, k)
        assert list(v) == arr[k]
        assert list(iter(v)) == arr[k]
        assert [v[i] for i in range(len(v))] == arr[k]

    v = SeqSlice(arr, slice(3, -25, 4))[14:1:-2]
    assert list(v) == arr[3:-25:4][14:1:-2]
    assert id(v.sequence) == id(arr)

    with pytest.raises(IndexError):
        SeqSlice(arr, slice(0, 10))[10]
    assert SeqSlice(arr, slice(0, 10))[-1] == 9


def test_isint():
    assert isint(3)
    assert isint(np.int32(3))
    assert not isint(3.)
    assert not isint(True)
    assert not isint([3])


@pytest.mark.parametrize("outer,inner", [
    (range(10), range(2, 8, 2)),
    (range(3, 30, 3), range(8, -1, -1)),
    (range(20, 0, -2), range(1, 9, 3)),
    (range(10), [4, 4, 0, 9]),
    (np.array([5, 3, 1, 0]), range(3)),
    (np.array([5, 3, 1, 0]), np.array([3, 3, 0])),
])
def test_compose_indices(outer, inner):
    expected = [list(outer)[i] for i in inner]
    composed = compose_indices(outer, inner)
    assert list(composed) == expected
    if isinstance(outer, range) and isinstance(inner, range):
        assert isinstance(composed, range)


def test_as_indices():
    assert as_indices(range(3, 7)) == range(3, 7)
    assert_array_equal(as_indices([2, 0, 2]), [2, 0, 2])
    assert_array_equal(as_indices(np.array([True, False, True])), [0, 2])
    assert len(as_indices([])) == 0

    with pytest.raises(TypeError):
        as_indices([0.5, 1.5])
    with pytest.raises(TypeError):
        as_indices([[0, 1], [2, 3]])


def test_check_indices():
    check_indices(range(10), 10)
    check_indices(range(9, -1, -1), 10)
    check_indices(np.array([0, 9, 3]), 10)
    check_indices(range(0), 0)

    with pytest.raises(IndexError):
        check_indices(range(11), 10)
    with pytest.raises(IndexError):
        check_indices(np.array([0, -1]), 10)


def test_groups():
    labels = ['b', 'a', 'b', 'c', 'a', 'b']
    groups = group_indices(labels)
    assert list(groups.keys()) == ['b', 'a', 'c']
    assert_array_equal(groups['b'], [0, 2, 5])
    assert_array_equal(groups['a'], [1, 4])
    assert_array_equal(groups['c'], [3])

    assert group_counts(np.array([1, 0, 1, 1])) == {1: 3, 0: 1}


def test_rng():
    a = as_rng(42).permutation(100)
    b = as_rng(42).permutation(100)
    assert_array_equal(a, b)

    g = np.random.default_rng(0)
    assert as_rng(g) is g
    assert as_rng() is as_rng(None)

    with pytest.raises(TypeError):
        as_rng("seed")
