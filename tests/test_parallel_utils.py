import pytest
from chisel.parallel_utils import parallel_blocks

def _square(x):
    return x*x

def _add(a, b):
    return a + b

def test_sequential_keeps_order():
    assert parallel_blocks(_square, [(i,) for i in range(10)], num_blocks=1)==[i*i for i in range(10)]

def test_parallel_keeps_order():
    args = [(i,) for i in range(11)]
    results = parallel_blocks(_square, args, num_blocks=3, est_proc_cost=0.)
    assert results==[i*i for i in range(11)]

def test_list_of_functions():
    results = parallel_blocks([_square, _add, _square], [(2,), (1, 2), (3,)], num_blocks=1)
    assert results==[4, 3, 9]

def test_functions_without_arguments():
    assert parallel_blocks([lambda: 1, lambda: 2], num_blocks=1)==[1, 2]

def test_argument_errors():
    with pytest.raises(ValueError):
        parallel_blocks(_square)
    with pytest.raises(ValueError):
        parallel_blocks([_square, _square], [(1,)])
    with pytest.raises(ValueError):
        parallel_blocks(_square, [(1,)], num_blocks=0)
