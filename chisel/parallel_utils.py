import multiprocessing as mp
import os
import time
from typing import Callable, Iterable, Union

from tqdm import tqdm


def _worker(
    funcs: list[Callable],
    block_args: list[tuple],
    idx: int,
    verbose: bool,
    pbar_title_prefix: str,
) -> list:
    """
    Apply `funcs[i]` to each argument tuple of `block_args`, in order.

    Parameters
    ----------
    funcs : list[Callable]
        Functions to apply, one per argument tuple.
    block_args : list[tuple]
        Argument tuples, unpacked into the corresponding function.
    idx : int
        Index of the block, used for the progress bar position and title.
    verbose : bool
        If `True`, enables the progress bar.
    pbar_title_prefix : str
        Prefix string for the progress bar description.

    Returns
    -------
    list
        Results of the block, in the order of `block_args`.
    """
    with tqdm(
        block_args,
        desc=f"{pbar_title_prefix}: Block {idx}",
        disable=not verbose,
        position=idx,
    ) as pbar:
        return [funcs[i](*args) for i, args in enumerate(pbar)]


def _run_blocks(
    funcs: list[Callable],
    all_args: list[tuple],
    num_blocks: int,
    verbose: bool,
    pbar_title: str,
    disable_parallel: bool,
) -> list:
    n_tasks = len(all_args)
    if disable_parallel:
        return [
            func(*args)
            for func, args in tqdm(zip(funcs, all_args), total=n_tasks, desc=pbar_title, disable=not verbose)
        ]

    # Split the functions and arguments into blocks
    num_blocks = min(num_blocks, n_tasks)
    nb_each, extras = divmod(n_tasks, num_blocks)
    sizes = extras * [nb_each + 1] + (num_blocks - extras) * [nb_each]
    args = []
    start = 0
    for i, size in enumerate(sizes):
        end = start + size
        args.append((funcs[start:end], all_args[start:end], i, verbose, pbar_title))
        start = end

    with mp.Pool(num_blocks) as pool:
        block_results = pool.starmap(_worker, args)
    return [result for block in block_results for result in block]


def parallel_blocks(
    funcs: Union[Callable, Iterable[Callable]],
    all_args: Union[Iterable[tuple], None] = None,
    num_blocks: Union[int, None] = None,
    verbose: bool = False,
    pbar_title: str = "Processing blocks",
    disable_parallel: bool = False,
    est_proc_cost: float = 0.5,
) -> list:
    """
    Execute a set of independent tasks sequentially or in parallel blocks, keeping
    the order of the results.

    The first task is timed to decide whether process creation pays off. If it does,
    the remaining tasks are split in `num_blocks` contiguous blocks handed to a
    `multiprocessing.Pool`; otherwise everything runs in the current process.
    Results are the same in both cases.

    Parameters
    ----------
    funcs : Union[Callable, Iterable[Callable]]
        Function or list of functions to execute.
        - If a single function is provided, it will be applied to each argument tuple in `all_args`.
        - If a list of functions is provided, it must have the same length as `all_args`.
        Functions and arguments must be picklable for the parallel mode.
    all_args : Union[Iterable[tuple], None], optional
        Argument tuples, one per task. If the functions take no arguments, set
        `all_args` to `None`.
    num_blocks : Union[int, None], optional
        Number of parallel blocks (worker processes). Defaults to half the number of
        CPU cores. A value of 1 forces sequential execution.
    verbose : bool, optional
        If True, displays timing information and progress bars. By default, False.
    pbar_title : str, optional
        Title prefix displayed in the progress bar. By default, "Processing blocks".
    disable_parallel : bool, optional
        If True, forces sequential execution. By default, False.
    est_proc_cost : float, optional
        Estimated process creation cost in seconds. By default, 0.5 s.

    Returns
    -------
    list
        List of results, one per task, preserving the input order.

    Examples
    --------
    >>> parallel_blocks(pow, [(2, 3), (3, 2)], num_blocks=1)
    [8, 9]
    """
    if num_blocks is None:
        num_blocks = max(1, (os.cpu_count() or 2) // 2)
    if num_blocks < 1:
        raise ValueError(f"The number of blocks must be positive, got {num_blocks}.")

    if callable(funcs):
        if all_args is None:
            raise ValueError("If 'funcs' is a single callable, 'all_args' must be provided as a list of argument tuples.")
        all_args = list(all_args)
        funcs = [funcs] * len(all_args)
    else:
        funcs = list(funcs)
        all_args = [()] * len(funcs) if all_args is None else list(all_args)
        if len(funcs) != len(all_args):
            raise ValueError("If 'funcs' is an iterable of callables, its length must match the number of argument tuples in 'all_args'.")

    n_tasks = len(all_args)
    if disable_parallel or num_blocks == 1 or n_tasks <= 1:
        return _run_blocks(funcs, all_args, num_blocks, verbose, pbar_title, True)

    t0 = time.time()
    first_result = funcs[0](*all_args[0])
    t_first = time.time() - t0
    t_thresh = (num_blocks / (num_blocks - 1)) * (num_blocks / n_tasks) * est_proc_cost
    disable_parallel = t_first <= t_thresh
    if verbose:
        print(
            f"First task time: {t_first:.3f}s, threshold: {t_thresh:.3f}s -> "
            f"{'Sequential' if disable_parallel else 'Parallel'}"
        )
    results_rest = _run_blocks(funcs[1:], all_args[1:], num_blocks, verbose, pbar_title, disable_parallel)
    return [first_result] + results_rest
