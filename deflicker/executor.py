"""
Work partitioning and the parallel phase runner.

Frames are dealt round-robin into one queue per worker. Each worker process
gets a pickled copy of its queue, applies the per-frame operation in queue
order and returns the finished batch; the caller waits for every batch before
reassembling them by frame id.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from .errors import DeflickerError, WorkerError
from .frames import Frame

try:
    from tqdm.auto import tqdm
    HAVE_TQDM = True
except Exception:
    HAVE_TQDM = False

LOGGER = logging.getLogger("deflicker")

FrameOp = Callable[[Frame], Frame]


def partition_indices(count: int, workers: int) -> List[List[int]]:
    """
    Split ``range(count)`` into ``workers`` queues; queue q holds every i with i % workers == q.

    Queues keep ascending order. With more workers than items the trailing queues are empty.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    queues: List[List[int]] = [[] for _ in range(workers)]
    for i in range(count):
        queues[i % workers].append(i)
    return queues


def _run_batch(operation: FrameOp, batch: List[Frame]) -> List[Frame]:
    """Worker body: apply ``operation`` to each frame of the batch in order."""
    return [operation(frame) for frame in batch]


def _reassemble(batches: Sequence[List[Frame]], count: int) -> List[Frame]:
    slots: List[Optional[Frame]] = [None] * count
    for batch in batches:
        for frame in batch:
            if not 0 <= frame.id < count:
                raise WorkerError(f"Worker returned unknown frame id {frame.id}")
            if slots[frame.id] is not None:
                raise WorkerError(f"Frame {frame.id} was returned more than once")
            slots[frame.id] = frame
    missing = [i for i, f in enumerate(slots) if f is None]
    if missing:
        raise WorkerError(f"No result received for frame(s) {missing[:10]}{'...' if len(missing) > 10 else ''}")
    return slots  # type: ignore[return-value]


def run_parallel(
        operation: FrameOp,
        frames: Sequence[Frame],
        workers: int,
        description: str = "",
        show_progress: bool = True,
        verbose: bool = False,
) -> List[Frame]:
    """
    Run ``operation`` over all frames with ``workers`` processes and return the results in id order.

    Any worker that fails to deliver its batch makes the whole phase fail; nothing
    is aggregated from the batches that did finish.

    Args:
        operation: Picklable per-frame callable (module-level function or functools.partial of one)
        frames: Frames in id order, ids 0..N-1
        workers: Number of worker processes (1 runs in-process)
        description: Progress bar label
        show_progress: Show a tqdm bar
        verbose: Log each worker's batch size

    Returns:
        New list of frames, index i holding the frame with id i
    """
    count = len(frames)
    queues = partition_indices(count, workers)
    batches = [[frames[i] for i in q] for q in queues if q]
    if not batches:
        return []

    use_bar = show_progress and HAVE_TQDM and count > 0
    pbar = tqdm(total=count, unit="img", desc=description or None) if use_bar else None

    try:
        if workers <= 1:
            results = []
            for batch in batches:
                done = []
                for frame in batch:
                    try:
                        done.append(operation(frame))
                    except DeflickerError:
                        raise
                    except Exception as e:
                        raise WorkerError(f"Processing {frame.filename} failed: {e!r}") from e
                    if pbar is not None:
                        pbar.update(1)
                results.append(done)
            return _reassemble(results, count)

        if verbose:
            for qid, batch in enumerate(batches):
                LOGGER.info("Worker %d got %d image(s)", qid + 1, len(batch))

        with ProcessPoolExecutor(max_workers=len(batches)) as ex:
            futs = [ex.submit(_run_batch, operation, batch) for batch in batches]
            sizes = {fut: len(batch) for fut, batch in zip(futs, batches)}
            # Barrier: results are only read once every worker has finished.
            for fut in as_completed(futs):
                if pbar is not None:
                    pbar.update(sizes[fut])

        results = []
        for qid, fut in enumerate(futs):
            exc = fut.exception()
            if exc is None:
                results.append(fut.result())
            elif isinstance(exc, DeflickerError):
                raise exc
            else:
                raise WorkerError(f"Worker {qid + 1} did not return a result: {exc!r}") from exc
        return _reassemble(results, count)
    finally:
        if pbar is not None:
            pbar.close()
