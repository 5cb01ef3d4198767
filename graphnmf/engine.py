"""Vertex parallel task dispatch with a barrier at the end of every batch"""
import math
import sys
from typing import Callable, Hashable, Iterable, List
from joblib import Parallel, delayed, cpu_count
from tqdm import tqdm
from .utils import get_logger


class TaskEngine:
    """
    Runs one update function over a batch of independent vertex ids.
    dispatch_batch returns only after every task of the batch finished.
    """

    def __init__(
        self,
        n_jobs: int = 1,
        chunks_per_job: int = 4,
        verbose: bool = False,
        log_level: str = 'WARNING'
    ):
        if n_jobs == 0:
            raise ValueError('n_jobs must be non-zero')
        self.n_jobs = n_jobs if n_jobs > 0 else cpu_count()
        self.chunks_per_job = max(int(chunks_per_job), 1)
        self.verbose = verbose
        self.logger = get_logger(log_level, self)
        self.n_tasks = 0
        self.n_batches = 0

    def _chunks(self, vertex_ids: List) -> List[List]:
        num_chunks = min(self.n_jobs * self.chunks_per_job, len(vertex_ids))
        size = math.ceil(len(vertex_ids) / max(num_chunks, 1))
        return [vertex_ids[ix:ix + size]
                for ix in range(0, len(vertex_ids), size)]

    def dispatch_batch(
        self,
        vertex_ids: Iterable[Hashable],
        update_fn: Callable[[Hashable], None],
        desc: str = 'NMF-Batch'
    ) -> None:
        """Run update_fn(vid) for every id, block until all are done.

        Args:
            vertex_ids: Distinct vertices, no ordering among them is kept
            update_fn: Update applied to one vertex
            desc: Progress bar label

        Raises:
            ValueError: If a vertex id appears more than once
        """
        vertex_ids = list(vertex_ids)
        if len(set(vertex_ids)) != len(vertex_ids):
            raise ValueError('A vertex appears twice in one dispatch batch')
        self.logger.debug(
            f'Dispatching {len(vertex_ids)} tasks on {self.n_jobs} job(s)')
        if not vertex_ids:
            self.n_batches += 1
            return

        if self.n_jobs == 1:
            looper = vertex_ids
            if self.verbose:
                looper = tqdm(
                    iterable=vertex_ids,
                    total=len(vertex_ids),
                    position=1,
                    leave=False,
                    file=sys.stdout,
                    desc=desc
                )
            for vid in looper:
                update_fn(vid)
        else:
            def run_chunk(chunk):
                for vid in chunk:
                    update_fn(vid)

            # threads share the factor store, every task writes its own row
            with Parallel(n_jobs=self.n_jobs, prefer='threads') as parallel:
                parallel(delayed(run_chunk)(chunk)
                         for chunk in self._chunks(vertex_ids))

        self.n_tasks += len(vertex_ids)
        self.n_batches += 1

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(n_jobs={self.n_jobs}, '
            f'batches={self.n_batches}, tasks={self.n_tasks})'
        )
