"""
Driver for graph based Non-negative Matrix Factorization

Alternates item and user half-epochs for a fixed number of epochs. Each
half-epoch first aggregates the factors of its class into the
normalization accumulator, then updates every vertex of the class as an
independent task.
"""
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Dict, List, Optional
import numpy as np
from tqdm import tqdm
from .aggregator import NormalizationAccumulators
from .config import NMFConfig
from .engine import TaskEngine
from .graph import BipartiteRatingGraph, Vertex, VertexClass
from .predict import PredictFn, make_predictor
from .update import NormalizationPolicy, nmf_update
from .utils import get_logger

# pylint: disable=invalid-name


class DriverState(Enum):
    """States of the iteration driver"""
    IDLE = 'idle'
    ITEM_AGGREGATE = 'item_aggregate'
    ITEM_UPDATE = 'item_update'
    USER_AGGREGATE = 'user_aggregate'
    USER_UPDATE = 'user_update'
    DONE = 'done'


_STATES = {
    VertexClass.ITEM: (DriverState.ITEM_AGGREGATE, DriverState.ITEM_UPDATE),
    VertexClass.USER: (DriverState.USER_AGGREGATE, DriverState.USER_UPDATE),
}


@dataclass
class NMF:
    """
    Non-negative Matrix Factorization over a bipartite rating graph
    """

    mname: str = 'nmf_model'  # name of the model
    rank: int = 10  # length of every factor vector
    epochs: int = 10  # number of item+user cycles
    n_jobs: int = 1  # worker threads per half-epoch
    normalization: str = 'item'  # accumulator policy, 'item' or 'per_class'
    min_prediction: Optional[float] = None  # clip predictions from below
    max_prediction: Optional[float] = None  # clip predictions from above
    init_low: float = 0.  # initial factors drawn from U[init_low, init_high)
    init_high: float = 1.
    seed: Optional[int] = None
    verbose: bool = False  # progress bars and info messages
    debug: bool = False  # factor snapshots of boundary vertices
    log_level: str = 'WARNING'

    accumulators: Optional[NormalizationAccumulators] = field(
        default=None, init=False, repr=False)
    engine: Optional[TaskEngine] = field(default=None, init=False, repr=False)
    metric_tracker: List[float] = field(
        default_factory=list, init=False, repr=False)
    half_epochs: Dict[VertexClass, int] = field(
        default_factory=dict, init=False, repr=False)
    state: DriverState = field(default=DriverState.IDLE, init=False)

    def __post_init__(self):
        if self.rank <= 0:
            raise ValueError(f'rank must be positive, got {self.rank}')
        if self.epochs <= 0:
            raise ValueError(f'epochs must be positive, got {self.epochs}')
        self.policy = NormalizationPolicy(self.normalization)
        self.logger = get_logger(
            'DEBUG' if self.debug else self.log_level, self)
        self.predict_fn: PredictFn = make_predictor(
            self.min_prediction, self.max_prediction)

    @classmethod
    def from_config(cls, config: NMFConfig, **kwargs) -> 'NMF':
        """Build a driver from an NMFConfig"""
        return cls(
            rank=config.rank,
            epochs=config.epochs,
            n_jobs=config.n_jobs,
            normalization=config.normalization,
            min_prediction=config.min_prediction,
            max_prediction=config.max_prediction,
            init_low=config.init_low,
            init_high=config.init_high,
            seed=config.seed,
            verbose=config.verbose,
            debug=config.debug,
            log_level=config.log_level,
            **kwargs
        )

    def _check_graph(self, graph: BipartiteRatingGraph):
        if graph.rank != self.rank:
            raise ValueError(
                f'Graph rank {graph.rank} != model rank {self.rank}')

    def initiate(
        self,
        graph: BipartiteRatingGraph,
        init_factors: bool = True
    ) -> None:
        """Initiate fitting: random factors, zeroed accumulators"""
        self._check_graph(graph)
        if init_factors:
            graph.init_factors(
                low=self.init_low, high=self.init_high, seed=self.seed)
        self.accumulators = NormalizationAccumulators(
            rank=self.rank, dtype=graph.dtype)
        self.engine = TaskEngine(
            n_jobs=self.n_jobs,
            verbose=self.verbose,
            log_level='DEBUG' if self.debug else self.log_level
        )
        self.metric_tracker = []
        self.half_epochs = {VertexClass.ITEM: 0, VertexClass.USER: 0}
        self.state = DriverState.IDLE

    def update_vertex(self, vertex: Vertex, graph: BipartiteRatingGraph):
        """Update rule applied to one vertex"""
        nmf_update(
            vertex=vertex,
            graph=graph,
            accumulators=self.accumulators,
            predict_fn=self.predict_fn,
            policy=self.policy,
            logger=self.logger if self.debug else None
        )

    def half_epoch(
        self,
        graph: BipartiteRatingGraph,
        vclass: VertexClass
    ) -> None:
        """Aggregate one class, then update all of its vertices"""
        aggregate_state, update_state = _STATES[vclass]
        self.state = aggregate_state
        self.accumulators.aggregate(graph, vclass)
        self.state = update_state
        self.engine.dispatch_batch(
            graph.vertices(vclass),
            partial(self.update_vertex, graph=graph),
            desc=f'NMF-{vclass.value}'
        )
        self.half_epochs[vclass] += 1

    def fit(
        self,
        graph: BipartiteRatingGraph,
        initialize: bool = True
    ) -> 'NMF':
        """Run the configured number of epochs on graph"""
        if initialize or self.accumulators is None:
            self.initiate(graph, init_factors=initialize)
        self._check_graph(graph)
        self.logger.info(
            f'Fitting {self.mname}: rank={self.rank}, epochs={self.epochs}, '
            f'{graph.n_items} items, {graph.n_users} users, '
            f'{graph.n_edges} ratings'
        )
        loop = range(1, self.epochs + 1)
        if self.verbose:
            loop = tqdm(
                iterable=loop,
                total=self.epochs,
                position=0,
                leave=True,
                file=sys.stdout,
                desc='NMF-Train'
            )
        for epoch in loop:
            self.half_epoch(graph, VertexClass.ITEM)
            self.half_epoch(graph, VertexClass.USER)
            train_rmse = self.accumulated_rmse(graph, VertexClass.ITEM)
            self.metric_tracker.append(train_rmse)
            if self.verbose:
                loop.set_postfix(rmse=f'{train_rmse:.4f}')
            self.logger.debug(f'Epoch {epoch}: training RMSE={train_rmse}')
        self.state = DriverState.DONE
        return self

    def rmse(self, graph: BipartiteRatingGraph) -> float:
        """Training RMSE of the current factors over all ratings"""
        if graph.n_edges == 0:
            return 0.
        preds = np.sum(
            graph.factors[graph.sources] * graph.factors[graph.targets],
            axis=1
        )
        if self.min_prediction is not None or self.max_prediction is not None:
            preds = np.clip(preds, self.min_prediction, self.max_prediction)
        return float(np.sqrt(np.mean((graph.weights - preds) ** 2)))

    def accumulated_rmse(
        self,
        graph: BipartiteRatingGraph,
        vclass: VertexClass = VertexClass.ITEM
    ) -> float:
        """RMSE from the squared errors gathered by the last vclass half-epoch

        Item errors are measured against the user factors of the previous
        epoch, before the item factors move.
        """
        if graph.n_edges == 0:
            return 0.
        ids = graph.vertex_ids(vclass)
        total = graph.accumulated_error[ids.start:ids.stop].sum()
        return float(np.sqrt(total / graph.n_edges))

    def get_recommendations_for_this_user(
        self,
        graph: BipartiteRatingGraph,
        user_idx: int,
        num_recs: int = 1,
        exclude_rated: bool = True
    ) -> List[int]:
        """Returns top item indices for this user (local user index)"""
        if user_idx < 0 or user_idx >= graph.n_users:
            raise IndexError(f'User index {user_idx} out of range')
        scores = graph.item_factors @ graph.user_factors[user_idx]
        if exclude_rated:
            user = graph.vertex(graph.n_items + user_idx)
            rated, _ = graph.neighbors(user)
            scores = scores.copy()
            scores[rated] = -np.inf
        num_recs = min(num_recs, graph.n_items)
        if num_recs <= 0:
            return []
        top_inds = np.argpartition(-scores, kth=num_recs - 1)[:num_recs]
        top_inds = top_inds[np.argsort(-scores[top_inds], kind='stable')]
        return [int(ix) for ix in top_inds if np.isfinite(scores[ix])]

    def save_model(self, dir_name: str, graph: BipartiteRatingGraph) -> str:
        """Save the factors of graph and the accumulators"""
        self.logger.info(f'Saving the model in {dir_name}')
        if self.accumulators is None:
            raise ValueError('Nothing to save, model was never fitted')
        os.makedirs(dir_name, exist_ok=True)
        file_name = os.path.join(dir_name, f'{self.mname}.npz')
        np.savez(
            file=file_name,
            item_factors=graph.item_factors,
            user_factors=graph.user_factors,
            item_accumulator=self.accumulators.item,
            user_accumulator=self.accumulators.user,
            metric_tracker=np.asarray(self.metric_tracker)
        )
        return file_name

    def load_model(
        self,
        dir_name: str,
        graph: Optional[BipartiteRatingGraph] = None
    ) -> Dict[str, np.ndarray]:
        """Load saved factors, copying them into graph when given"""
        self.logger.info(f'Loading the model from {dir_name}')
        with np.load(os.path.join(dir_name, f'{self.mname}.npz')) as npzfile:
            arrays = {key: npzfile[key] for key in npzfile.files}
        rank = arrays['item_factors'].shape[1]
        if rank != self.rank:
            raise ValueError(f'Saved rank {rank} != model rank {self.rank}')
        self.accumulators = NormalizationAccumulators(rank=rank)
        self.accumulators.item[:] = arrays['item_accumulator']
        self.accumulators.user[:] = arrays['user_accumulator']
        self.metric_tracker = arrays['metric_tracker'].tolist()
        if graph is not None:
            self._check_graph(graph)
            if (graph.n_items, graph.n_users) != (
                    arrays['item_factors'].shape[0],
                    arrays['user_factors'].shape[0]):
                raise ValueError('Saved factors do not match graph size')
            graph.item_factors[:] = arrays['item_factors']
            graph.user_factors[:] = arrays['user_factors']
        return arrays
