"""
Bipartite rating graph holding the per-vertex factor store
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple
import numpy as np
import scipy.sparse as ss
from .utils import print_sparse_matrix_stats

# pylint: disable=invalid-name


class VertexClass(Enum):
    """The two vertex classes of the rating graph"""
    ITEM = 'item'
    USER = 'user'

    @property
    def opposite(self) -> 'VertexClass':
        """Class on the other side of every edge"""
        return VertexClass.USER if self is VertexClass.ITEM else VertexClass.ITEM


@dataclass(frozen=True)
class Vertex:
    """Vertex id tagged with its class and its offset within the class"""
    vid: int
    vclass: VertexClass
    local_index: int


def _group_edges(keys: np.ndarray, num_groups: int):
    """CSR style grouping of edge ids by owning vertex"""
    order = np.argsort(keys, kind='stable')
    counts = np.bincount(keys, minlength=num_groups)
    indptr = np.zeros(num_groups + 1, dtype=np.int64)
    np.cumsum(counts, out=indptr[1:])
    return indptr, order.astype(np.int64), counts


class BipartiteRatingGraph:
    """
    Items occupy vertex ids [0, n_items), users [n_items, n_items + n_users).
    Every edge joins one item and one user and carries the observed rating.
    Items see their ratings as out-edges, users as in-edges.
    """

    def __init__(
        self,
        n_items: int,
        n_users: int,
        rank: int,
        item_index,
        user_index,
        weights,
        dtype: np.dtype = np.float64
    ):
        if n_items < 0 or n_users < 0:
            raise ValueError('Vertex counts must be non-negative')
        if rank <= 0:
            raise ValueError(f'Rank must be a positive integer, got {rank}')
        item_index = np.asarray(item_index, dtype=np.int64).ravel()
        user_index = np.asarray(user_index, dtype=np.int64).ravel()
        weights = np.asarray(weights, dtype=dtype).ravel()
        if not len(item_index) == len(user_index) == len(weights):
            raise ValueError(
                f'Edge arrays must have equal length: {len(item_index)}, '
                f'{len(user_index)}, {len(weights)}'
            )
        if len(item_index) > 0:
            if item_index.min() < 0 or item_index.max() >= n_items:
                raise ValueError('Item index out of range')
            if user_index.min() < 0 or user_index.max() >= n_users:
                raise ValueError('User index out of range')
        if not np.all(np.isfinite(weights)) or np.any(weights <= 0.):
            raise ValueError('Edge weights must be finite and strictly positive')
        pair_keys = item_index * max(n_users, 1) + user_index
        if np.unique(pair_keys).size != pair_keys.size:
            raise ValueError('Duplicate (item, user) ratings found')

        self.n_items = int(n_items)
        self.n_users = int(n_users)
        self.rank = int(rank)
        self.dtype = dtype

        # edge id = position in these arrays
        self.sources = item_index
        self.targets = user_index + self.n_items
        self.weights = weights

        self._out_indptr, self._out_edges, item_degree = _group_edges(
            item_index, self.n_items)
        self._in_indptr, self._in_edges, user_degree = _group_edges(
            user_index, self.n_users)
        self.degree = np.concatenate([item_degree, user_degree])

        # factor store
        self.factors = np.zeros((self.n_vertices, self.rank), dtype=dtype)
        self.accumulated_error = np.zeros(self.n_vertices, dtype=dtype)

    @property
    def n_vertices(self) -> int:
        """Total vertex count"""
        return self.n_items + self.n_users

    @property
    def n_edges(self) -> int:
        """Number of observed ratings"""
        return self.weights.size

    def count(self, vclass: VertexClass) -> int:
        """Number of vertices in a class"""
        return self.n_items if vclass is VertexClass.ITEM else self.n_users

    def _check_vid(self, vid: int) -> int:
        vid = int(vid)
        if vid < 0 or vid >= self.n_vertices:
            raise IndexError(
                f'Vertex id {vid} outside [0, {self.n_vertices})')
        return vid

    def vertex_class(self, vid: int) -> VertexClass:
        """Class of a vertex id, from the item/user boundary"""
        vid = self._check_vid(vid)
        return VertexClass.ITEM if vid < self.n_items else VertexClass.USER

    def vertex(self, vid: int) -> Vertex:
        """Tagged vertex for an id"""
        vclass = self.vertex_class(vid)
        offset = 0 if vclass is VertexClass.ITEM else self.n_items
        return Vertex(vid=int(vid), vclass=vclass, local_index=int(vid) - offset)

    def vertex_ids(self, vclass: VertexClass) -> range:
        """Vertex ids of one class"""
        if vclass is VertexClass.ITEM:
            return range(0, self.n_items)
        return range(self.n_items, self.n_vertices)

    def vertices(self, vclass: VertexClass) -> List[Vertex]:
        """Tagged vertices of one class"""
        offset = 0 if vclass is VertexClass.ITEM else self.n_items
        return [Vertex(vid=offset + ix, vclass=vclass, local_index=ix)
                for ix in range(self.count(vclass))]

    def incident_edges(self, vertex: Vertex) -> np.ndarray:
        """Edge ids of the vertex: out-edges for items, in-edges for users"""
        ix = vertex.local_index
        if vertex.vclass is VertexClass.ITEM:
            return self._out_edges[self._out_indptr[ix]:self._out_indptr[ix + 1]]
        return self._in_edges[self._in_indptr[ix]:self._in_indptr[ix + 1]]

    def edge_endpoints(self, vertex: Vertex, edge_id: int) -> Tuple[int, float]:
        """(neighbor vertex id, rating) of an edge seen from vertex"""
        if vertex.vclass is VertexClass.ITEM:
            neighbor = self.targets[edge_id]
        else:
            neighbor = self.sources[edge_id]
        return int(neighbor), float(self.weights[edge_id])

    def neighbors(self, vertex: Vertex) -> Tuple[np.ndarray, np.ndarray]:
        """Neighbor vertex ids and ratings of all incident edges"""
        edges = self.incident_edges(vertex)
        if vertex.vclass is VertexClass.ITEM:
            return self.targets[edges], self.weights[edges]
        return self.sources[edges], self.weights[edges]

    def local_index(self, vid: int) -> int:
        """Offset of a vertex id within its own class"""
        return self.vertex(vid).local_index

    def vertex_factors(self, vid: int) -> np.ndarray:
        """Writable view of the factor vector of a vertex"""
        return self.factors[self._check_vid(vid)]

    @property
    def item_factors(self) -> np.ndarray:
        """Item factor rows (n_items x rank) view"""
        return self.factors[:self.n_items]

    @property
    def user_factors(self) -> np.ndarray:
        """User factor rows (n_users x rank) view"""
        return self.factors[self.n_items:]

    def class_factors(self, vclass: VertexClass) -> np.ndarray:
        """Factor rows of one class"""
        if vclass is VertexClass.ITEM:
            return self.item_factors
        return self.user_factors

    def init_factors(
        self,
        low: float = 0.,
        high: float = 1.,
        seed: Optional[int] = None
    ) -> None:
        """Fill all factor vectors with uniform random non-negative values"""
        if low < 0. or high <= low:
            raise ValueError(
                f'Need 0 <= low < high for initial factors, got [{low}, {high})')
        rstate = np.random.RandomState(seed=seed)
        self.factors[:] = rstate.uniform(
            low=low, high=high, size=self.factors.shape)
        self.accumulated_error[:] = 0.

    def to_coo(self) -> ss.coo_matrix:
        """Ratings as an items x users sparse matrix"""
        return ss.coo_matrix(
            (self.weights, (self.sources, self.targets - self.n_items)),
            shape=(self.n_items, self.n_users)
        )

    def predict_matrix(self) -> np.ndarray:
        """Dense items x users matrix of factor dot products"""
        return self.item_factors @ self.user_factors.T

    def __repr__(self) -> str:
        istr = f'{self.__class__.__name__}(rank={self.rank})\n'
        istr += f'  Number of items = {self.n_items}\n'
        istr += f'  Number of users = {self.n_users}\n'
        istr += f'  Ratings: {print_sparse_matrix_stats(self.to_coo())}'
        return istr
