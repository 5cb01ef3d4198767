"""Normalization accumulators shared by all vertex updates of a half-epoch"""
import numpy as np
from .graph import BipartiteRatingGraph, VertexClass


class NormalizationAccumulators:
    """
    Rank sized running sums of the item and of the user factor vectors.
    Zeroed once at construction, every aggregate call adds to them.
    """

    def __init__(self, rank: int, dtype: np.dtype = np.float64):
        if rank <= 0:
            raise ValueError(f'Rank must be a positive integer, got {rank}')
        self.rank = rank
        self.item = np.zeros(rank, dtype=dtype)
        self.user = np.zeros(rank, dtype=dtype)

    def get(self, vclass: VertexClass) -> np.ndarray:
        """Accumulator of a vertex class"""
        return self.item if vclass is VertexClass.ITEM else self.user

    def aggregate(
        self,
        graph: BipartiteRatingGraph,
        vclass: VertexClass
    ) -> None:
        """Add the factor vectors of every vertex of vclass"""
        if graph.rank != self.rank:
            raise ValueError(
                f'Graph rank {graph.rank} != accumulator rank {self.rank}')
        accumulator = self.get(vclass)
        accumulator += graph.class_factors(vclass).sum(axis=0)

    def reset(self) -> None:
        """Zero both accumulators"""
        self.item[:] = 0.
        self.user[:] = 0.

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(rank={self.rank}, '
            f'item={self.item}, user={self.user})'
        )
