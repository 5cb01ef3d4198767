"""
Per-vertex multiplicative update for divergence minimizing NMF

Lee, D.D., and Seung, H.S., (2001), 'Algorithms for Non-negative Matrix
Factorization', Adv. Neural Info. Proc. Syst. 13, 556-562.

The matrix form h *= (w' (v / (w h))) / colsum(w) is split per vertex:
gather the observed/predicted ratio on every incident edge, scatter the
neighbor factors weighted by that ratio, divide by the shared accumulator.
"""
import logging
from enum import Enum
from typing import Optional
import numpy as np
from .aggregator import NormalizationAccumulators
from .graph import BipartiteRatingGraph, Vertex, VertexClass
from .predict import PredictFn, predict
from .utils import format_vector


class NormalizationPolicy(Enum):
    """Which accumulator divides the update of each vertex class"""
    ITEM = 'item'  # item accumulator for both classes
    PER_CLASS = 'per_class'  # accumulator of the class being updated


class DegenerateDenominatorError(ArithmeticError):
    """A normalization accumulator component is zero"""


def select_accumulator(
    accumulators: NormalizationAccumulators,
    vclass: VertexClass,
    policy: NormalizationPolicy = NormalizationPolicy.ITEM
) -> np.ndarray:
    """Denominator used when updating a vertex of vclass"""
    if policy is NormalizationPolicy.PER_CLASS:
        return accumulators.get(vclass)
    return accumulators.item


def _is_boundary(vertex: Vertex, graph: BipartiteRatingGraph) -> bool:
    return vertex.local_index in (0, graph.count(vertex.vclass) - 1)


def nmf_update(
    vertex: Vertex,
    graph: BipartiteRatingGraph,
    accumulators: NormalizationAccumulators,
    predict_fn: PredictFn = predict,
    policy: NormalizationPolicy = NormalizationPolicy.ITEM,
    logger: Optional[logging.Logger] = None
) -> None:
    """Rescale the factor vector of one vertex in place.

    Args:
        vertex: Vertex to update
        graph: Rating graph owning the factor store
        accumulators: Normalization accumulators of the current half-epoch
        predict_fn: (a, b, observed) -> (prediction, squared_error)
        policy: Accumulator selection
        logger: Debug snapshots of the first/last vertex of each class

    Raises:
        DegenerateDenominatorError: If the selected accumulator has a zero
    """
    factors = graph.vertex_factors(vertex.vid)
    if logger is not None and logger.isEnabledFor(logging.DEBUG) \
            and _is_boundary(vertex, graph):
        logger.debug(
            f'NMF: entering {vertex.vclass.value} node {vertex.vid} '
            f'{format_vector(factors)}'
        )

    graph.accumulated_error[vertex.vid] = 0.
    if graph.degree[vertex.vid] == 0:
        return

    accumulator = select_accumulator(accumulators, vertex.vclass, policy)
    if np.any(accumulator == 0.):
        raise DegenerateDenominatorError(
            f'Zero {policy.value} accumulator component while updating '
            f'vertex {vertex.vid}: {format_vector(accumulator)}'
        )

    # scratch buffers, keyed by the neighbor's offset within its class
    opposite = vertex.vclass.opposite
    offset = 0 if opposite is VertexClass.ITEM else graph.n_items
    ratio = np.zeros(graph.count(opposite), dtype=graph.dtype)
    gathered = np.zeros(graph.rank, dtype=graph.dtype)

    # gather
    edges = graph.incident_edges(vertex)
    squared_error = 0.
    with np.errstate(divide='ignore', invalid='ignore'):
        for edge_id in edges:
            neighbor, weight = graph.edge_endpoints(vertex, edge_id)
            prediction, sq_err = predict_fn(
                factors, graph.factors[neighbor], weight)
            ratio[neighbor - offset] = np.divide(weight, prediction)
            squared_error += sq_err
    graph.accumulated_error[vertex.vid] = squared_error

    # scatter
    neighbor_ids, _ = graph.neighbors(vertex)
    gathered += ratio[neighbor_ids - offset] @ graph.factors[neighbor_ids]

    # rescale
    with np.errstate(invalid='ignore'):
        factors *= gathered / accumulator
