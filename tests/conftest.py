"""Shared fixtures for graphnmf tests"""
import numpy as np
import pytest

from graphnmf import BipartiteRatingGraph


@pytest.fixture
def tiny_graph():
    """2 items, 2 users, rank 1, all factors 1.0"""
    graph = BipartiteRatingGraph(
        n_items=2,
        n_users=2,
        rank=1,
        item_index=[0, 0, 1],
        user_index=[0, 1, 0],
        weights=[4.0, 2.0, 1.0]
    )
    graph.factors[:] = 1.0
    return graph


def make_random_graph(n_items=6, n_users=8, rank=3, density=0.5, seed=7):
    """Random graph where every vertex has at least one rating"""
    rstate = np.random.RandomState(seed)
    mask = rstate.uniform(size=(n_items, n_users)) < density
    mask[np.arange(n_items), np.arange(n_items) % n_users] = True
    mask[np.arange(n_users) % n_items, np.arange(n_users)] = True
    items, users = np.nonzero(mask)
    weights = rstate.randint(1, 6, size=items.size).astype(float)
    graph = BipartiteRatingGraph(
        n_items=n_items,
        n_users=n_users,
        rank=rank,
        item_index=items,
        user_index=users,
        weights=weights
    )
    graph.init_factors(low=0.1, high=1.0, seed=seed)
    return graph


@pytest.fixture
def random_graph():
    """Random fully connected-ish rating graph"""
    return make_random_graph()


@pytest.fixture
def graph_factory():
    """Builds independent random graphs"""
    return make_random_graph
