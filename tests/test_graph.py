"""
Tests for the bipartite rating graph and its factor store
"""
import numpy as np
import pytest

from graphnmf import BipartiteRatingGraph, Vertex, VertexClass


def test_vertex_class_follows_item_boundary(tiny_graph):
    """Ids below n_items are items, the rest users"""
    assert tiny_graph.vertex_class(0) is VertexClass.ITEM
    assert tiny_graph.vertex_class(1) is VertexClass.ITEM
    assert tiny_graph.vertex_class(2) is VertexClass.USER
    assert tiny_graph.vertex_class(3) is VertexClass.USER
    assert tiny_graph.vertex(3) == Vertex(vid=3, vclass=VertexClass.USER,
                                          local_index=1)
    with pytest.raises(IndexError):
        tiny_graph.vertex_class(4)
    with pytest.raises(IndexError):
        tiny_graph.vertex_factors(-1)


def test_items_use_out_edges_and_users_in_edges(tiny_graph):
    """Both classes enumerate their own ratings"""
    item0 = tiny_graph.vertex(0)
    user0 = tiny_graph.vertex(2)
    assert sorted(tiny_graph.incident_edges(item0).tolist()) == [0, 1]
    assert sorted(tiny_graph.incident_edges(user0).tolist()) == [0, 2]
    assert tiny_graph.edge_endpoints(item0, 1) == (3, 2.0)
    assert tiny_graph.edge_endpoints(user0, 2) == (1, 1.0)
    neighbors, weights = tiny_graph.neighbors(user0)
    assert sorted(zip(neighbors.tolist(), weights.tolist())) == \
        [(0, 4.0), (1, 1.0)]


def test_degree_and_class_listing(tiny_graph):
    """Degree counts incident ratings per vertex"""
    assert tiny_graph.degree.tolist() == [2, 1, 2, 1]
    assert [v.vid for v in tiny_graph.vertices(VertexClass.USER)] == [2, 3]
    assert list(tiny_graph.vertex_ids(VertexClass.ITEM)) == [0, 1]
    assert VertexClass.ITEM.opposite is VertexClass.USER


def test_vertex_factors_is_a_writable_view(tiny_graph):
    """Writing through vertex_factors changes the store"""
    tiny_graph.vertex_factors(3)[0] = 7.0
    assert tiny_graph.user_factors[1, 0] == 7.0
    assert tiny_graph.factors[3, 0] == 7.0


@pytest.mark.parametrize('weights', [[1.0, 0.0], [1.0, -2.0], [1.0, np.nan]])
def test_non_positive_weights_rejected(weights):
    """Ratings on edges must be strictly positive"""
    with pytest.raises(ValueError):
        BipartiteRatingGraph(2, 2, 1, [0, 1], [0, 1], weights)


def test_duplicate_ratings_rejected():
    """A pair rated twice can not share one ratio slot"""
    with pytest.raises(ValueError):
        BipartiteRatingGraph(2, 2, 1, [0, 0], [1, 1], [1.0, 2.0])


def test_out_of_range_edges_rejected():
    """Edge endpoints must lie inside their class"""
    with pytest.raises(ValueError):
        BipartiteRatingGraph(2, 2, 1, [2], [0], [1.0])
    with pytest.raises(ValueError):
        BipartiteRatingGraph(2, 2, 0, [0], [0], [1.0])


def test_init_factors_is_seeded_and_non_negative():
    """Same seed, same factors"""
    graph_a = BipartiteRatingGraph(3, 4, 2, [0, 1, 2], [0, 1, 3], [1, 2, 3])
    graph_b = BipartiteRatingGraph(3, 4, 2, [0, 1, 2], [0, 1, 3], [1, 2, 3])
    graph_a.init_factors(seed=11)
    graph_b.init_factors(seed=11)
    assert np.array_equal(graph_a.factors, graph_b.factors)
    assert np.all(graph_a.factors >= 0.)
    with pytest.raises(ValueError):
        graph_a.init_factors(low=-1., high=1.)


def test_to_coo_is_items_by_users(tiny_graph):
    """Sparse view keeps the ratings in place"""
    mat = tiny_graph.to_coo().toarray()
    assert mat.shape == (2, 2)
    assert mat.tolist() == [[4.0, 2.0], [1.0, 0.0]]
    assert tiny_graph.predict_matrix().tolist() == [[1.0, 1.0], [1.0, 1.0]]
