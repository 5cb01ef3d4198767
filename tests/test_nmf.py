"""
Tests for the NMF iteration driver
"""
import numpy as np
import pytest

from graphnmf import (
    NMF, BipartiteRatingGraph, DriverState, NMFConfig, VertexClass
)


def test_one_epoch_on_tiny_graph(tiny_graph):
    """Hand computed item and user half-epochs"""
    model = NMF(rank=1, epochs=1)
    model.fit(tiny_graph, initialize=False)
    assert tiny_graph.item_factors[:, 0] == pytest.approx([3.0, 0.5])
    # users normalized by the item accumulator (2.0)
    assert tiny_graph.user_factors[:, 0] == pytest.approx([2.5, 1.0])
    assert model.accumulators.item.tolist() == [2.0]
    assert model.accumulators.user.tolist() == [2.0]
    # item errors against the initial user factors: 9 + 1 + 0
    assert model.metric_tracker == pytest.approx([np.sqrt(10 / 3)])
    assert model.state is DriverState.DONE


def test_accumulated_rmse_per_class(tiny_graph):
    """Squared errors gathered during each half-epoch, over all ratings"""
    model = NMF(rank=1, epochs=1)
    model.fit(tiny_graph, initialize=False)
    assert model.accumulated_rmse(tiny_graph) == pytest.approx(
        np.sqrt(10 / 3))
    # users see items [3.0, 0.5]: 1 + 0.25 + 1
    assert model.accumulated_rmse(
        tiny_graph, VertexClass.USER) == pytest.approx(np.sqrt(2.25 / 3))
    # current factors, items [3.0, 0.5] and users [2.5, 1.0]
    assert model.rmse(tiny_graph) == pytest.approx(np.sqrt(13.3125 / 3))


def test_accumulators_grow_across_epochs(tiny_graph):
    """Each half-epoch adds to the running sums"""
    model = NMF(rank=1, epochs=2)
    model.fit(tiny_graph, initialize=False)
    assert model.accumulators.item[0] == pytest.approx(2.0 + 3.5)
    assert model.accumulators.user[0] == pytest.approx(2.0 + 3.5)


@pytest.mark.parametrize('epochs', [1, 3, 5])
def test_runs_exactly_the_configured_epochs(random_graph, epochs):
    """E item and E user half-epochs, then halt"""
    model = NMF(rank=random_graph.rank, epochs=epochs, seed=1)
    model.fit(random_graph)
    assert model.half_epochs == {VertexClass.ITEM: epochs,
                                 VertexClass.USER: epochs}
    assert model.engine.n_batches == 2 * epochs
    assert model.engine.n_tasks == epochs * random_graph.n_vertices
    assert len(model.metric_tracker) == epochs


@pytest.mark.parametrize('normalization', ['item', 'per_class'])
def test_factors_stay_non_negative(random_graph, normalization):
    """Multiplicative updates keep every component >= 0"""
    model = NMF(rank=random_graph.rank, epochs=15, seed=5,
                normalization=normalization)
    model.fit(random_graph)
    assert np.all(np.isfinite(random_graph.factors))
    assert np.all(random_graph.factors >= 0.)


def test_threaded_run_matches_serial_run(graph_factory):
    """Vertex updates of one class are order independent"""
    serial, threaded = graph_factory(seed=4), graph_factory(seed=4)
    NMF(rank=serial.rank, epochs=4, seed=2, n_jobs=1).fit(serial)
    NMF(rank=threaded.rank, epochs=4, seed=2, n_jobs=3).fit(threaded)
    assert np.allclose(serial.factors, threaded.factors)


def test_isolated_vertices_survive_training():
    """Unrated items keep their initial factors"""
    graph = BipartiteRatingGraph(3, 2, 2, [0, 1, 1], [0, 0, 1], [5., 3., 1.])
    model = NMF(rank=2, epochs=3, seed=9)
    model.initiate(graph)
    initial = graph.vertex_factors(2).copy()
    model.fit(graph, initialize=False)
    assert np.array_equal(graph.vertex_factors(2), initial)
    assert graph.accumulated_error[2] == 0.


def test_rank_mismatch_and_invalid_settings(tiny_graph):
    """Graph rank must match, epochs and rank must be positive"""
    with pytest.raises(ValueError):
        NMF(rank=2, epochs=1).fit(tiny_graph)
    with pytest.raises(ValueError):
        NMF(rank=1, epochs=0)
    with pytest.raises(ValueError):
        NMF(rank=1, epochs=1, normalization='user')


def test_from_config_copies_options():
    """Driver settings come from NMFConfig"""
    config = NMFConfig(rank=4, epochs=7, n_jobs=2, normalization='per_class',
                       max_prediction=5.)
    model = NMF.from_config(config, mname='cfg_model')
    assert (model.rank, model.epochs, model.n_jobs) == (4, 7, 2)
    assert model.normalization == 'per_class'
    assert model.predict_fn(np.array([3.]), np.array([3.]), 5.)[0] == 5.
    assert model.mname == 'cfg_model'


def test_save_and_load_model(tmp_path, graph_factory):
    """Saved factors restore into a fresh graph"""
    graph = graph_factory(seed=8)
    model = NMF(rank=graph.rank, epochs=2, seed=8)
    model.fit(graph)
    model.save_model(str(tmp_path), graph)

    fresh = graph_factory(seed=99)
    loaded = NMF(rank=graph.rank, epochs=2)
    loaded.load_model(str(tmp_path), fresh)
    assert np.array_equal(fresh.factors, graph.factors)
    assert np.array_equal(loaded.accumulators.item, model.accumulators.item)
    assert loaded.metric_tracker == pytest.approx(model.metric_tracker)


def test_recommendations_skip_rated_items():
    """Top items by score, excluding those already rated"""
    graph = BipartiteRatingGraph(4, 1, 1, [0], [0], [1.0])
    graph.item_factors[:, 0] = [9.0, 1.0, 3.0, 2.0]
    graph.user_factors[:, 0] = [1.0]
    model = NMF(rank=1, epochs=1)
    assert model.get_recommendations_for_this_user(graph, 0, 2) == [2, 3]
    assert model.get_recommendations_for_this_user(
        graph, 0, 1, exclude_rated=False) == [0]
    with pytest.raises(IndexError):
        model.get_recommendations_for_this_user(graph, 1)
