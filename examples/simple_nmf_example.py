"""
Simple NMF Example

Demonstrates minimal code to factorize ratings with graphnmf.
Shows separation between data prep and model training.
Reuse the same RatingData with different normalization policies.
"""

import numpy as np

from graphnmf import NMF, RatingData, load_config


def create_synthetic_data():
    """
    Create a simple synthetic rating dataset for demonstration.

    Returns:
        RatingData object ready for factorization
    """
    # Ratings from a rank-3 non-negative ground truth
    np.random.seed(42)
    n_users = 300
    n_items = 120
    n_ratings = 5000
    true_users = np.random.gamma(2.0, 0.5, size=(n_users, 3))
    true_items = np.random.gamma(2.0, 0.5, size=(n_items, 3))

    user_ids = np.random.randint(0, n_users, size=n_ratings)
    item_ids = np.random.randint(0, n_items, size=n_ratings)
    scores = np.sum(true_users[user_ids] * true_items[item_ids], axis=1)
    ratings = np.clip(np.round(scores), 1, 5)

    data = RatingData(name='synthetic_ratings')
    data.add_ratings(user_ids=user_ids, item_ids=item_ids, ratings=ratings)
    print(f"Created synthetic dataset: {data}")
    return data


def example_1_basic_training():
    """Example 1: Basic training with default settings."""
    print("="*80)
    print("Example 1: Basic Training")
    print("="*80)

    data = create_synthetic_data()
    graph = data.to_graph(rank=3)
    model = NMF(rank=3, epochs=25, seed=1, verbose=True)
    model.fit(graph)
    print(f"Training RMSE per epoch: {np.round(model.metric_tracker, 4)}")


def example_2_config_file():
    """Example 2: Training with YAML config file."""
    print("\n" + "="*80)
    print("Example 2: Training with YAML Config File")
    print("="*80)

    data = create_synthetic_data()
    config = load_config('examples/nmf_config.yaml')
    graph = data.to_graph(rank=config.rank)
    model = NMF.from_config(config, mname=data.name)
    model.fit(graph)
    print(f"Final training RMSE: {model.rmse(graph):.4f}")
    print("Top items for user 0:",
          [data.get_id(ix, 'item')
           for ix in model.get_recommendations_for_this_user(graph, 0, 5)])


def example_3_compare_policies():
    """Example 3: Item-only vs per-class normalization."""
    print("\n" + "="*80)
    print("Example 3: Normalization Policies")
    print("="*80)

    data = create_synthetic_data()
    for normalization in ['item', 'per_class']:
        graph = data.to_graph(rank=3)
        model = NMF(rank=3, epochs=25, seed=1, normalization=normalization)
        model.fit(graph)
        print(f"{normalization:>10}: RMSE={model.rmse(graph):.4f}")


if __name__ == "__main__":
    example_1_basic_training()
    example_2_config_file()
    example_3_compare_policies()
