"""
Command line entry point: factorize a rating file

Example:
    graphnmf ratings.tsv --rank 5 --epochs 20 --output out/
"""
import argparse
import logging
import sys
from typing import List, Optional

from .config import NMFConfig, load_config
from .nmf import NMF
from .ratings import load_ratings_file


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of the graphnmf command"""
    parser = argparse.ArgumentParser(
        prog='graphnmf',
        description='Non-negative matrix factorization of a rating file'
    )
    parser.add_argument(
        'ratings',
        type=str,
        help='Rating file, one "user item rating" line per rating'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML config path, command line options take precedence'
    )
    parser.add_argument('--rank', type=int, default=None,
                        help='Factorization rank')
    parser.add_argument('--epochs', type=int, default=None,
                        help='Number of item/user cycles')
    parser.add_argument('--jobs', type=int, default=None,
                        help='Worker threads per half-epoch, -1 for all')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed of the initial factors')
    parser.add_argument('--sep', type=str, default=None,
                        help='Column separator, whitespace by default')
    parser.add_argument('--skiprows', type=int, default=0,
                        help='Header lines to skip')
    parser.add_argument(
        '--perturb',
        type=float,
        nargs='?',
        const=0.01,
        default=None,
        help='Add this fraction of the smallest rating to every rating'
    )
    parser.add_argument('--output', type=str, default=None,
                        help='Directory for the saved factors')
    parser.add_argument('--verbose', action='store_true',
                        help='Progress bars and info messages')
    parser.add_argument('--debug', action='store_true',
                        help='Factor snapshots of boundary vertices')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command, returns the exit code"""
    args = build_parser().parse_args(argv)
    config = load_config(args.config) if args.config else NMFConfig()
    config = config.update(
        rank=args.rank,
        epochs=args.epochs,
        n_jobs=args.jobs,
        seed=args.seed,
        verbose=args.verbose or None,
        debug=args.debug or None,
    )
    logging.basicConfig(
        level='DEBUG' if config.debug else
        ('INFO' if config.verbose else config.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    data = load_ratings_file(
        args.ratings,
        sep=args.sep,
        skiprows=args.skiprows,
        verbose=config.verbose
    )
    if args.perturb is not None:
        data.perturb(scale=args.perturb)
    graph = data.to_graph(rank=config.rank)
    for key, count in (('n_items', graph.n_items), ('n_users', graph.n_users)):
        expected = getattr(config, key)
        if expected is not None and expected != count:
            raise ValueError(
                f'{key} is {expected} in the config, data has {count}')
    print(graph)

    model = NMF.from_config(config, mname=data.name)
    model.fit(graph)
    print(f'Training RMSE after {config.epochs} epochs: '
          f'{model.rmse(graph):.6f}')
    if args.output:
        file_name = model.save_model(args.output, graph)
        print(f'Saved factors to {file_name}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
