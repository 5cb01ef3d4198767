#!/usr/bin/env python3
"""Rating data management and rating graph construction."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import joblib
import numpy as np
import pandas as pd
import scipy.sparse as sp

from .graph import BipartiteRatingGraph
from .utils import get_logger, print_sparse_matrix_stats


class RatingData:
    """Observed ratings between external user and item ids."""

    def __init__(
        self,
        name: str,
        dtype: np.dtype = np.float64,
        verbose: bool = True,
        log_level: str = 'INFO'
    ) -> None:
        """Initialize RatingData with dynamic dimensions."""
        if not name or not isinstance(name, str):
            raise ValueError("Name must be a non-empty string")

        if (not isinstance(dtype, type) or
                not issubclass(dtype, np.floating)):
            raise ValueError(
                "dtype must be a numpy floating point type"
            )

        self.name = name
        self.dtype = dtype
        self.verbose = verbose
        self.logger = get_logger(log_level if verbose else 'WARNING', self)

        self.n_users = 0
        self.n_items = 0

        # users x items, duplicates summed on conversion
        self._R = sp.coo_matrix((0, 0), dtype=dtype)

        # ID to index mappings: (id_to_idx, idx_to_id)
        self._id_to_idx_mappings: Dict[str, Tuple[dict, dict]] = {
            'user': (dict(), dict()),
            'item': (dict(), dict()),
        }

    def _get_index(self, input_id, mapping_type: str) -> int:
        """Get or create index for given ID."""
        if mapping_type not in self._id_to_idx_mappings:
            raise ValueError(f"Unknown mapping type: {mapping_type}")

        id_to_idx, idx_to_id = self._id_to_idx_mappings[mapping_type]

        if input_id not in id_to_idx:
            idx = len(id_to_idx)
            id_to_idx[input_id] = idx
            idx_to_id[idx] = input_id
            if mapping_type == 'user':
                self.n_users = max(self.n_users, idx + 1)
            else:
                self.n_items = max(self.n_items, idx + 1)

        return id_to_idx[input_id]

    def get_id(self, idx: int, mapping_type: str):
        """Get original ID from internal index.

        Args:
            idx: Internal index
            mapping_type: 'user' or 'item'

        Returns:
            Original ID
        """
        if mapping_type not in self._id_to_idx_mappings:
            raise ValueError(f"Unknown mapping type: {mapping_type}")

        _, idx_to_id = self._id_to_idx_mappings[mapping_type]
        if idx not in idx_to_id:
            raise ValueError(
                f"{mapping_type.capitalize()} index {idx} not found in mapping"
            )
        return idx_to_id[idx]

    def get_index(self, input_id, mapping_type: str) -> int:
        """Get internal index of an existing ID."""
        if mapping_type not in self._id_to_idx_mappings:
            raise ValueError(f"Unknown mapping type: {mapping_type}")
        id_to_idx, _ = self._id_to_idx_mappings[mapping_type]
        if input_id not in id_to_idx:
            raise ValueError(
                f"{mapping_type.capitalize()} ID {input_id} not found"
            )
        return id_to_idx[input_id]

    def _process_ratings(
        self,
        ratings: Optional[Union[float, List[float]]],
        length: int
    ) -> np.ndarray:
        """Process ratings into an array, implicit feedback counts as 1."""
        if ratings is None:
            return np.ones(length, dtype=self.dtype)

        if np.isscalar(ratings):
            return np.full(length, ratings, dtype=self.dtype)

        if len(ratings) != length:
            raise ValueError(
                f"Rating length ({len(ratings)}) must match input length "
                f"({length})"
            )
        return np.array(ratings, dtype=self.dtype)

    def add_ratings(
        self,
        user_ids: List,
        item_ids: List,
        ratings: Optional[Union[float, List[float]]] = None
    ) -> None:
        """Add ratings, repeated (user, item) pairs are summed.

        Args:
            user_ids: List of user IDs
            item_ids: List of item IDs
            ratings: Rating values (optional, defaults to 1)
        """
        if len(user_ids) != len(item_ids):
            raise ValueError(
                f"User and item ID lists must have equal length: "
                f"{len(user_ids)} != {len(item_ids)}"
            )

        if len(user_ids) == 0:
            return

        self.logger.info(f"Adding {len(user_ids):,} ratings")

        user_indices = [self._get_index(ix, 'user') for ix in user_ids]
        item_indices = [self._get_index(ix, 'item') for ix in item_ids]
        values = self._process_ratings(ratings, len(user_indices))

        shape = (self.n_users, self.n_items)
        self._R = sp.coo_matrix(
            (np.concatenate([self._R.data, values]),
             (np.concatenate([self._R.row, user_indices]),
              np.concatenate([self._R.col, item_indices]))),
            shape=shape,
            dtype=self.dtype
        )
        self._R.sum_duplicates()

        self.logger.info(
            f"New dimensions: {self.n_users} users x {self.n_items} items"
        )

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        user_col: str = 'UserID',
        item_col: str = 'ItemID',
        rating_col: Optional[str] = 'Rating',
        name: str = 'ratings',
        **kwargs
    ) -> 'RatingData':
        """Build from a dataframe with user, item and rating columns."""
        missing = [
            col for col in (user_col, item_col, rating_col)
            if col is not None and col not in df.columns
        ]
        if missing:
            raise ValueError(f"Missing columns: {missing}")
        data = cls(name=name, **kwargs)
        ratings = None if rating_col is None else df[rating_col].to_numpy()
        data.add_ratings(
            user_ids=df[user_col].tolist(),
            item_ids=df[item_col].tolist(),
            ratings=ratings
        )
        return data

    @property
    def R(self) -> sp.coo_matrix:
        """Users x items rating matrix."""
        return self._R

    @property
    def n_ratings(self) -> int:
        """Number of stored (user, item) ratings."""
        return self._R.nnz

    def validate(self) -> None:
        """Check the ratings can be factorized.

        Raises:
            ValueError: On empty data, negative or non-finite ratings, or a
                user/item whose ratings are all zero
        """
        self.logger.info("Validating ratings...")
        if self._R.nnz == 0:
            raise ValueError("No rating data found")
        if not np.all(np.isfinite(self._R.data)):
            raise ValueError("All ratings must be finite")
        if np.any(self._R.data < 0):
            raise ValueError("Ratings can not be negative")

        csr = self._R.tocsr()
        user_sums = np.asarray(csr.sum(axis=1)).ravel()
        item_sums = np.asarray(csr.sum(axis=0)).ravel()
        zero_users = np.flatnonzero(user_sums == 0)
        zero_items = np.flatnonzero(item_sums == 0)
        if zero_users.size or zero_items.size:
            raise ValueError(
                f"Not all ratings of a user/item can be zero: "
                f"{zero_users.size} users and {zero_items.size} items, "
                f"perturb the ratings and retry"
            )
        self.logger.info("Rating validation completed successfully")

    def perturb(self, scale: float = 0.01) -> float:
        """Add scale * (smallest positive rating) to every stored rating.

        Returns:
            The constant added
        """
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        positive = self._R.data[self._R.data > 0]
        if positive.size == 0:
            raise ValueError("No positive rating to derive the offset from")
        offset = scale * float(positive.min())
        self._R = sp.coo_matrix(
            (self._R.data + offset, (self._R.row, self._R.col)),
            shape=self._R.shape,
            dtype=self.dtype
        )
        self.logger.info(f"Perturbed ratings by {offset}")
        return offset

    def to_graph(self, rank: int) -> BipartiteRatingGraph:
        """Rating graph with items first, then users."""
        self.validate()
        R = self._R.tocoo()
        keep = R.data > 0
        return BipartiteRatingGraph(
            n_items=self.n_items,
            n_users=self.n_users,
            rank=rank,
            item_index=R.col[keep],
            user_index=R.row[keep],
            weights=R.data[keep],
            dtype=self.dtype
        )

    def user_factors_frame(self, graph: BipartiteRatingGraph) -> pd.DataFrame:
        """User factors indexed by the original user IDs."""
        index = [self.get_id(ix, 'user') for ix in range(graph.n_users)]
        return pd.DataFrame(graph.user_factors.copy(), index=index)

    def item_factors_frame(self, graph: BipartiteRatingGraph) -> pd.DataFrame:
        """Item factors indexed by the original item IDs."""
        index = [self.get_id(ix, 'item') for ix in range(graph.n_items)]
        return pd.DataFrame(graph.item_factors.copy(), index=index)

    def save(self, filepath: Union[str, Path]) -> None:
        """Save instance to file using joblib."""
        filepath = Path(filepath)
        self.logger.info(f"Saving ratings to {filepath}")
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, filepath, compress=3)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'RatingData':
        """Load instance from file."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        instance = joblib.load(filepath)
        if not isinstance(instance, cls):
            raise TypeError(
                f"Loaded object is not {cls.__name__}, "
                f"got {type(instance).__name__}"
            )
        return instance

    def __repr__(self) -> str:
        """Return string representation of the ratings."""
        istr = f"{self.__class__.__name__}({self.name})\n"
        istr += f"  R: {print_sparse_matrix_stats(self._R)}"
        return istr


def load_ratings_file(
    filepath: Union[str, Path],
    sep: Optional[str] = None,
    user_col: int = 0,
    item_col: int = 1,
    rating_col: Optional[int] = 2,
    skiprows: int = 0,
    **kwargs
) -> RatingData:
    """Read a delimited user/item/rating file into RatingData.

    Args:
        filepath: Text file with one rating per line
        sep: Column separator, any whitespace if None
        user_col: Position of the user ID column
        item_col: Position of the item ID column
        rating_col: Position of the rating column, implicit 1s if None
        skiprows: Header lines to skip
        **kwargs: Passed to RatingData

    Returns:
        RatingData holding the file contents
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    df = pd.read_csv(
        filepath,
        sep=r'\s+' if sep is None else sep,
        header=None,
        skiprows=skiprows,
        engine='python' if sep not in (None, ',', '\t') else 'c'
    )
    cols = {'UserID': user_col, 'ItemID': item_col}
    if rating_col is not None:
        cols['Rating'] = rating_col
    if max(cols.values()) >= df.shape[1]:
        raise ValueError(
            f"{filepath} has {df.shape[1]} columns, need column "
            f"{max(cols.values())}"
        )
    df = pd.DataFrame({key: df.iloc[:, ix] for key, ix in cols.items()})
    kwargs.setdefault('name', filepath.stem)
    return RatingData.from_dataframe(
        df,
        rating_col='Rating' if rating_col is not None else None,
        **kwargs
    )
