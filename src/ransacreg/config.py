"""
RANSAC configuration.

All parameters are immutable once a RANSACConfig is built. Call sites may
override any subset of the defaults.
"""
import json
import logging
import math
from dataclasses import dataclass, asdict, fields, replace
from typing import Any, Dict, Mapping, Tuple

from ransacreg.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Defaults
DEFAULT_SAMPLE_PERC = 0.10
DEFAULT_MIN_SAMPLE_SIZE = 7
DEFAULT_MIN_ITERATION = 50
DEFAULT_MAX_ITERATION = 500
DEFAULT_MAX_DIST_TO_BE_INLIER = 0.05
DEFAULT_MIN_INLIER_PERC_TO_STOP = 0.70


@dataclass(frozen=True)
class RANSACConfig:
    """
    Parameters of a RANSAC search.

    Attributes:
        sample_perc: Fraction of the population drawn for each training sample
        min_sample_size: Lower bound on the training sample size
        min_iteration: Iterations always run before early stopping is considered
        max_iteration: Hard cap on the number of iterations
        max_dist_to_be_inlier: Normalized distance below which a row is an inlier
        min_inlier_perc_to_stop: Inlier fraction of the check partition that
            ends the search early
    """
    sample_perc: float = DEFAULT_SAMPLE_PERC
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE
    min_iteration: int = DEFAULT_MIN_ITERATION
    max_iteration: int = DEFAULT_MAX_ITERATION
    max_dist_to_be_inlier: float = DEFAULT_MAX_DIST_TO_BE_INLIER
    min_inlier_perc_to_stop: float = DEFAULT_MIN_INLIER_PERC_TO_STOP

    def __post_init__(self):
        self._validate()

    def _validate(self) -> None:
        """Check parameter ranges that do not depend on the data."""
        if not (0.0 < self.sample_perc <= 1.0):
            raise ConfigurationError(
                f"sample_perc must be in (0, 1], got {self.sample_perc}"
            )
        if self.min_sample_size < 1:
            raise ConfigurationError(
                f"min_sample_size must be >= 1, got {self.min_sample_size}"
            )
        if self.max_iteration < 1:
            raise ConfigurationError(
                f"max_iteration must be >= 1, got {self.max_iteration}"
            )
        if self.min_iteration < 0:
            raise ConfigurationError(
                f"min_iteration must be >= 0, got {self.min_iteration}"
            )
        if self.min_iteration > self.max_iteration:
            raise ConfigurationError(
                f"min_iteration ({self.min_iteration}) exceeds "
                f"max_iteration ({self.max_iteration})"
            )
        if not self.max_dist_to_be_inlier > 0:
            raise ConfigurationError(
                f"max_dist_to_be_inlier must be positive, got {self.max_dist_to_be_inlier}"
            )
        if not (0.0 <= self.min_inlier_perc_to_stop <= 1.0):
            raise ConfigurationError(
                f"min_inlier_perc_to_stop must be in [0, 1], got {self.min_inlier_perc_to_stop}"
            )

    def resolve_sizes(self, n_population: int) -> Tuple[int, int]:
        """
        Derive training and check partition sizes for a population.

        Returns:
        --------
        (n_train, n_check) : tuple of int

        Raises:
        -------
        ConfigurationError
            If the sample would be empty, exceed the population, or leave
            no rows to check.
        """
        n_train = max(self.min_sample_size, int(math.floor(self.sample_perc * n_population)))
        n_check = n_population - n_train

        if n_train < 1:
            raise ConfigurationError(f"Training sample size must be >= 1, got {n_train}")
        if n_train > n_population:
            raise ConfigurationError(
                f"Training sample size ({n_train}) exceeds population size ({n_population})"
            )
        if n_check < 1:
            raise ConfigurationError(
                f"No rows left to check: n_train={n_train}, n_population={n_population}"
            )
        return n_train, n_check

    def with_overrides(self, **overrides: Any) -> 'RANSACConfig':
        """Return a new validated config with some fields replaced."""
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown RANSAC options: {sorted(unknown)}")
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> 'RANSACConfig':
        """Build a config from a mapping, rejecting unknown keys."""
        return cls().with_overrides(**dict(options))

    @classmethod
    def from_json(cls, path) -> 'RANSACConfig':
        """Load a config from a JSON file holding a flat object of options."""
        with open(path, 'r') as f:
            options = json.load(f)
        if not isinstance(options, dict):
            raise ConfigurationError(f"Expected a JSON object in {path}")
        logger.debug(f"Loaded RANSAC options from {path}: {sorted(options)}")
        return cls.from_dict(options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain JSON-serializable types."""
        return asdict(self)
