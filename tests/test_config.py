"""
Tests for RANSAC configuration.
"""
import json
import dataclasses
import pytest

from ransacreg.config import RANSACConfig
from ransacreg.exceptions import ConfigurationError


class TestDefaults:

    def test_default_values(self):
        config = RANSACConfig()

        assert config.sample_perc == 0.10
        assert config.min_sample_size == 7
        assert config.min_iteration == 50
        assert config.max_iteration == 500
        assert config.max_dist_to_be_inlier == 0.05
        assert config.min_inlier_perc_to_stop == 0.70

    def test_immutable(self):
        config = RANSACConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.max_iteration = 10


class TestResolveSizes:

    def test_min_sample_size_dominates(self):
        assert RANSACConfig().resolve_sizes(10) == (7, 3)

    def test_sample_fraction_dominates(self):
        assert RANSACConfig().resolve_sizes(1000) == (100, 900)

    def test_fraction_is_floored(self):
        config = RANSACConfig(sample_perc=0.25, min_sample_size=1)
        assert config.resolve_sizes(10) == (2, 8)

    def test_sample_exceeds_population(self):
        with pytest.raises(ConfigurationError):
            RANSACConfig(min_sample_size=20).resolve_sizes(10)

    def test_no_check_rows(self):
        with pytest.raises(ConfigurationError):
            RANSACConfig().resolve_sizes(7)

    def test_whole_population_sampled(self):
        with pytest.raises(ConfigurationError):
            RANSACConfig(sample_perc=1.0, min_sample_size=1).resolve_sizes(50)


class TestValidation:

    @pytest.mark.parametrize("options", [
        {'sample_perc': 0.0},
        {'sample_perc': 1.5},
        {'min_sample_size': 0},
        {'max_iteration': 0},
        {'min_iteration': -1},
        {'min_iteration': 600, 'max_iteration': 500},
        {'max_dist_to_be_inlier': 0.0},
        {'min_inlier_perc_to_stop': 1.1},
    ])
    def test_invalid_options(self, options):
        with pytest.raises(ConfigurationError):
            RANSACConfig(**options)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            RANSACConfig(sample_perc=-1.0)


class TestSerialization:

    def test_with_overrides(self):
        config = RANSACConfig().with_overrides(max_iteration=100, min_iteration=10)

        assert config.max_iteration == 100
        assert config.min_iteration == 10
        assert config.sample_perc == 0.10

    def test_overrides_are_validated(self):
        with pytest.raises(ConfigurationError):
            RANSACConfig().with_overrides(max_iteration=10)

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            RANSACConfig.from_dict({'max_iterations': 10})

    def test_dict_round_trip(self):
        config = RANSACConfig(sample_perc=0.3, max_dist_to_be_inlier=0.2)
        assert RANSACConfig.from_dict(config.to_dict()) == config

    def test_from_json(self, tmp_path):
        path = tmp_path / "ransac.json"
        path.write_text(json.dumps({'min_iteration': 5, 'max_iteration': 20}))

        config = RANSACConfig.from_json(path)

        assert config.min_iteration == 5
        assert config.max_iteration == 20

    def test_from_json_requires_object(self, tmp_path):
        path = tmp_path / "ransac.json"
        path.write_text(json.dumps([1, 2, 3]))

        with pytest.raises(ConfigurationError):
            RANSACConfig.from_json(path)
