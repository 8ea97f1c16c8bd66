"""
Tests for LSH banding.
"""

import pytest

from lshmatch.core.bands import band_hash, check_band_size, create_hash_bands, signature_bands
from lshmatch.core.types import DenseSignature
from lshmatch.errors import ConfigurationError


def _sig(id_, values):
    return DenseSignature(id=id_, sig=tuple(values))


class TestCheckBandSize:
    """Test the banding precondition."""

    def test_valid_sizes(self):
        """Test divisors smaller than K are accepted."""
        assert check_band_size(12, 2) == 6
        assert check_band_size(12, 3) == 4
        assert check_band_size(12, 6) == 2
        assert check_band_size(12, 1) == 12

    @pytest.mark.parametrize("band_size", [0, -2, 5, 7, 12, 24])
    def test_invalid_sizes(self, band_size):
        """Test non-divisors and sizes >= K are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            check_band_size(12, band_size)
        assert exc_info.value.parameter == "band_size"


class TestBandHash:
    """Test the band key function."""

    def test_fits_in_64_bits(self):
        """Test keys are unsigned 64-bit integers."""
        h = band_hash([1, 2, 3], 0)
        assert 0 <= h < 2 ** 64

    def test_deterministic(self):
        """Test the same band always hashes the same way."""
        assert band_hash([5, 9], 3) == band_hash([5, 9], 3)

    def test_order_sensitive(self):
        """Test reordered values hash differently."""
        assert band_hash([1, 2], 0) != band_hash([2, 1], 0)

    def test_band_position_matters(self):
        """Test equal values in different band positions do not collide."""
        assert band_hash([1, 2], 0) != band_hash([1, 2], 1)


class TestCreateHashBands:
    """Test band row generation."""

    def test_rows_per_entity(self):
        """Test K / b rows are produced per entity."""
        sigs = [_sig(1, range(12)), _sig(2, range(100, 112))]
        bands = create_hash_bands(sigs, 2)

        assert len(bands) == 12
        assert [b.id for b in bands] == [1] * 6 + [2] * 6

    def test_rerun_is_identical(self):
        """Test banding the same signatures twice gives the same hashes."""
        sigs = [_sig(1, [3, 1, 4, 1, 5, 9, 2, 6, 5, 3, 5, 8])]
        assert create_hash_bands(sigs, 3) == create_hash_bands(sigs, 3)

    def test_identical_signatures_share_every_band(self):
        """Test identical signatures collide on every band."""
        values = [3, 1, 4, 1, 5, 9, 2, 6, 5, 3, 5, 8]
        a = [b.band_hash for b in create_hash_bands([_sig(1, values)], 2)]
        b = [b.band_hash for b in create_hash_bands([_sig(2, values)], 2)]
        assert a == b

    def test_partial_agreement_shares_matching_bands(self):
        """Test only bands with equal values collide."""
        a = [1, 2, 3, 4, 5, 6]
        b = [1, 2, 9, 4, 5, 6]
        ha = list(signature_bands(a, 2))
        hb = list(signature_bands(b, 2))
        assert [x == y for x, y in zip(ha, hb)] == [True, False, True]

    def test_empty_signatures_skipped(self):
        """Test sentinel-only signatures produce no bands."""
        sigs = [_sig(1, [13] * 12), _sig(2, range(12))]
        bands = create_hash_bands(sigs, 2, sentinel=13)
        assert {b.id for b in bands} == {2}

    def test_invalid_band_size(self):
        """Test the precondition is enforced before banding."""
        with pytest.raises(ConfigurationError):
            create_hash_bands([_sig(1, range(12))], 5)

    def test_mixed_lengths_rejected(self):
        """Test signatures of different lengths are rejected."""
        with pytest.raises(ValueError):
            create_hash_bands([_sig(1, range(12)), _sig(2, range(10))], 2)

    def test_no_signatures(self):
        """Test an empty input yields no bands."""
        assert create_hash_bands([], 2) == []
