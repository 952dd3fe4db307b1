"""Tests for the chroma key filter."""

import numpy as np
import pytest

from livescene.effects.chroma import MAX_DISTANCE, apply_chroma_key


def _pixels(*colors):
    """1xN RGBA row from (r, g, b) or (r, g, b, a) tuples."""
    row = [tuple(c) + (255,) if len(c) == 3 else tuple(c) for c in colors]
    return np.array([row], dtype=np.uint8)


class TestChromaKey:
    def test_green_and_red_2x2(self):
        pixels = np.array(
            [
                [[0, 255, 0, 255], [255, 0, 0, 255]],
                [[255, 0, 0, 255], [0, 255, 0, 255]],
            ],
            dtype=np.uint8,
        )
        out = apply_chroma_key(pixels, (0, 255, 0), 30, 0)
        assert out[0, 0, 3] == 0
        assert out[1, 1, 3] == 0
        assert out[0, 1, 3] == 255
        assert out[1, 0, 3] == 255
        # Color channels untouched
        np.testing.assert_array_equal(out[..., :3], pixels[..., :3])

    def test_input_not_modified(self):
        pixels = _pixels((0, 255, 0))
        apply_chroma_key(pixels, (0, 255, 0), 30, 0)
        assert pixels[0, 0, 3] == 255

    def test_zero_tolerance_only_exact_match(self):
        out = apply_chroma_key(_pixels((0, 255, 0), (0, 254, 0)), (0, 255, 0), 0, 0)
        assert out[0, 0, 3] == 0
        assert out[0, 1, 3] == 255

    def test_full_tolerance_keys_everything(self):
        out = apply_chroma_key(_pixels((255, 0, 255), (0, 0, 0)), (0, 255, 0), 100, 0)
        assert list(out[0, :, 3]) == [0, 0]

    def test_feather_band_ramps_to_opaque(self):
        # Tolerance 50% and softness 20 px: band covers the outer half of the tolerance
        tolerance = 0.5 * MAX_DISTANCE
        softness = 0.5 * MAX_DISTANCE
        inner_edge = tolerance - softness
        # A pixel at distance d from pure black
        d = 0.25 * MAX_DISTANCE
        v = int(round(d / np.sqrt(3)))
        actual_d = np.sqrt(3 * v * v)
        expected = int(np.rint((actual_d - inner_edge) / softness * 255))

        out = apply_chroma_key(_pixels((v, v, v, 200)), (0, 0, 0), 50, 20)
        assert out[0, 0, 3] == expected

    def test_feather_alpha_ignores_input_alpha(self):
        # distance sqrt(3) * 40 against a band of half the max distance: 255 * 40 / 127.5
        out = apply_chroma_key(_pixels((40, 40, 40, 100)), (0, 0, 0), 50, 20)
        assert out[0, 0, 3] == 80

    def test_feather_keeps_original_alpha_outside(self):
        out = apply_chroma_key(_pixels((255, 255, 255, 77)), (0, 0, 0), 10, 5)
        assert out[0, 0, 3] == 77

    def test_softness_larger_than_tolerance(self):
        # Inner edge goes negative, so even the exact key color keeps some alpha
        out = apply_chroma_key(_pixels((0, 255, 0), (10, 245, 10)), (0, 255, 0), 5, 20)
        assert out[0, 0, 3] < 255
        assert out[0, 1, 3] < 255

    def test_empty_input(self):
        empty = np.zeros((0, 0, 4), dtype=np.uint8)
        assert apply_chroma_key(empty, (0, 255, 0), 30, 2).shape == (0, 0, 4)

    @pytest.mark.parametrize("softness", [0, 2, 20])
    def test_far_colors_untouched(self, softness):
        out = apply_chroma_key(_pixels((255, 0, 0)), (0, 255, 0), 30, softness)
        assert out[0, 0, 3] == 255
