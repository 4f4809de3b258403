import pytest

from flatmark.TextMetrics import ApproximateFontMetrics, ExactFontMetrics


class TestExactFontMetrics:

    def test_helvetica_widths(self):
        metrics = ExactFontMetrics()
        # Helvetica AFM: C722 O778 N722 F611 I278 D722 E667 N722 T611 I278 A667 L556
        assert metrics.width_at_size("CONFIDENTIAL", 1) == pytest.approx(7.334)

    def test_linear_in_size(self):
        metrics = ExactFontMetrics()
        unit = metrics.width_at_size("Draft copy", 1)
        for size in (0.5, 12, 73.25, 200):
            assert metrics.width_at_size("Draft copy", size) == pytest.approx(size * unit)

    def test_monotonic_in_size(self):
        metrics = ExactFontMetrics()
        widths = [metrics.width_at_size("DRAFT", s) for s in (1, 2, 10, 100)]
        assert widths == sorted(widths)
        assert len(set(widths)) == len(widths)

    def test_unknown_font_fails_early(self):
        with pytest.raises(Exception):
            ExactFontMetrics("No-Such-Font")


class TestApproximateFontMetrics:

    def test_character_count_heuristic(self):
        metrics = ApproximateFontMetrics()
        assert metrics.width_at_size("CONFIDENTIAL", 1) == pytest.approx(12 * 0.55)

    def test_linear_in_size(self):
        metrics = ApproximateFontMetrics()
        assert metrics.width_at_size("abc", 40) == pytest.approx(40 * metrics.width_at_size("abc", 1))

    def test_custom_ratio(self):
        assert ApproximateFontMetrics(0.5).width_at_size("abcd", 10) == pytest.approx(20)

    def test_empty_text_has_zero_width(self):
        assert ApproximateFontMetrics().width_at_size("", 100) == 0
