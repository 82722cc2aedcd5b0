"""
Tests for progress reporting module.
"""

import io
import sys
from unittest.mock import MagicMock, patch

import pytest

from psepower.progress import (
    PrintReporter,
    ProgressReporter,
    SimulationCancelled,
    TqdmReporter,
    compute_total_replications,
)


class TestSimulationCancelled:
    def test_is_exception(self):
        assert issubclass(SimulationCancelled, Exception)

    def test_message(self):
        assert str(SimulationCancelled("cancelled by user")) == "cancelled by user"


class TestProgressReporter:
    """Test ProgressReporter throttled callback wrapper."""

    def test_start_fires_zero(self):
        cb = MagicMock()
        ProgressReporter(100, cb).start()
        cb.assert_called_with(0, 100)

    def test_advance_throttled(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb, update_every=10)
        pr.start()
        cb.reset_mock()

        pr.advance(5)
        assert cb.call_count == 0

        pr.advance(5)
        cb.assert_called_with(10, 100)

    def test_completion_always_fires(self):
        cb = MagicMock()
        pr = ProgressReporter(10, cb, update_every=100)
        pr.start()
        for _ in range(10):
            pr.advance(1)
        cb.assert_called_with(10, 10)

    def test_finish_fires_final_update(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb)
        pr.start()
        pr.advance(50)
        cb.reset_mock()

        pr.finish()
        cb.assert_called_with(100, 100)

    def test_finish_no_double_fire(self):
        cb = MagicMock()
        pr = ProgressReporter(10, cb, update_every=1)
        pr.start()
        for _ in range(10):
            pr.advance(1)
        cb.reset_mock()

        pr.finish()
        assert cb.call_count == 0

    def test_default_update_every(self):
        assert ProgressReporter(1000, MagicMock()).update_every == 10
        assert ProgressReporter(20, MagicMock()).update_every == 1

    def test_throttle_counts_since_last_update(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb, update_every=10)
        pr.start()
        pr.advance(7)
        pr.advance(7)
        cb.assert_called_with(14, 100)
        cb.reset_mock()
        pr.advance(7)
        assert cb.call_count == 0
        assert pr.current == 21

    def test_context_manager(self):
        cb = MagicMock()
        with ProgressReporter(10, cb, update_every=100) as pr:
            pr.advance(3)
        assert [c.args for c in cb.call_args_list] == [(0, 10), (10, 10)]

    def test_context_manager_no_finish_on_error(self):
        cb = MagicMock()
        with pytest.raises(SimulationCancelled):
            with ProgressReporter(10, cb, update_every=100) as pr:
                pr.advance(3)
                raise SimulationCancelled("stop")
        assert [c.args for c in cb.call_args_list] == [(0, 10)]


class TestPrintReporter:
    def test_output_format(self):
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            PrintReporter()(50, 100)

        output = buf.getvalue()
        assert "50.0%" in output
        assert "50/100 replications" in output

    def test_total_zero_early_return(self):
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            PrintReporter()(0, 0)
        assert buf.getvalue() == ""

    def test_explicit_stream(self):
        buf = io.StringIO()
        PrintReporter(stream=buf)(1, 4)
        assert buf.getvalue() == "\rProgress: 1/4 replications (25.0%)"

    def test_completion_newline(self):
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            PrintReporter()(100, 100)
        assert buf.getvalue().endswith("\n")


class TestTqdmReporter:
    def test_tqdm_missing_raises(self):
        reporter = TqdmReporter()
        with patch.dict("sys.modules", {"tqdm": None}):
            with pytest.raises(ImportError, match="tqdm"):
                reporter(0, 100)

    def test_tqdm_basic_flow(self):
        mock_bar = MagicMock()
        mock_bar.n = 0
        mock_tqdm_cls = MagicMock(return_value=mock_bar)
        mock_tqdm_module = MagicMock()
        mock_tqdm_module.tqdm = mock_tqdm_cls

        reporter = TqdmReporter(desc="power")

        with patch.dict("sys.modules", {"tqdm": mock_tqdm_module}):
            reporter(0, 100)
            mock_tqdm_cls.assert_called_once_with(total=100, unit="rep", desc="power")

            reporter(50, 100)
            mock_bar.update.assert_called_with(50)

            mock_bar.n = 50
            reporter(100, 100)
            mock_bar.close.assert_called_once()


class TestComputeTotalReplications:
    def test_single_run(self):
        assert compute_total_replications(100) == 100

    def test_sample_size_sweep(self):
        assert compute_total_replications(100, n_sample_sizes=5) == 500
