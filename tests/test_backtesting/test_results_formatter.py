"""
Tests for BacktestResult assembly, breakdowns and output helpers.
"""

import json

import pytest
from datetime import date

from swing.backtesting.analytics.results_formatter import ResultsFormatter
from swing.backtesting.simulation.position_tracker import EquityPoint, ExitReason, Regime


@pytest.fixture
def trades(make_trade):
    """Three closed trades across two sectors, two regimes and two months."""
    specs = [
        # (probability, exit price, exit date, regime, sector)
        (72.0, 110.0, date(2023, 1, 20), Regime.BULL, 'Technology'),   # R  2.0
        (78.0, 105.0, date(2023, 1, 25), Regime.BULL, 'Technology'),   # R  1.0
        (85.0, 95.0, date(2023, 2, 3), Regime.CHOPPY, None),           # R -1.0
    ]
    out = []
    for i, (prob, price, exit_date, regime, sector) in enumerate(specs, 1):
        trade = make_trade(trade_id=f"T{i}", entry_probability=prob, regime=regime, sector=sector)
        trade.close(exit_date, price, ExitReason.MANUAL)
        out.append(trade)
    return out


@pytest.fixture
def result(make_config, trades):
    curve = [
        EquityPoint(date=date(2023, 1, 2), equity=100000.0),
        EquityPoint(date=date(2023, 1, 31), equity=101500.0),
        EquityPoint(date=date(2023, 2, 3), equity=101000.0),
    ]
    return ResultsFormatter.format(make_config(end_date='2023-02-28'), trades, curve)


class TestBreakdowns:

    def test_regime_breakdown_has_every_regime(self, result):
        assert set(result.performance_by_regime) == {'BULL', 'CHOPPY', 'CRASH'}
        assert result.performance_by_regime['BULL'].total_trades == 2
        assert result.performance_by_regime['CHOPPY'].total_trades == 1
        assert result.performance_by_regime['CRASH'].total_trades == 0

    def test_sector_breakdown_defaults_unknown(self, result):
        assert list(result.performance_by_sector) == ['Technology', 'Unknown']
        assert result.performance_by_sector['Technology'].total_pnl == pytest.approx(1500.0)

    def test_period_breakdowns(self, result):
        assert list(result.performance_by_month) == ['2023-01', '2023-02']
        assert result.performance_by_month['2023-02'].losers == 1
        assert list(result.performance_by_year) == ['2023']
        assert result.performance_by_year['2023'].total_trades == 3

    def test_overall_metrics_use_equity_curve(self, result):
        assert result.metrics.total_trades == 3
        assert result.metrics.total_pnl == pytest.approx(1000.0)
        assert result.metrics.max_drawdown == pytest.approx(500.0)


class TestCalibration:

    def test_calibration_buckets(self, result):
        buckets = result.calibration_by_bucket

        assert [b.bucket for b in buckets] == ['70-80%', '80-90%']
        assert buckets[0].count == 2
        assert buckets[0].predicted_avg == pytest.approx(75.0)
        assert buckets[0].actual_win_rate == pytest.approx(50.0)  # only R >= 1.5 counts
        assert buckets[1].actual_win_rate == pytest.approx(0.0)

    def test_calibration_empty(self):
        assert ResultsFormatter.calibration_buckets([]) == []


class TestOutput:

    def test_summary(self, result):
        text = result.summary()
        assert 'BACKTEST RESULTS' in text
        assert 'Total Trades:  3' in text
        assert 'By Regime:' in text
        assert 'Calibration' in text

    def test_summary_prints_infinite_ratio(self, make_config, make_trade):
        trade = make_trade()
        trade.close(date(2023, 1, 5), 110.0, ExitReason.TP3)
        result = ResultsFormatter.format(make_config(), [trade], [])
        assert 'Profit Factor: inf' in result.summary()

    def test_trades_df(self, result):
        df = result.trades_df()
        assert len(df) == 3
        assert list(df['trade_id']) == ['T1', 'T2', 'T3']
        assert {'realized_r', 'exit_reason', 'regime', 'sector'} <= set(df.columns)

    def test_equity_df(self, result):
        df = result.equity_df()
        assert len(df) == 3
        assert df.index.name == 'date'
        assert df['equity'].iloc[-1] == pytest.approx(101000.0)

    def test_equity_df_empty(self, make_config):
        assert ResultsFormatter.format(make_config(), [], []).equity_df().empty

    def test_to_dict_is_json_serializable(self, result):
        data = json.loads(json.dumps(result.to_dict()))
        assert data['status'] == 'COMPLETED'
        assert data['config']['gap_handling'] == 'MARKET'
        assert len(data['trades']) == 3
        assert data['calibration_by_bucket'][0]['bucket'] == '70-80%'

    def test_closed_trades_excludes_open(self, make_config, make_trade, trades):
        result = ResultsFormatter.format(make_config(), trades + [make_trade(trade_id='T9')], [])
        assert len(result.trades) == 4
        assert len(result.closed_trades) == 3
        assert result.metrics.total_trades == 3
