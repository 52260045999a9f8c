"""
Tests for walk-forward optimization.

Tests cover:
- Parameter grid generation and metric scoring
- Standard and rolling period layouts
- Configuration validation
- Best-parameter selection (strictly greater wins, ties keep the first)
- Failing combinations skipped; all failing raises
- Out-of-sample aggregation (weighted Sharpe, worst drawdown)
- End-to-end run through the real simulator
"""

import pytest

from swing.backtesting.analytics.metrics import PerformanceMetrics
from swing.backtesting.config import create_default_config
from validation.config import (
    OptimizationMetric,
    PeriodType,
    WalkForwardConfig,
    WalkForwardPeriod,
    create_rolling_walk_forward,
    create_standard_walk_forward,
)
from validation.walk_forward import (
    WalkForwardOptimizer,
    aggregate_metrics,
    generate_parameter_combinations,
    get_metric_score,
)

UNIVERSE = ['AAA']


def _standard(dates=None, **ranges):
    config = create_standard_walk_forward(*(dates or (
        '2019-01-01', '2021-12-31',
        '2022-01-01', '2022-12-31',
        '2023-01-01', '2023-12-31',
    )))
    if ranges:
        config.parameter_ranges = ranges
    return config


class TestParameterGrid:

    def test_cartesian_product_order(self):
        combos = generate_parameter_combinations({'a': [1, 2], 'b': ['x', 'y']})
        assert combos == [
            {'a': 1, 'b': 'x'},
            {'a': 1, 'b': 'y'},
            {'a': 2, 'b': 'x'},
            {'a': 2, 'b': 'y'},
        ]

    def test_empty_ranges_single_default_run(self):
        assert generate_parameter_combinations({}) == [{}]

    def test_standard_grid_size(self):
        assert len(generate_parameter_combinations(_standard().parameter_ranges)) == 48


class TestMetricScore:

    @pytest.mark.parametrize('metric,expected', [
        (OptimizationMetric.SHARPE, 1.1),
        (OptimizationMetric.SORTINO, 2.2),
        (OptimizationMetric.PROFIT_FACTOR, 3.3),
        (OptimizationMetric.EXPECTANCY, 44.0),
        ('sortino', 2.2),
    ])
    def test_reads_metric(self, metric, expected):
        metrics = PerformanceMetrics(sharpe_ratio=1.1, sortino_ratio=2.2,
                                     profit_factor=3.3, expectancy=44.0)
        assert get_metric_score(metrics, metric) == expected


class TestLayouts:

    def test_standard_layout(self):
        config = _standard()

        assert [p.name for p in config.periods] == ['Training', 'Validation', 'Test']
        assert [p.period_type for p in config.periods] == [
            PeriodType.TRAIN, PeriodType.VALIDATE, PeriodType.TEST]
        assert config.optimization_metric == OptimizationMetric.SHARPE
        assert config.parameter_ranges['entry_threshold'] == [60, 65, 70, 75]
        assert config.validate() == []

    def test_rolling_layout(self):
        config = create_rolling_walk_forward(2015, 2020)

        assert [p.name for p in config.periods] == [
            'Train 1', 'Test 1', 'Train 2', 'Test 2', 'Train 3', 'Test 3']
        assert config.periods[0].start_date == '2015-01-01'
        assert config.periods[0].end_date == '2017-12-31'
        assert config.periods[1].start_date == '2018-01-01'
        assert config.periods[1].end_date == '2018-06-28'
        assert config.periods[-1].start_date == '2020-01-01'
        assert len(config.train_periods) == 3
        assert len(config.out_of_sample_periods) == 3

    def test_rolling_too_short(self):
        assert create_rolling_walk_forward(2020, 2021).periods == []

    @pytest.mark.parametrize('kwargs', [dict(test_months=0), dict(test_months=13), dict(train_years=0)])
    def test_rolling_invalid_args(self, kwargs):
        with pytest.raises(ValueError):
            create_rolling_walk_forward(2015, 2020, **kwargs)

    def test_period_type_from_string(self):
        period = WalkForwardPeriod('Holdout', 'test', '2023-01-01', '2023-06-30')
        assert period.period_type == PeriodType.TEST
        assert not period.is_train


class TestConfigValidation:

    def test_unknown_and_reserved_parameters(self):
        config = _standard(not_a_field=[1], universe=[['AAA']])
        issues = config.validate()
        assert "Unknown parameter 'not_a_field'" in issues
        assert "Unknown parameter 'universe'" in issues

    def test_empty_candidate_list(self):
        issues = _standard(entry_threshold=[]).validate()
        assert "Parameter 'entry_threshold' has no candidate values" in issues

    def test_first_period_must_train(self):
        config = WalkForwardConfig(periods=[
            WalkForwardPeriod('Test', PeriodType.TEST, '2023-01-01', '2023-06-30'),
        ])
        assert any('must be TRAIN' in issue for issue in config.validate())

    def test_no_periods(self):
        assert WalkForwardConfig().validate() == ['No periods configured']

    def test_bad_dates(self):
        config = WalkForwardConfig(periods=[
            WalkForwardPeriod('Training', PeriodType.TRAIN, '2023-06-30', '2023-01-01'),
            WalkForwardPeriod('Test', PeriodType.TEST, '2023-13-01', '2023-12-31'),
        ])
        issues = config.validate()
        assert "Period 'Training' start must be before end" in issues
        assert "Period 'Test' has invalid dates" in issues

    def test_invalid_base_override(self):
        config = _standard()
        config.base_overrides = {'start_date': '2020-01-01'}
        assert "Invalid base override 'start_date'" in config.validate()

    def test_run_rejects_invalid_config(self, scripted_runner):
        optimizer = WalkForwardOptimizer(runner=scripted_runner())
        with pytest.raises(ValueError, match='Invalid walk-forward configuration'):
            optimizer.run(_standard(bogus=[1]), UNIVERSE)

    def test_run_rejects_empty_universe(self, scripted_runner):
        optimizer = WalkForwardOptimizer(runner=scripted_runner())
        with pytest.raises(ValueError, match='Universe is empty'):
            optimizer.run(_standard(), [])

    def test_optimizer_needs_data_or_runner(self):
        with pytest.raises(ValueError):
            WalkForwardOptimizer()


class TestSelection:

    def test_best_params_by_score(self, scripted_runner):
        runner = scripted_runner(train_score=lambda c: c.entry_threshold / 100 + c.min_rr_ratio)
        config = _standard(entry_threshold=[60, 70, 80], min_rr_ratio=[1.5, 2.0])

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert result.best_params == {'entry_threshold': 80, 'min_rr_ratio': 2.0}
        train = result.train_results[0]
        assert train.score == pytest.approx(2.8)
        assert train.combinations_tested == 6
        assert train.combinations_failed == 0

    def test_out_of_sample_uses_selected_params(self, scripted_runner):
        runner = scripted_runner(train_score=lambda c: c.entry_threshold)
        config = _standard(entry_threshold=[60, 70, 80])

        WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        oos_calls = [c for c in runner.calls if not c.name.startswith('TRAIN')]
        assert [c.name for c in oos_calls] == ['VALIDATE: Validation', 'TEST: Test']
        assert all(c.entry_threshold == 80 for c in oos_calls)
        assert oos_calls[0].start_date == '2022-01-01'
        assert oos_calls[1].end_date == '2023-12-31'

    def test_ties_keep_first_combination(self, scripted_runner):
        runner = scripted_runner(train_score=lambda c: 1.0)
        config = _standard(entry_threshold=[75, 60, 70])

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert result.best_params == {'entry_threshold': 75}

    def test_later_equal_score_does_not_replace(self, scripted_runner):
        scores = {60: 0.5, 65: 0.9, 70: 0.9, 75: 0.2}
        runner = scripted_runner(train_score=lambda c: scores[c.entry_threshold])
        config = _standard(entry_threshold=[60, 65, 70, 75])

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert result.best_params == {'entry_threshold': 65}

    def test_failing_combinations_skipped(self, scripted_runner):
        runner = scripted_runner(
            train_score=lambda c: c.entry_threshold,
            fail_when=lambda c: c.name.startswith('TRAIN') and c.min_rr_ratio == 2.0,
        )
        config = _standard(entry_threshold=[60, 70, 80], min_rr_ratio=[1.5, 2.0])

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        train = result.train_results[0]
        assert train.combinations_failed == 3
        assert train.combinations_tested == 3
        assert result.best_params == {'entry_threshold': 80, 'min_rr_ratio': 1.5}

    def test_invalid_combination_counts_as_failure(self, scripted_runner):
        """A candidate value that makes the config invalid is skipped like a failed run."""
        runner = scripted_runner(train_score=lambda c: c.max_open_positions)
        config = _standard(max_open_positions=[0, 3, 5])

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert result.best_params == {'max_open_positions': 5}
        assert result.train_results[0].combinations_failed == 1

    def test_all_combinations_failing_raises(self, scripted_runner):
        runner = scripted_runner(fail_when=lambda c: True)
        config = _standard(entry_threshold=[60, 70])

        with pytest.raises(RuntimeError, match='No valid parameter combinations'):
            WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

    def test_rolling_reselects_per_window(self, scripted_runner):
        def score(c):
            return c.entry_threshold if c.start_date.startswith('2015') else -c.entry_threshold

        runner = scripted_runner(train_score=score)
        config = create_rolling_walk_forward(2015, 2019)
        config.parameter_ranges = {'entry_threshold': [60, 70]}

        result = WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert result.selected_params == [{'entry_threshold': 70}, {'entry_threshold': 60}]
        test_calls = {c.name: c.entry_threshold for c in runner.calls if c.name.startswith('TEST')}
        assert test_calls == {'TEST: Test 1': 70, 'TEST: Test 2': 60}
        assert result.best_params == {'entry_threshold': 60}

    def test_base_overrides_applied_to_every_run(self, scripted_runner):
        runner = scripted_runner()
        config = _standard(entry_threshold=[60, 70])
        config.base_overrides = {'initial_capital': 50000.0, 'slippage_percent': 0.0}

        WalkForwardOptimizer(runner=runner).run(config, UNIVERSE)

        assert len(runner.calls) == 4
        assert all(c.initial_capital == 50000.0 for c in runner.calls)
        assert all(c.slippage_percent == 0.0 for c in runner.calls)

    @pytest.mark.parametrize('metric,expected', [
        (OptimizationMetric.SHARPE, 60),
        (OptimizationMetric.PROFIT_FACTOR, 70),
    ])
    def test_optimization_metric(self, make_result, metric, expected):
        def runner(c):
            result = make_result(c, n_trades=1, sharpe=3.0 if c.entry_threshold == 60 else 1.0)
            result.metrics.profit_factor = 2.0 if c.entry_threshold == 70 else 1.0
            return result

        config = _standard(entry_threshold=[60, 70])
        config.optimization_metric = metric

        assert WalkForwardOptimizer(runner=runner).run(config, UNIVERSE).best_params == {'entry_threshold': expected}


class TestOutOfSampleAggregation:

    def test_worst_drawdown_and_weighted_sharpe(self, scripted_runner):
        runner = scripted_runner(oos={
            'Validation': dict(n_trades=10, sharpe=1.0, sortino=2.0, max_dd_pct=5.0),
            'Test': dict(n_trades=30, sharpe=2.0, sortino=1.0, max_dd_pct=12.0),
        })

        result = WalkForwardOptimizer(runner=runner).run(_standard(entry_threshold=[70]), UNIVERSE)
        oos = result.out_of_sample_metrics

        assert oos.total_trades == 40
        assert oos.max_drawdown_percent == pytest.approx(12.0)  # worst, not the 8.5 average
        assert oos.max_drawdown == pytest.approx(12000.0)
        assert oos.max_drawdown_duration == 12
        assert oos.sharpe_ratio == pytest.approx((10 * 1.0 + 30 * 2.0) / 40)
        assert oos.sortino_ratio == pytest.approx((10 * 2.0 + 30 * 1.0) / 40)
        assert oos.calmar_ratio == 0.0

    def test_pooled_trade_statistics(self, scripted_runner):
        runner = scripted_runner(oos={
            'Validation': dict(n_trades=2, pnl_per_trade=300.0),
            'Test': dict(n_trades=2, pnl_per_trade=-100.0),
        })

        result = WalkForwardOptimizer(runner=runner).run(_standard(entry_threshold=[70]), UNIVERSE)
        oos = result.out_of_sample_metrics

        assert oos.win_rate == pytest.approx(50.0)
        assert oos.total_pnl == pytest.approx(400.0)
        assert oos.profit_factor == pytest.approx(3.0)

    def test_empty_out_of_sample(self, scripted_runner):
        result = WalkForwardOptimizer(runner=scripted_runner()).run(_standard(entry_threshold=[70]), UNIVERSE)
        assert result.out_of_sample_metrics.total_trades == 0
        assert result.out_of_sample_metrics.sharpe_ratio == 0.0

    def test_aggregate_ignores_tradeless_periods_in_weights(self, make_result):
        a = make_result(create_default_config(UNIVERSE, '2023-01-02', '2023-01-31'),
                        n_trades=4, sharpe=1.5, max_dd_pct=3.0)
        b = make_result(create_default_config(UNIVERSE, '2023-02-01', '2023-02-28'),
                        n_trades=0, sharpe=-5.0, max_dd_pct=7.0)

        agg = aggregate_metrics([a, b])

        assert agg.sharpe_ratio == pytest.approx(1.5)
        assert agg.max_drawdown_percent == pytest.approx(7.0)

    def test_aggregate_empty(self):
        assert aggregate_metrics([]).total_trades == 0


class TestReporting:

    def test_summary_and_to_dict(self, scripted_runner):
        runner = scripted_runner(train_score=lambda c: c.entry_threshold,
                                 oos={'Test': dict(n_trades=3, max_dd_pct=4.0)})
        result = WalkForwardOptimizer(runner=runner).run(_standard(entry_threshold=[60, 70]), UNIVERSE)

        text = result.summary()
        assert 'WALK-FORWARD OPTIMIZATION' in text
        assert "{'entry_threshold': 70}" in text
        assert '[2 tested, 0 failed]' in text

        data = result.to_dict()
        assert data['best_params'] == {'entry_threshold': 70}
        assert [p['period']['name'] for p in data['periods']] == ['Training', 'Validation', 'Test']
        assert data['periods'][2]['trade_count'] == 3
        assert data['config']['optimization_metric'] == 'sharpe'


class TestEndToEnd:

    def test_real_simulator(self, synthetic_market, three_period_dates):
        prices, signals = synthetic_market
        config = _standard(three_period_dates, entry_threshold=[70, 90])
        config.base_overrides = {'slippage_percent': 0.0, 'commission_per_share': 0.0}

        result = WalkForwardOptimizer(prices, signals).run(config, UNIVERSE)

        # 90 admits nothing (Sharpe 0); 70 trades the Tuesday pops (Sharpe > 0)
        assert result.best_params == {'entry_threshold': 70}
        assert result.train_results[0].score > 0
        assert [r.metrics.total_trades for r in result.out_of_sample_results] == [1, 1]
        assert result.out_of_sample_metrics.total_trades == 2
        assert result.out_of_sample_metrics.total_pnl > 0
