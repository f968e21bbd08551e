import pytest

from bucketsim.engine import (
    END_AGE,
    healthcare_bracket,
    projection_years,
    run_projection,
    year_zero_taxable_income,
)
from bucketsim.schema import load_config
from bucketsim.strategy import base_cap_aig, cbb_cap_for_age
from tests.helpers import config_with


def _failing_config(sample_config_dict):
    def mutate(d):
        d["rates"]["postRetirementGrowth"] = -0.50
        d["rates"]["bondYield"] = 0.0
        d["rates"]["hysaRate"] = 0.0

    return config_with(sample_config_dict, mutate)


def _taxable(flow) -> float:
    return (
        flow.salary
        + flow.interest
        + flow.dividends
        + flow.social_security
        + flow.tda_withdrawal
        + 0.5 * flow.tba_withdrawal
    )


def test_reference_scenario_runs_to_horizon():
    config = load_config("sample_config.json")
    result = run_projection(config)

    assert len(result.yearly_results) == END_AGE - 60 + 1 == 26
    assert len(result.quarterly_results) == 4 * 26
    assert result.yearly_results[0].year == 2026
    assert result.yearly_results[0].age == 61
    assert result.yearly_results[-1].year == 2051
    assert result.summary.is_success
    assert result.summary.failure_year is None
    assert result.summary.final_total_balance > 0
    assert result.summary.final_total_balance == pytest.approx(result.yearly_results[-1].balances.total())


def test_runs_are_deterministic(sample_config):
    first = run_projection(sample_config)
    second = run_projection(sample_config)

    assert first.yearly_results == second.yearly_results
    assert first.quarterly_results == second.quarterly_results
    assert first.summary == second.summary


def test_input_portfolio_is_not_mutated(sample_config):
    before = sample_config.portfolio.copy()
    run_projection(sample_config)
    assert sample_config.portfolio == before


@pytest.mark.parametrize("scenario", ["reference", "failing"])
def test_yearly_balances_are_conserved(sample_config_dict, scenario):
    if scenario == "reference":
        config = config_with(sample_config_dict, lambda d: None)
    else:
        config = _failing_config(sample_config_dict)
    result = run_projection(config)

    previous = config.portfolio.total()
    for yearly in result.yearly_results:
        flow = yearly.cash_flow
        expected = previous + flow.total_income - flow.total_expenses
        assert yearly.balances.total() == pytest.approx(expected, abs=1e-2)
        previous = yearly.balances.total()


def test_quarterly_balances_are_conserved(sample_config):
    result = run_projection(sample_config)

    previous = sample_config.portfolio.total()
    for quarterly in result.quarterly_results:
        flow = quarterly.cash_flow
        expected = previous + flow.total_income - flow.total_expenses
        assert quarterly.balances.total() == pytest.approx(expected, abs=1e-2)
        previous = quarterly.balances.total()


def test_quarters_sum_to_year(sample_config):
    result = run_projection(sample_config)
    for index, yearly in enumerate(result.yearly_results):
        quarters = result.quarterly_results[index * 4 : index * 4 + 4]
        assert [q.quarter for q in quarters] == [1, 2, 3, 4]
        assert all(q.year == yearly.year for q in quarters)
        assert sum(q.cash_flow.needs for q in quarters) == pytest.approx(yearly.cash_flow.needs)
        assert sum(q.cash_flow.income_tax for q in quarters) == pytest.approx(yearly.cash_flow.income_tax)
        assert sum(q.cash_flow.tba_withdrawal for q in quarters) == pytest.approx(yearly.cash_flow.tba_withdrawal)
        assert quarters[-1].balances == yearly.balances


def test_cbb_refills_are_recorded_as_deposits(sample_config_dict):
    config = config_with(sample_config_dict, lambda d: d["portfolio"].update({"cbb": 100000}))
    result = run_projection(config)

    for index, yearly in enumerate(result.yearly_results):
        quarters = result.quarterly_results[index * 4 : index * 4 + 4]
        assert sum(q.cash_flow.cbb_deposit for q in quarters) == pytest.approx(yearly.cash_flow.cbb_deposit)
        if yearly.age <= config.retirement_age:
            assert yearly.cash_flow.cbb_deposit == 0.0
    first_retired = next(y for y in result.yearly_results if y.age == 66)
    assert first_retired.cash_flow.cbb_deposit > 0


def test_summary_totals_count_credited_accruals(sample_config):
    result = run_projection(sample_config)

    assert result.summary.total_interest == pytest.approx(sum(y.cash_flow.interest for y in result.yearly_results))
    assert result.summary.total_dividends == pytest.approx(sum(y.cash_flow.dividends for y in result.yearly_results))
    assert result.summary.final_total_balance == pytest.approx(result.yearly_results[-1].balances.total())


def test_balances_stay_within_bounds_before_failure(sample_config):
    result = run_projection(sample_config)
    for yearly in result.yearly_results:
        if yearly.metrics.is_failure:
            break
        balances = yearly.balances
        flow = yearly.cash_flow
        monthly_gross = (flow.needs + flow.wants + flow.healthcare + flow.property_tax) / 12.0
        assert balances.cbb >= 0
        assert balances.tba >= 0
        assert balances.tda >= 0
        assert balances.tfa >= 0
        assert balances.sb >= -monthly_gross


def test_total_income_and_expenses_are_itemized(sample_config):
    result = run_projection(sample_config)
    for yearly in result.yearly_results:
        flow = yearly.cash_flow
        assert flow.total_income == pytest.approx(
            flow.salary + flow.interest + flow.dividends + flow.social_security + flow.market_growth
        )
        assert flow.total_expenses == pytest.approx(
            flow.needs + flow.wants + flow.healthcare + flow.property_tax + flow.income_tax
        )
        assert flow.tda_withdrawal == pytest.approx(flow.tda_withdrawal_spend + flow.tda_withdrawal_roth)
        assert flow.roth_conversion == pytest.approx(flow.tda_withdrawal_roth)
        assert flow.cbb_deposit >= 0.0


def test_income_tax_is_trued_up_to_liability(sample_config):
    result = run_projection(sample_config)
    for yearly in result.yearly_results:
        flow = yearly.cash_flow
        assert flow.income_tax == pytest.approx(_taxable(flow) * sample_config.rates.income_tax)


def test_first_year_estimate_uses_year_zero_income(sample_config):
    # Salary 120,000 + HYSA interest 8,000 + bond income 40,000; no benefits yet.
    assert year_zero_taxable_income(sample_config) == pytest.approx(168000.0)


def test_pre_retirement_wants_absorb_salary(sample_config):
    result = run_projection(sample_config)
    second = result.yearly_results[1]
    flow = second.cash_flow
    inflation = 1.03**2
    estimated_tax = _taxable(result.yearly_results[0].cash_flow) * 0.20
    fixed = (
        60000 * inflation
        + 5000 * inflation
        + 10000 * inflation
        + estimated_tax
        + 10000 * inflation
        + 23000 * inflation
        + 12000 * inflation
    )
    assert flow.wants == pytest.approx(max(0.0, 120000 * inflation - fixed))


def test_post_retirement_wants_follow_inflation(sample_config):
    result = run_projection(sample_config)
    at_retirement = next(y for y in result.yearly_results if y.age == 65)
    assert at_retirement.cash_flow.wants == pytest.approx(30000 * 1.03**5)
    assert at_retirement.cash_flow.salary == pytest.approx(120000 * 1.03**5)

    retired = next(y for y in result.yearly_results if y.age == 66)
    assert retired.cash_flow.salary == 0.0
    assert retired.cash_flow.contribution_401k == 0.0


def test_roth_conversion_starts_in_second_year(sample_config):
    result = run_projection(sample_config)
    assert result.yearly_results[0].cash_flow.roth_conversion == 0.0
    assert result.yearly_results[1].cash_flow.roth_conversion == pytest.approx(10000 * 1.03**2)


def test_strategy_only_runs_after_retirement_age(sample_config):
    result = run_projection(sample_config)
    for yearly in result.yearly_results:
        if yearly.age <= sample_config.retirement_age:
            assert yearly.cash_flow.tda_withdrawal_spend == 0.0
            assert yearly.cash_flow.tba_withdrawal == 0.0
            assert yearly.cash_flow.cbb_withdrawal == 0.0


def test_healthcare_brackets():
    assert healthcare_bracket(64, 65) == "pre_retirement"
    assert healthcare_bracket(62, 60) == "post_retirement_pre_medicare"
    assert healthcare_bracket(65, 65) == "medicare"
    assert healthcare_bracket(70, 65) == "medicare"


def test_healthcare_cost_follows_bracket(sample_config):
    result = run_projection(sample_config)
    by_age = {y.age: y for y in result.yearly_results}
    assert by_age[64].cash_flow.healthcare == pytest.approx(5000 * 1.03**4)
    assert by_age[65].cash_flow.healthcare == pytest.approx(3000 * 1.03**5)


def test_cbb_cap_steps_down_with_age(sample_config):
    result = run_projection(sample_config)
    base = base_cap_aig(sample_config)
    caps = [y.metrics.cbb_cap for y in result.yearly_results]

    assert caps == sorted(caps, reverse=True)
    for yearly in result.yearly_results:
        assert yearly.metrics.cbb_cap == pytest.approx(cbb_cap_for_age(base, yearly.age))
    by_age = {y.age: y.metrics.cbb_cap for y in result.yearly_results}
    assert by_age[64] > by_age[65]
    assert by_age[65] == by_age[69]
    assert by_age[69] > by_age[70]


def test_collapsing_market_fails_before_horizon(sample_config_dict):
    config = _failing_config(sample_config_dict)
    result = run_projection(config)

    assert not result.summary.is_success
    assert result.summary.failure_year is not None
    assert result.summary.failure_year < config.current_year + 26
    assert result.yearly_results[-1].year == result.summary.failure_year
    assert result.yearly_results[-1].metrics.is_failure
    assert all(not y.metrics.is_failure for y in result.yearly_results[:-1])
    assert result.quarterly_results[-1].year == result.summary.failure_year
    assert len(result.quarterly_results) == 4 * len(result.yearly_results)


def test_failure_is_sticky_across_quarters(sample_config_dict):
    result = run_projection(_failing_config(sample_config_dict))
    flags = [q.metrics.is_failure for q in result.quarterly_results]
    first = flags.index(True)
    assert all(flags[first:])


def test_immediate_retirement_runs_strategy_in_first_year(sample_config_dict):
    config = config_with(sample_config_dict, lambda d: d.update({"retirementAge": 60}))
    result = run_projection(config)
    first = result.yearly_results[0]

    assert first.age == 61
    assert first.cash_flow.salary == 0.0
    assert first.cash_flow.wants == pytest.approx(30000 * 1.03)
    assert first.cash_flow.healthcare == pytest.approx(5000 * 1.03)
    assert first.cash_flow.tda_withdrawal_spend > 0


def test_external_returns_override_growth(sample_config):
    flat = run_projection(sample_config, market_returns=[0.0] * 26)
    assert all(y.cash_flow.market_growth == 0.0 for y in flat.yearly_results)

    partial = run_projection(sample_config, market_returns=[0.0])
    assert partial.yearly_results[0].cash_flow.market_growth == 0.0
    assert partial.yearly_results[1].cash_flow.market_growth > 0


def test_inflation_overrides_do_not_change_results(sample_config):
    baseline = run_projection(sample_config)
    overridden = run_projection(sample_config, inflation_rates=[0.10] * 26)
    assert overridden.yearly_results == baseline.yearly_results


def test_projection_length_by_current_age():
    assert projection_years(60) == 26
    assert projection_years(85) == 1
    assert projection_years(90) == 0


def test_no_years_past_horizon(sample_config_dict):
    config = config_with(sample_config_dict, lambda d: d.update({"currentAge": 86, "retirementAge": 86}))
    result = run_projection(config)

    assert result.yearly_results == []
    assert result.summary.is_success
    assert result.summary.final_total_balance == pytest.approx(config.portfolio.total())
