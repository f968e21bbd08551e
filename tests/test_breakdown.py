import pytest

from bucketsim.breakdown import find_breakdown, generate_breakdown
from bucketsim.engine import run_projection


def _step(breakdown, title, label):
    section = next(s for s in breakdown.sections if s.title == title)
    return next(step for step in section.steps if step.label == label)


@pytest.fixture
def sample_result(sample_config):
    return run_projection(sample_config)


def test_post_retirement_breakdown_has_all_sections(sample_config, sample_result):
    breakdown = find_breakdown(sample_config, sample_result, 70)

    assert breakdown.age == 70
    assert breakdown.year == 2035
    assert [s.title for s in breakdown.sections] == [
        "Inflation Adjustment",
        "Account Balances (End of Year)",
        "Expenses",
        "Income Sources",
        "Income Gap Calculation",
        "Taxable Income",
        "Spending Strategy Parameters",
        "Spend Bucket Operations",
        "Caps & Status",
    ]


@pytest.mark.parametrize("age", [61, 63, 65])
def test_strategy_section_only_after_retirement(sample_config, sample_result, age):
    breakdown = find_breakdown(sample_config, sample_result, age)
    titles = [s.title for s in breakdown.sections]
    assert "Spending Strategy Parameters" not in titles
    assert len(titles) == 8


@pytest.mark.parametrize("age", [61, 64, 66, 70, 80])
def test_breakdown_matches_engine_records(sample_config, sample_result, age):
    breakdown = find_breakdown(sample_config, sample_result, age)
    yearly = next(y for y in sample_result.yearly_results if y.age == age)

    assert _step(breakdown, "Inflation Adjustment", "Cumulative Inflation Factor").result == pytest.approx(
        1.03 ** (age - 60)
    )
    assert _step(breakdown, "Account Balances (End of Year)", "Total Portfolio").result == pytest.approx(
        yearly.balances.total()
    )
    assert _step(breakdown, "Taxable Income", "Tax Liability").result == pytest.approx(yearly.cash_flow.income_tax)
    assert _step(breakdown, "Spend Bucket Operations", "Ending SB Balance").result == pytest.approx(
        yearly.balances.sb, abs=1e-2
    )
    assert _step(breakdown, "Caps & Status", "Cap AIG").result * 2 == pytest.approx(yearly.metrics.sb_cap)
    assert _step(breakdown, "Caps & Status", "CBB Cap").result == pytest.approx(yearly.metrics.cbb_cap)
    assert _step(breakdown, "Income Gap Calculation", "Annual Income Gap (AIG)").result == pytest.approx(
        yearly.metrics.annual_income_gap
    )


@pytest.mark.parametrize("age", [66, 72, 80])
def test_strategy_aig_matches_quarterly_records(sample_config, sample_result, age):
    breakdown = find_breakdown(sample_config, sample_result, age)
    quarter = next(q for q in sample_result.quarterly_results if q.age == age)

    step = _step(breakdown, "Spending Strategy Parameters", "Strategy AIG")
    assert step.result == pytest.approx(quarter.metrics.annual_income_gap)
    assert _step(breakdown, "Spending Strategy Parameters", "Quarterly AIG").result == pytest.approx(step.result / 4)


def test_pre_retirement_wants_step_shows_its_inputs(sample_config, sample_result):
    breakdown = find_breakdown(sample_config, sample_result, 63)
    yearly = next(y for y in sample_result.yearly_results if y.age == 63)
    step = _step(breakdown, "Expenses", "Wants (Pre-Retirement)")

    v = step.values
    fixed = (
        v["needs"] + v["healthcare"] + v["propertyTax"] + v["estimatedTax"] + v["rothConversion"] + v["annual401k"] + v["annualTba"]
    )
    assert step.result == pytest.approx(yearly.cash_flow.wants)
    assert step.result == pytest.approx(max(0.0, v["salary"] - fixed))


def test_missing_age_raises(sample_config, sample_result):
    with pytest.raises(ValueError, match="not in the simulation result"):
        find_breakdown(sample_config, sample_result, 99)


def test_prior_result_required_after_first_year(sample_config, sample_result):
    yearly = next(y for y in sample_result.yearly_results if y.age == 70)
    with pytest.raises(ValueError):
        generate_breakdown(sample_config, 70, yearly, None)


def test_age_must_match_yearly_result(sample_config, sample_result):
    with pytest.raises(ValueError):
        generate_breakdown(sample_config, 62, sample_result.yearly_results[0], None)
