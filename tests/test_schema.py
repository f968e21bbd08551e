import json

import pytest

from bucketsim.schema import DEFAULT_STRATEGY_TYPE, SchemaError, load_config
from tests.helpers import clone_config, write_config


def test_sample_config_loads():
    config = load_config("sample_config.json")

    assert config.id == "test-1"
    assert config.current_year == 2025
    assert config.current_age == 60
    assert config.retirement_age == 65
    assert config.portfolio.sb == 200000
    assert config.portfolio.tfa == 0
    assert config.spousal.higher_earner.claim_age == 70
    assert config.expenses.healthcare_medicare == 3000
    assert config.contributions.annual_401k == 23000
    assert config.rates.income_tax == pytest.approx(0.20)
    assert config.strategy.type == DEFAULT_STRATEGY_TYPE
    assert config.strategy.roth_conversion_pre_retirement is None


def test_optional_roth_overrides_are_read(tmp_path, sample_config_dict):
    data = clone_config(sample_config_dict)
    data["strategy"]["rothConversionPreRetirement"] = 5000
    data["strategy"]["rothConversionPostRetirement"] = 25000
    data["strategy"]["type"] = "CUSTOM"
    config = load_config(write_config(tmp_path, data))

    assert config.strategy.roth_conversion_pre_retirement == 5000
    assert config.strategy.roth_conversion_post_retirement == 25000
    assert config.strategy.type == "CUSTOM"


def test_missing_roth_amount_defaults_to_zero(tmp_path, sample_config_dict):
    data = clone_config(sample_config_dict)
    del data["strategy"]["rothConversionAmount"]
    config = load_config(write_config(tmp_path, data))
    assert config.strategy.roth_conversion_amount == 0.0


@pytest.mark.parametrize(
    ("mutator", "message"),
    [
        (lambda d: d["rates"].pop("hysaRate"), "rates.hysaRate: missing required field"),
        (lambda d: d.pop("name"), "config.name: missing required field"),
        (lambda d: d.update({"portfolio": []}), "portfolio: expected object"),
        (lambda d: d.update({"salary": True}), "config.salary: expected number"),
        (lambda d: d.update({"currentAge": 60.5}), "config.currentAge: expected integer"),
        (lambda d: d["spousal"]["lowerEarner"].update({"annualBenefit": "lots"}), "spousal.lowerEarner.annualBenefit: expected number"),
        (lambda d: d["portfolio"].pop("cbb"), "portfolio.cbb: missing required field"),
    ],
)
def test_malformed_config_raises_schema_error(tmp_path, sample_config_dict, mutator, message):
    data = clone_config(sample_config_dict)
    mutator(data)
    path = write_config(tmp_path, data)

    with pytest.raises(SchemaError) as exc:
        load_config(path)
    assert str(exc.value) == message


def test_non_object_root_is_rejected(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(SchemaError, match="root must be a JSON object"):
        load_config(path)


def test_schema_error_is_value_error():
    assert issubclass(SchemaError, ValueError)
