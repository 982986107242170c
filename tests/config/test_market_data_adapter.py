import pytest

from flowscan.adapters.yfinance import YFinanceMarketDataAdapter
from flowscan.config import get_market_data_adapter, reset_market_data_adapter_cache, reset_settings_cache


@pytest.fixture(autouse=True)
def clear_caches(monkeypatch):
    monkeypatch.delenv("MARKET_DATA_PROVIDER", raising=False)
    reset_settings_cache()
    reset_market_data_adapter_cache()
    yield
    reset_settings_cache()
    reset_market_data_adapter_cache()


def test_dev_adapter_is_yfinance_and_cached():
    adapter = get_market_data_adapter(env="dev")

    assert isinstance(adapter, YFinanceMarketDataAdapter)
    assert get_market_data_adapter(env="dev") is adapter


def test_environment_variable_selects_provider(monkeypatch):
    monkeypatch.setenv("MARKET_DATA_PROVIDER", "bogus")

    with pytest.raises(ValueError, match="Unsupported market data provider"):
        get_market_data_adapter(env="dev")
