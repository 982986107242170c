from flowscan.adapters.base import DataNotAvailable, MarketDataAdapter, Quote
from flowscan.markets import CHINA_SEEDS, detect_market, get_china_movers, strip_market_suffix


def test_detect_market_from_suffix():
    assert detect_market("600519.SS") == "CN"
    assert detect_market("000858.sz") == "CN"
    assert detect_market("AAPL") == "US"
    assert detect_market("BRK.B") == "US"


def test_strip_market_suffix():
    assert strip_market_suffix("600519.SS") == "600519"
    assert strip_market_suffix(" aapl ") == "AAPL"


class SeedAdapter(MarketDataAdapter):
    name = "seed"

    def get_chain(self, symbol, expiration):
        raise NotImplementedError

    def get_quote(self, symbol):
        change = {"600519.SS": 1.0, "000858.SZ": -6.0, "300750.SZ": 3.0}.get(symbol)
        if change is None:
            raise DataNotAvailable(symbol)
        return Quote(symbol=symbol, price=10.0, change_percent=change, volume=100.0)


def test_china_movers_sorted_by_absolute_change():
    movers = get_china_movers(SeedAdapter(), limit=2)

    assert [mover.symbol for mover in movers] == ["000858.SZ", "300750.SZ"]
    assert all(mover.symbol in CHINA_SEEDS for mover in movers)
