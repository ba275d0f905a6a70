"""Unit tests for the Aave v3 parser and on-chain reader."""

from decimal import Decimal

import pytest

from fakes import MAX_UINT256, ORACLE, POOL, PROVIDER, USER, WAD, FakeWeb3, account_contracts, make_endpoint_set
from src.core.constants import HEALTH_FACTOR_INFINITE
from src.core.exceptions import ReadError, UnsupportedNetwork
from src.core.models import ReserveRate
from src.data.clients.aave.parser import AaveParser
from src.data.clients.aave.reader import AaveReader
from src.data.providers.resolver import EndpointResolver
from src.protocols.aave.config import (
    RESERVE_ACTIVE_BIT,
    RESERVE_BORROWING_BIT,
    RESERVE_DECIMALS_START_BIT,
    RESERVE_FROZEN_BIT,
)

RAY = 10**27
USDC = "0x5555555555555555555555555555555555555555"
WETH = "0x6666666666666666666666666666666666666666"
A_USDC = "0x7777777777777777777777777777777777777777"
V_DEBT_USDC = "0x8888888888888888888888888888888888888888"
S_DEBT_USDC = "0x9999999999999999999999999999999999999999"


def configuration(decimals=6, active=True, frozen=False, borrowing=True) -> int:
    word = decimals << RESERVE_DECIMALS_START_BIT
    if active:
        word |= 1 << RESERVE_ACTIVE_BIT
    if frozen:
        word |= 1 << RESERVE_FROZEN_BIT
    if borrowing:
        word |= 1 << RESERVE_BORROWING_BIT
    return word


def reserve_data(config_word, liquidity_rate=0, variable_rate=0, stable_rate=0, reserve_id=0,
                 a_token=A_USDC, variable_debt=V_DEBT_USDC, stable_debt=S_DEBT_USDC):
    """getReserveData tuple in ABI field order."""
    return (
        (config_word,),  # configuration
        RAY,  # liquidityIndex
        liquidity_rate,
        RAY,  # variableBorrowIndex
        variable_rate,
        stable_rate,
        1_700_000_000,  # lastUpdateTimestamp
        reserve_id,
        a_token,
        stable_debt,
        variable_debt,
        "0x0000000000000000000000000000000000000000",  # interestRateStrategyAddress
        0,  # accruedToTreasury
        0,  # unbacked
        0,  # isolationModeTotalDebt
    )


def position_contracts():
    """USDC supplied and borrowed, WETH untouched, at 1 and 2000 base units."""
    contracts = account_contracts((3000 * 10**8, 1000 * 10**8, 1000 * 10**8, 8500, 8000, 2 * WAD))
    contracts[POOL].update({
        "getReservesList": lambda: [USDC, WETH],
        "getUserConfiguration": lambda user: 1 << 1,  # USDC (id 0) as collateral
        "getReserveData": lambda asset: (
            reserve_data(configuration(), liquidity_rate=4 * 10**25, variable_rate=6 * 10**25)
            if asset == USDC
            else reserve_data(
                configuration(decimals=18),
                reserve_id=1,
                a_token="0xaaaa000000000000000000000000000000000001",
                variable_debt="0xaaaa000000000000000000000000000000000002",
                stable_debt="0xaaaa000000000000000000000000000000000003",
            )
        ),
    })
    contracts[ORACLE] = {
        "getAssetsPrices": lambda assets: [10**8, 2000 * 10**8],
    }
    contracts[USDC] = {"symbol": lambda: "USDC"}
    contracts[A_USDC] = {"balanceOf": lambda user: 3000 * 10**6}
    contracts[V_DEBT_USDC] = {"balanceOf": lambda user: 1000 * 10**6}
    contracts[S_DEBT_USDC] = {"balanceOf": lambda user: 0}
    for token in ("0xaaaa000000000000000000000000000000000001",
                  "0xaaaa000000000000000000000000000000000002",
                  "0xaaaa000000000000000000000000000000000003"):
        contracts[token] = {"balanceOf": lambda user: 0}
    return contracts


def make_reader(test_settings, client, network_id=42161):
    resolver = EndpointResolver(
        endpoint_sets={network_id: make_endpoint_set(network_id, ("https://a",))},
        client_factory=lambda endpoint, timeout: client,
        settings=test_settings,
    )
    return AaveReader(resolver, settings=test_settings), resolver


class TestAaveParser:
    """Tests for AaveParser."""

    @pytest.fixture
    def parser(self):
        return AaveParser()

    def test_parse_decimal_invalid(self, parser):
        """Invalid values parse to zero."""
        assert parser.parse_decimal("invalid") == Decimal("0")
        assert parser.parse_decimal(None) == Decimal("0")

    def test_to_units(self, parser):
        """Raw integers are scaled by their decimals."""
        assert parser.to_units(123_456_789, 8) == Decimal("1.23456789")
        assert parser.to_units(5 * 10**6, 6) == Decimal("5")

    def test_ray_to_decimal(self, parser):
        """RAY-scaled rates convert to fractions."""
        assert parser.ray_to_decimal(5 * 10**25) == Decimal("0.05")

    def test_normalize_account_data(self, parser):
        """Account data fields get their scale factors."""
        state = parser.normalize_account_data(
            USER, 1, (2000 * 10**8, 500 * 10**8, 1000 * 10**8, 8250, 8000, 33 * WAD // 10)
        )

        assert state.total_collateral == Decimal("2000")
        assert state.total_debt == Decimal("500")
        assert state.available_borrows == Decimal("1000")
        assert state.liquidation_threshold == Decimal("0.825")
        assert state.loan_to_value == Decimal("0.8")
        assert state.health_factor == Decimal("3.3")

    def test_zero_debt_is_infinite(self, parser):
        """No debt maps to the infinite sentinel regardless of the raw value."""
        assert parser.normalize_health_factor(123, Decimal("0")) == HEALTH_FACTOR_INFINITE
        assert parser.normalize_health_factor(2 * WAD, Decimal("0.001")) == HEALTH_FACTOR_INFINITE

    def test_huge_health_factor_is_infinite(self, parser):
        """Values past the sanity bound map to the infinite sentinel."""
        assert parser.normalize_health_factor(MAX_UINT256, Decimal("10")) == HEALTH_FACTOR_INFINITE

    def test_wrong_tuple_length(self, parser):
        """A malformed account tuple is rejected."""
        with pytest.raises(ValueError):
            parser.normalize_account_data(USER, 1, (1, 2, 3))

    def test_decode_configuration(self, parser):
        """Configuration bits decode to flags and decimals."""
        flags = parser.decode_configuration(configuration(decimals=18, frozen=True, borrowing=False))

        assert flags["decimals"] == 18
        assert flags["is_active"] is True
        assert flags["is_frozen"] is True
        assert flags["borrowing_enabled"] is False
        assert flags["is_paused"] is False

    def test_collateral_bit(self, parser):
        """The collateral flag of reserve N is bit 2N+1."""
        user_config = 1 << 5  # reserve 2 as collateral
        assert parser.is_using_as_collateral(user_config, 2) is True
        assert parser.is_using_as_collateral(user_config, 1) is False

    def test_parse_reserve_rate(self, parser):
        """getReserveData tuples become ReserveRate."""
        rate = parser.parse_reserve_rate(
            USDC, "USDC", reserve_data(configuration(), liquidity_rate=4 * 10**25, variable_rate=6 * 10**25)
        )

        assert rate.decimals == 6
        assert rate.supply_rate == Decimal("0.04")
        assert rate.variable_borrow_rate == Decimal("0.06")
        assert rate.is_available
        assert rate.supply_apy > rate.supply_rate


class TestAaveReader:
    """Tests for AaveReader against a fake web3 client."""

    @pytest.mark.asyncio
    async def test_collateral_without_debt(self, test_settings):
        """Collateral 1000 with no debt on Arbitrum reads as infinite health."""
        contracts = account_contracts((1000 * 10**8, 0, 800 * 10**8, 8250, 8000, MAX_UINT256))
        contracts[POOL].update({
            "getReservesList": lambda: [],
            "getUserConfiguration": lambda user: (0,),
        })
        reader, _ = make_reader(test_settings, FakeWeb3(42161, contracts))

        state = await reader.get_account_state(USER, 42161)

        assert state.network_id == 42161
        assert state.total_collateral == Decimal("1000")
        assert state.total_debt == Decimal("0")
        assert state.has_infinite_health
        assert state.health_factor == HEALTH_FACTOR_INFINITE

    @pytest.mark.asyncio
    async def test_reads_per_reserve_positions(self, test_settings):
        """Supply and borrow positions come from token balances, valued at oracle prices."""
        contracts = position_contracts()
        reader, _ = make_reader(test_settings, FakeWeb3(42161, contracts))

        state = await reader.get_account_state(USER, 42161)

        assert len(state.supply_positions) == 1
        assert len(state.borrow_positions) == 1
        supply = state.supply_positions[0]
        assert supply.symbol == "USDC"
        assert supply.amount == Decimal("3000")
        assert supply.value_base == Decimal("3000")
        assert supply.usage_as_collateral is True
        assert state.borrow_positions[0].amount == Decimal("1000")
        assert state.borrow_positions[0].rate == Decimal("0.06")

    @pytest.mark.asyncio
    async def test_user_positions(self, test_settings):
        """Positions can be read on their own, without the account summary."""
        contracts = position_contracts()
        contracts[POOL].pop("getUserAccountData", None)
        reader, _ = make_reader(test_settings, FakeWeb3(42161, contracts))

        supply, borrow = await reader.get_user_positions(USER, 42161)

        assert [p.symbol for p in supply] == ["USDC"]
        assert supply[0].rate == Decimal("0.04")
        assert [p.symbol for p in borrow] == ["USDC"]
        assert borrow[0].value_base == Decimal("1000")

    @pytest.mark.asyncio
    async def test_user_positions_failure_wraps_read_error(self, test_settings):
        """A failing balance read surfaces as ReadError."""
        contracts = position_contracts()
        contracts[A_USDC] = {"balanceOf": lambda user: IOError("boom")}
        reader, _ = make_reader(test_settings, FakeWeb3(42161, contracts))

        with pytest.raises(ReadError) as exc_info:
            await reader.get_user_positions(USER, 42161)

        assert exc_info.value.operation == "get_user_positions"

    @pytest.mark.asyncio
    async def test_rpc_failure_wraps_read_error(self, test_settings):
        """A failing contract call surfaces as ReadError and drops the cached handle."""
        contracts = {PROVIDER: {"getPool": lambda: POOL}, POOL: {"getUserAccountData": lambda user: IOError("boom")}}
        reader, resolver = make_reader(test_settings, FakeWeb3(42161, contracts))

        with pytest.raises(ReadError) as exc_info:
            await reader.get_account_state(USER, 42161)

        assert exc_info.value.network_id == 42161
        assert isinstance(exc_info.value.cause, IOError)
        assert resolver.cached_networks() == []

    @pytest.mark.asyncio
    async def test_provider_unavailable_wraps_read_error(self, test_settings):
        """Resolver exhaustion is also a ReadError for reader callers."""
        reader, _ = make_reader(test_settings, FakeWeb3(ConnectionError("down")))

        with pytest.raises(ReadError):
            await reader.get_reserve_rates(42161)

    @pytest.mark.asyncio
    async def test_invalid_inputs(self, test_settings):
        """Bad addresses and unknown networks are input errors, not read errors."""
        reader, _ = make_reader(test_settings, FakeWeb3(42161))

        with pytest.raises(ValueError):
            await reader.get_account_state("not-an-address", 42161)
        with pytest.raises(UnsupportedNetwork):
            await reader.get_account_state(USER, 999)

    @pytest.mark.asyncio
    async def test_reserve_rates_and_stablecoin_selection(self, test_settings):
        """Reserve rates are read for every reserve and filtered to stablecoins."""
        frozen_dai = "0xbbbb000000000000000000000000000000000001"
        symbols = {USDC: "USDC", WETH: "WETH", frozen_dai: "DAI"}
        contracts = {
            PROVIDER: {"getPool": lambda: POOL},
            POOL: {
                "getReservesList": lambda: [USDC, WETH, frozen_dai],
                "getReserveData": lambda asset: reserve_data(
                    configuration(frozen=(asset == frozen_dai)), liquidity_rate=3 * 10**25
                ),
            },
        }
        for asset, symbol in symbols.items():
            contracts[asset] = {"symbol": lambda symbol=symbol: symbol}
        reader, _ = make_reader(test_settings, FakeWeb3(42161, contracts), network_id=42161)

        rates = await reader.get_reserve_rates(42161)

        assert len(rates) == 3
        assert all(isinstance(r, ReserveRate) for r in rates)
        assert [r.symbol for r in AaveReader.select_supply_apys(rates)] == ["USDC"]
        assert sorted(r.symbol for r in AaveReader.select_available_reserves(rates)) == ["DAI", "USDC"]
