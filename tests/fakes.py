"""Fakes shared by the unit and integration tests."""

from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from src.core.constants import HEALTH_FACTOR_INFINITE
from src.core.models import AaveContracts, EndpointSet, NormalizedAccountState, ReserveRate

USER = "0x1111111111111111111111111111111111111111"
POOL = "0x2222222222222222222222222222222222222222"
ORACLE = "0x3333333333333333333333333333333333333333"
PROVIDER = "0x4444444444444444444444444444444444444444"

WAD = 10**18
MAX_UINT256 = 2**256 - 1


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCall:
    def __init__(self, handler: Callable[..., Any], args: tuple):
        self._handler = handler
        self._args = args

    async def call(self) -> Any:
        result = self._handler(*self._args)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeFunctions:
    def __init__(self, methods: Dict[str, Callable[..., Any]]):
        self._methods = methods

    def __getattr__(self, name: str) -> Callable[..., FakeCall]:
        try:
            handler = self._methods[name]
        except KeyError:
            raise AttributeError(name) from None
        return lambda *args: FakeCall(handler, args)


class FakeContract:
    def __init__(self, methods: Dict[str, Callable[..., Any]]):
        self.functions = FakeFunctions(methods)


class FakeEth:
    def __init__(self, chain_id: Any, contracts: Dict[str, Dict[str, Callable[..., Any]]], block_number: int):
        self._chain_id = chain_id
        self._contracts = contracts
        self.block_number = block_number

    @property
    def chain_id(self) -> int:
        if isinstance(self._chain_id, BaseException):
            raise self._chain_id
        return self._chain_id

    def contract(self, address: str, abi: Any) -> FakeContract:
        return FakeContract(self._contracts.get(address.lower(), {}))


class FakeWeb3:
    """Just enough of AsyncWeb3 for the resolver and reader.

    ``contracts`` maps a lower-cased address to ``{function name: handler}``;
    a handler returning an exception instance makes the call raise it.
    """

    def __init__(
        self,
        chain_id: Any,
        contracts: Optional[Dict[str, Dict[str, Callable[..., Any]]]] = None,
        block_number: int = 1,
    ):
        self.eth = FakeEth(chain_id, contracts or {}, block_number)


def make_endpoint_set(network_id: int = 42161, endpoints: tuple = ("https://a", "https://b", "https://c")) -> EndpointSet:
    return EndpointSet(
        network_id=network_id,
        name=f"net-{network_id}",
        endpoints=endpoints,
        contracts=AaveContracts(pool_addresses_provider=PROVIDER),
    )


def account_contracts(account_data: tuple) -> Dict[str, Dict[str, Callable[..., Any]]]:
    """Contracts for an account read that needs no per-reserve positions."""
    return {
        PROVIDER: {"getPool": lambda: POOL, "getPriceOracle": lambda: ORACLE},
        POOL: {"getUserAccountData": lambda user: account_data},
    }


def sample_state(
    address: str = USER,
    network_id: int = 42161,
    collateral: str = "1000",
    debt: str = "0",
    health_factor: Optional[Decimal] = None,
) -> NormalizedAccountState:
    return NormalizedAccountState(
        address=address,
        network_id=network_id,
        total_collateral=Decimal(collateral),
        total_debt=Decimal(debt),
        available_borrows=Decimal("800"),
        liquidation_threshold=Decimal("0.825"),
        loan_to_value=Decimal("0.8"),
        health_factor=health_factor if health_factor is not None else HEALTH_FACTOR_INFINITE,
    )


def sample_rates() -> list:
    """USDC (open), DAI (frozen) and WETH reserves."""
    def rate(index, symbol, frozen=False):
        return ReserveRate(
            asset=f"0x{index:040x}",
            symbol=symbol,
            decimals=6,
            supply_rate=Decimal("0.04"),
            variable_borrow_rate=Decimal("0.06"),
            stable_borrow_rate=Decimal("0"),
            is_frozen=frozen,
        )

    return [rate(1, "USDC"), rate(2, "DAI", frozen=True), rate(3, "WETH")]
