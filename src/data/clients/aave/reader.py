"""Aave v3 on-chain reader implementing the ProtocolReader interface.

Read sequence: resolve a client for the network, look up the Pool through the
PoolAddressesProvider, then query account or reserve state from the Pool.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from aiolimiter import AsyncLimiter
from web3 import Web3

from config.settings import Settings, get_settings
from src.core.constants import BASE_CURRENCY_DECIMALS
from src.core.exceptions import ReadError
from src.core.models import ClientHandle, NormalizedAccountState, ReservePosition, ReserveRate
from src.data.clients.aave.parser import AaveParser
from src.data.clients.base import ProtocolReader
from src.data.providers.resolver import EndpointResolver
from src.protocols.aave.abis import (
    ADDRESSES_PROVIDER_ABI,
    ERC20_ABI,
    POOL_ABI,
    PRICE_ORACLE_ABI,
    RESERVE_ATOKEN,
    RESERVE_ID,
    RESERVE_STABLE_DEBT_TOKEN,
    RESERVE_VARIABLE_DEBT_TOKEN,
)
from src.protocols.aave.assets import get_symbol, is_stablecoin, short_address

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AaveReader(ProtocolReader):
    """Read-only Aave v3 client across every network known to the resolver."""

    def __init__(self, resolver: EndpointResolver, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._resolver = resolver
        self._parser = AaveParser()
        self._limiters: Dict[int, AsyncLimiter] = {}
        self._pools: Dict[int, str] = {}
        self._symbols: Dict[Tuple[int, str], str] = {}

    @property
    def protocol_name(self) -> str:
        return "Aave v3"

    # ========== CALL HELPERS ==========

    def _get_limiter(self, network_id: int) -> AsyncLimiter:
        if network_id not in self._limiters:
            self._limiters[network_id] = AsyncLimiter(
                self.settings.rpc_rate_limit,
                self.settings.rpc_rate_window,
            )
        return self._limiters[network_id]

    async def _call(self, network_id: int, function: Any) -> Any:
        """Execute a contract function call with throttling and a timeout."""
        async with self._get_limiter(network_id):
            return await asyncio.wait_for(
                function.call(),
                timeout=self.settings.provider_timeout_seconds,
            )

    @staticmethod
    def _contract(handle: ClientHandle, address: str, abi: List[Dict[str, Any]]) -> Any:
        return handle.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    @staticmethod
    def _checksum(address: str) -> str:
        if not isinstance(address, str) or not Web3.is_address(address):
            raise ValueError(f"Invalid address: {address!r}")
        return Web3.to_checksum_address(address)

    async def _run(
        self,
        operation: str,
        network_id: int,
        read: Callable[[ClientHandle], Awaitable[T]],
    ) -> T:
        """Resolve a client and run a read sequence, wrapping failures as ReadError."""
        self._resolver.get_endpoint_set(network_id)
        try:
            handle = await self._resolver.resolve(network_id)
            return await read(handle)
        except Exception as e:
            logger.error(f"Aave {operation} failed on network {network_id}: {type(e).__name__}: {e}")
            self._pools.pop(network_id, None)
            self._resolver.invalidate(network_id)
            raise ReadError(operation, network_id, e) from e

    async def _get_pool(self, handle: ClientHandle) -> Any:
        network_id = handle.network_id
        pool_address = self._pools.get(network_id)
        if pool_address is None:
            endpoint_set = self._resolver.get_endpoint_set(network_id)
            provider = self._contract(
                handle, endpoint_set.contracts.pool_addresses_provider, ADDRESSES_PROVIDER_ABI
            )
            pool_address = await self._call(network_id, provider.functions.getPool())
            self._pools[network_id] = pool_address
        return self._contract(handle, pool_address, POOL_ABI)

    async def _get_symbol(self, handle: ClientHandle, asset: str) -> str:
        key = (handle.network_id, asset.lower())
        if key in self._symbols:
            return self._symbols[key]

        symbol = get_symbol(handle.network_id, asset)
        if symbol is None:
            token = self._contract(handle, asset, ERC20_ABI)
            try:
                symbol = await self._call(handle.network_id, token.functions.symbol())
            except Exception as e:
                # Some tokens return bytes32 symbols
                logger.debug(f"Could not read symbol of {asset}: {e}")
                symbol = short_address(asset)
        self._symbols[key] = symbol
        return symbol

    async def _get_prices(self, handle: ClientHandle, assets: List[str]) -> Dict[str, Decimal]:
        """Oracle prices in base currency units, keyed by lower-cased asset address."""
        if not assets:
            return {}
        endpoint_set = self._resolver.get_endpoint_set(handle.network_id)
        provider = self._contract(
            handle, endpoint_set.contracts.pool_addresses_provider, ADDRESSES_PROVIDER_ABI
        )
        oracle_address = await self._call(handle.network_id, provider.functions.getPriceOracle())
        oracle = self._contract(handle, oracle_address, PRICE_ORACLE_ABI)
        raw_prices = await self._call(handle.network_id, oracle.functions.getAssetsPrices(assets))
        return {
            asset.lower(): self._parser.to_units(price, BASE_CURRENCY_DECIMALS)
            for asset, price in zip(assets, raw_prices)
        }

    # ========== ACCOUNT METHODS ==========

    async def get_account_state(
        self,
        address: str,
        network_id: int,
        include_positions: bool = True,
    ) -> NormalizedAccountState:
        """Read getUserAccountData and, optionally, per-reserve positions."""
        user = self._checksum(address)

        async def read(handle: ClientHandle) -> NormalizedAccountState:
            pool = await self._get_pool(handle)
            raw = await self._call(network_id, pool.functions.getUserAccountData(user))
            state = self._parser.normalize_account_data(user, network_id, raw)

            if include_positions and (state.total_collateral > 0 or state.total_debt > 0):
                supply, borrow = await self._read_positions(handle, pool, user)
                state = NormalizedAccountState(
                    address=state.address,
                    network_id=state.network_id,
                    total_collateral=state.total_collateral,
                    total_debt=state.total_debt,
                    available_borrows=state.available_borrows,
                    liquidation_threshold=state.liquidation_threshold,
                    loan_to_value=state.loan_to_value,
                    health_factor=state.health_factor,
                    supply_positions=supply,
                    borrow_positions=borrow,
                    read_at=state.read_at,
                )

            logger.info(
                f"Read Aave account {user} on network {network_id}: "
                f"collateral={state.total_collateral} debt={state.total_debt} hf={state.health_factor}"
            )
            return state

        return await self._run("get_account_state", network_id, read)

    async def get_user_positions(
        self,
        address: str,
        network_id: int,
    ) -> Tuple[List[ReservePosition], List[ReservePosition]]:
        """Read aToken and debt token balances of a user on every reserve."""
        user = self._checksum(address)

        async def read(handle: ClientHandle) -> Tuple[List[ReservePosition], List[ReservePosition]]:
            pool = await self._get_pool(handle)
            return await self._read_positions(handle, pool, user)

        return await self._run("get_user_positions", network_id, read)

    async def _read_positions(
        self,
        handle: ClientHandle,
        pool: Any,
        user: str,
    ) -> Tuple[List[ReservePosition], List[ReservePosition]]:
        network_id = handle.network_id
        reserves = list(await self._call(network_id, pool.functions.getReservesList()))
        user_configuration = await self._call(network_id, pool.functions.getUserConfiguration(user))
        if isinstance(user_configuration, (tuple, list)):
            user_configuration = user_configuration[0]
        prices = await self._get_prices(handle, reserves)

        results = await asyncio.gather(*(
            self._read_reserve_position(
                handle, pool, user, asset, int(user_configuration), prices.get(asset.lower(), Decimal("0"))
            )
            for asset in reserves
        ))

        supply_positions = [supply for supply, _ in results if supply is not None]
        borrow_positions = [borrow for _, borrow in results if borrow is not None]
        return supply_positions, borrow_positions

    async def _read_reserve_position(
        self,
        handle: ClientHandle,
        pool: Any,
        user: str,
        asset: str,
        user_configuration: int,
        price: Decimal,
    ) -> Tuple[Optional[ReservePosition], Optional[ReservePosition]]:
        network_id = handle.network_id
        reserve_data = await self._call(network_id, pool.functions.getReserveData(asset))
        rate = self._parser.parse_reserve_rate(asset, "", reserve_data)

        balances = await asyncio.gather(*(
            self._call(
                network_id,
                self._contract(handle, reserve_data[index], ERC20_ABI).functions.balanceOf(user),
            )
            for index in (RESERVE_ATOKEN, RESERVE_VARIABLE_DEBT_TOKEN, RESERVE_STABLE_DEBT_TOKEN)
        ))
        supplied, variable_debt, stable_debt = (self._parser.to_units(b, rate.decimals) for b in balances)
        if supplied == 0 and variable_debt == 0 and stable_debt == 0:
            return None, None

        symbol = await self._get_symbol(handle, asset)
        supply_position = None
        borrow_position = None

        if supplied > 0:
            supply_position = ReservePosition(
                asset=asset,
                symbol=symbol,
                amount=supplied,
                value_base=supplied * price,
                rate=rate.supply_rate,
                usage_as_collateral=self._parser.is_using_as_collateral(
                    user_configuration, int(reserve_data[RESERVE_ID])
                ),
            )

        debt = variable_debt + stable_debt
        if debt > 0:
            borrow_position = ReservePosition(
                asset=asset,
                symbol=symbol,
                amount=debt,
                value_base=debt * price,
                rate=rate.variable_borrow_rate if variable_debt >= stable_debt else rate.stable_borrow_rate,
            )

        return supply_position, borrow_position

    # ========== RESERVE METHODS ==========

    async def get_reserve_rates(self, network_id: int) -> List[ReserveRate]:
        """Read rates and configuration flags of every reserve."""

        async def read(handle: ClientHandle) -> List[ReserveRate]:
            pool = await self._get_pool(handle)
            reserves = list(await self._call(network_id, pool.functions.getReservesList()))

            async def read_reserve(asset: str) -> ReserveRate:
                reserve_data = await self._call(network_id, pool.functions.getReserveData(asset))
                symbol = await self._get_symbol(handle, asset)
                return self._parser.parse_reserve_rate(asset, symbol, reserve_data)

            rates = list(await asyncio.gather(*(read_reserve(asset) for asset in reserves)))
            logger.info(f"Read {len(rates)} Aave reserves on network {network_id}")
            return rates

        return await self._run("get_reserve_rates", network_id, read)

    @staticmethod
    def select_supply_apys(rates: List[ReserveRate]) -> List[ReserveRate]:
        """Stablecoin reserves currently accepting supply."""
        return [r for r in rates if is_stablecoin(r.symbol) and r.is_available]

    @staticmethod
    def select_borrow_rates(rates: List[ReserveRate]) -> List[ReserveRate]:
        """Stablecoin reserves currently open for borrowing."""
        return [r for r in rates if is_stablecoin(r.symbol) and r.is_available and r.borrowing_enabled]

    @staticmethod
    def select_available_reserves(rates: List[ReserveRate]) -> List[ReserveRate]:
        """Active stablecoin reserves, including frozen ones."""
        return [r for r in rates if is_stablecoin(r.symbol) and r.is_active]

    async def get_supply_apys(self, network_id: int) -> List[ReserveRate]:
        return self.select_supply_apys(await self.get_reserve_rates(network_id))

    async def get_borrow_rates(self, network_id: int) -> List[ReserveRate]:
        return self.select_borrow_rates(await self.get_reserve_rates(network_id))

    async def get_available_reserves(self, network_id: int) -> List[ReserveRate]:
        return self.select_available_reserves(await self.get_reserve_rates(network_id))

    # ========== LIFECYCLE ==========

    async def close(self) -> None:
        """Drop cached pool addresses and symbols."""
        self._pools.clear()
        self._symbols.clear()
