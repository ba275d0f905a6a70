"""Aave v3 token addresses and stablecoin classification per network."""

from typing import Dict, Optional

STABLECOIN_SYMBOLS = frozenset({"USDC", "USDC.e", "USDT", "DAI", "FRAX", "GHO", "LUSD", "USDD", "MAI"})

# Known token addresses per chain id: symbol -> address
TOKEN_ADDRESSES_BY_CHAIN: Dict[int, Dict[str, str]] = {
    1: {
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "DAI": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "GHO": "0x40D16FC0246aD3160Ccc09B8D0D3A2cD28aE6C2f",
        "LUSD": "0x5f98805A4E8be255a32880FDeC7F6728C6568bA0",
        "WETH": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "WBTC": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    },
    137: {
        "USDC": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        "USDC.e": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
        "DAI": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
        "WETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        "WBTC": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",
    },
    10: {
        "USDC": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        "USDC.e": "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
        "USDT": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        "DAI": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "WETH": "0x4200000000000000000000000000000000000006",
        "WBTC": "0x68f180fcCe6836688e9084f035309E29Bf0A2095",
    },
    42161: {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "USDC.e": "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",
        "USDT": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        "DAI": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "FRAX": "0x17FC002b466eEc40DaE837Fc4bE5c67993ddBd6F",
        "GHO": "0x7dfF72693f6A4149b17e7C6314655f6A9F7c8B33",
        "LUSD": "0x93b346b6BC2548dA6A1E7d98E9a421B42541425b",
        "WETH": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        "WBTC": "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
        "ARB": "0x912CE59144191C1204E64559FE8253a0e49E6548",
    },
    43114: {
        "USDC": "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
        "USDT": "0x9702230A8Ea53601f5cD2dc00fDBc13d4dF4A8c7",
        "DAI": "0xd586E7F844cEa2F87f50152665BCbc2C279D8d70",
        "WETH": "0x49D5c2BdFfac6CE2BFdB6640F4F80f226bc10bAB",
        "WBTC": "0x50b7545627a5162F82A992c33b87aDc75187B218",
    },
}


def is_stablecoin(symbol: str) -> bool:
    """Check whether a reserve symbol is a known stablecoin."""
    return symbol in STABLECOIN_SYMBOLS


def get_symbol(network_id: int, address: str) -> Optional[str]:
    """Get the known symbol for a token address on a network.

    Args:
        network_id: Chain id
        address: Token address (any case)

    Returns:
        Symbol or None if the token is not in the known list
    """
    for symbol, addr in TOKEN_ADDRESSES_BY_CHAIN.get(network_id, {}).items():
        if addr.lower() == address.lower():
            return symbol
    return None


def short_address(address: str) -> str:
    """Shortened address for display when no symbol is known."""
    return f"{address[:6]}...{address[-4:]}" if len(address) > 10 else address
