"""
Uniswap V3 Integration
Swap calldata and the QuoterV2-backed price oracle.

Quotes are simulated with eth_call against QuoterV2; nothing is mutated.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from web3 import Web3

from infrastructure.abi_codec import decode_output, encode_call
from infrastructure.chain import ChainClient
from infrastructure.errors import QuoteError

logger = logging.getLogger("UniswapOracle")

QUOTE_SIGNATURE = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
QUOTE_OUTPUTS = ["uint256", "uint160", "uint32", "uint256"]
SWAP_SIGNATURE = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint160))"


def encode_quote_exact_input_single(token_in: str, token_out: str, amount_in: int, fee_tier: int) -> bytes:
    return encode_call(
        QUOTE_SIGNATURE,
        [(Web3.to_checksum_address(token_in), Web3.to_checksum_address(token_out), amount_in, fee_tier, 0)],
    )


def encode_exact_input_single(
    token_in: str,
    token_out: str,
    fee_tier: int,
    recipient: str,
    amount_in: int,
    amount_out_minimum: int
) -> bytes:
    return encode_call(
        SWAP_SIGNATURE,
        [(
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            fee_tier,
            Web3.to_checksum_address(recipient),
            amount_in,
            amount_out_minimum,
            0,
        )],
    )


def min_amount_out(expected_out: int, max_slippage_bps: int) -> int:
    """Slippage floor in integer arithmetic (truncating)"""
    return expected_out * (10_000 - max_slippage_bps) // 10_000


@dataclass
class PriceQuote:
    """Spot price of one whole token_in, in token_out"""
    price: Decimal
    amount_out: int
    decimals_in: int
    decimals_out: int


class PriceOracle:
    """
    Price oracle over QuoterV2.

    Usage:
        oracle = PriceOracle(chain, quoter_address)
        quote = await oracle.quote(USDC, WETH, fee_tier=3000)
        print(quote.price)
    """

    def __init__(self, chain: ChainClient, quoter_address: str):
        self.chain = chain
        self.quoter_address = quoter_address

    async def quote_amount(self, token_in: str, token_out: str, amount_in: int, fee_tier: int) -> int:
        """Expected raw output for `amount_in` raw units of token_in"""
        data = encode_quote_exact_input_single(token_in, token_out, amount_in, fee_tier)
        try:
            raw = await self.chain.call(self.quoter_address, data)
            return decode_output(QUOTE_OUTPUTS, raw)[0]
        except Exception as e:
            logger.error(f"[UniswapOracle] Quote failed for {token_in[:10]}... -> {token_out[:10]}...: {e}")
            raise QuoteError(f"Failed to get quote from Uniswap: {e}", {"fee_tier": fee_tier}) from e

    async def quote(self, token_in: str, token_out: str, fee_tier: int) -> PriceQuote:
        """Price output-per-input, normalized by both tokens' decimals"""
        try:
            decimals_in = await self.chain.decimals(token_in)
            decimals_out = await self.chain.decimals(token_out)
        except Exception as e:
            raise QuoteError(f"Failed to read token decimals: {e}") from e

        one_token = 10 ** decimals_in
        amount_out = await self.quote_amount(token_in, token_out, one_token, fee_tier)

        price = (Decimal(amount_out) / Decimal(10 ** decimals_out)) / (Decimal(one_token) / Decimal(10 ** decimals_in))
        return PriceQuote(price=price, amount_out=amount_out, decimals_in=decimals_in, decimals_out=decimals_out)
