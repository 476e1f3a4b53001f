"""
Price Oracle Tests
QuoterV2 quotes, decimal normalization and the slippage floor

Run: python -m pytest tests/test_price_oracle.py -v
"""

import pytest
from decimal import Decimal
from eth_abi import decode, encode

from infrastructure.errors import ChainError, QuoteError
from integrations.uniswap import (
    PriceOracle,
    encode_exact_input_single,
    encode_quote_exact_input_single,
    min_amount_out,
)

QUOTER = "0xEd1f6473345F45b75F8179591dd5bA1888cf2FB3"


def quoter_output(amount_out: int) -> bytes:
    return encode(["uint256", "uint160", "uint32", "uint256"], [amount_out, 0, 1, 90_000])


class TestSlippageFloor:

    def test_one_percent(self):
        assert min_amount_out(1000, 100) == 990

    def test_truncates(self):
        assert min_amount_out(999, 50) == 994  # 994.005

    def test_zero_slippage(self):
        assert min_amount_out(123456, 0) == 123456


class TestQuote:

    @pytest.mark.asyncio
    async def test_quote_amount_decodes_first_output(self, fake_chain, test_addresses):
        fake_chain.call_result = quoter_output(2_500_000_000)
        oracle = PriceOracle(fake_chain, QUOTER)

        amount = await oracle.quote_amount(test_addresses["WETH"], test_addresses["USDC"], 10 ** 18, 3000)

        assert amount == 2_500_000_000

    @pytest.mark.asyncio
    async def test_price_normalized_by_decimals(self, fake_chain, test_addresses):
        # 1 WETH (18 dec) -> 2500 USDC (6 dec)
        fake_chain.call_result = quoter_output(2_500_000_000)
        oracle = PriceOracle(fake_chain, QUOTER)

        quote = await oracle.quote(test_addresses["WETH"], test_addresses["USDC"], 3000)

        assert quote.price == Decimal("2500")
        assert quote.decimals_in == 18
        assert quote.decimals_out == 6

    @pytest.mark.asyncio
    async def test_rpc_failure_becomes_quote_error(self, fake_chain, test_addresses):
        fake_chain.call_error = ChainError("sepolia", "execution reverted")
        oracle = PriceOracle(fake_chain, QUOTER)

        with pytest.raises(QuoteError) as exc:
            await oracle.quote(test_addresses["WETH"], test_addresses["USDC"], 3000)

        assert "Failed to get quote" in exc.value.message


class TestCalldata:

    def test_quote_params(self, test_addresses):
        data = encode_quote_exact_input_single(test_addresses["USDC"], test_addresses["WETH"], 1000, 500)
        (params,) = decode(["(address,address,uint256,uint24,uint160)"], data[4:])
        assert params[0].lower() == test_addresses["USDC"].lower()
        assert params[1].lower() == test_addresses["WETH"].lower()
        assert params[2:] == (1000, 500, 0)

    def test_swap_params(self, test_addresses):
        data = encode_exact_input_single(
            test_addresses["USDC"], test_addresses["WETH"], 3000, test_addresses["user"], 1000, 990
        )
        (params,) = decode(["(address,address,uint24,address,uint256,uint256,uint160)"], data[4:])
        assert params[3].lower() == test_addresses["user"].lower()
        assert params[4] == 1000
        assert params[5] == 990
        assert params[6] == 0
