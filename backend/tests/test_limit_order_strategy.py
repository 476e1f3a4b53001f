"""
Limit-Order Strategy Tests
Price-target state check: expired / waiting / triggering

Run: python -m pytest tests/test_limit_order_strategy.py -v
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from eth_abi import decode

from executors.limit_order import LimitOrderStrategy, limit_min_amount_out
from executors.models import AgentStatus, PriceCheckReason
from infrastructure.errors import QuoteError
from integrations.uniswap import PriceQuote

SWAP_PARAMS = ["(address,address,uint24,address,uint256,uint256,uint160)"]


def weth_usdc_quote(price: str) -> PriceQuote:
    price = Decimal(price)
    return PriceQuote(price=price, amount_out=int(price * 10 ** 6), decimals_in=18, decimals_out=6)


@pytest.fixture
def strategy(fake_chain, mock_oracle, secrets, gas_limits, contracts, fixed_now):
    return LimitOrderStrategy(
        fake_chain, mock_oracle, secrets=secrets, gas=gas_limits, contracts=contracts, clock=lambda: fixed_now
    )


# =============================================================================
# TEST: Price check
# =============================================================================

class TestPriceCheck:

    @pytest.mark.asyncio
    async def test_expired_order_never_quotes(self, strategy, mock_oracle, make_agent, fixed_now):
        agent = make_agent("limit-order")
        agent.config["limit_order"]["expiry_timestamp"] = int((fixed_now - timedelta(seconds=1)).timestamp())

        check = await strategy.check_price(agent)

        assert check.reason == PriceCheckReason.EXPIRED
        assert check.should_execute is False
        mock_oracle.quote.assert_not_called()

    @pytest.mark.asyncio
    async def test_below_target_waits(self, strategy, mock_oracle, make_agent):
        mock_oracle.quote.return_value = weth_usdc_quote("2399.99")

        check = await strategy.check_price(make_agent("limit-order"))

        assert check.reason == PriceCheckReason.WAITING
        assert check.should_execute is False
        assert check.current_price == Decimal("2399.99")

    @pytest.mark.asyncio
    async def test_at_target_triggers(self, strategy, mock_oracle, make_agent):
        mock_oracle.quote.return_value = weth_usdc_quote("2400")

        check = await strategy.check_price(make_agent("limit-order"))

        assert check.should_execute is True
        assert check.reason == PriceCheckReason.TARGET_MET

    @pytest.mark.asyncio
    async def test_buy_direction_uses_same_comparison(self, strategy, mock_oracle, make_agent):
        agent = make_agent("limit-order")
        agent.config["limit_order"]["direction"] = "buy"
        mock_oracle.quote.return_value = weth_usdc_quote("2500")

        check = await strategy.check_price(agent)

        assert check.should_execute is True

    @pytest.mark.asyncio
    async def test_quote_error(self, strategy, mock_oracle, make_agent):
        mock_oracle.quote.side_effect = QuoteError("Failed to get quote from Uniswap: no pool")

        check = await strategy.check_price(make_agent("limit-order"))

        assert check.reason == PriceCheckReason.QUOTE_ERROR
        assert check.should_execute is False
        assert check.current_price is None


# =============================================================================
# TEST: Execution
# =============================================================================

class TestLimitOrderExecution:

    @pytest.mark.asyncio
    async def test_expired_cancels_without_transactions(self, strategy, fake_chain, make_agent, fixed_now):
        agent = make_agent("limit-order")
        agent.config["limit_order"]["expiry_timestamp"] = int((fixed_now - timedelta(hours=1)).timestamp())

        result = await strategy.execute(agent)

        assert result.terminal_status == AgentStatus.CANCELLED
        assert result.error == "Order expired"
        assert fake_chain.sent == []

    @pytest.mark.asyncio
    async def test_target_not_met_is_skip(self, strategy, fake_chain, mock_oracle, make_agent):
        mock_oracle.quote.return_value = weth_usdc_quote("2000")

        result = await strategy.execute(make_agent("limit-order"))

        assert result.skipped is True
        assert result.success is False
        assert result.error == "Price target not met (current: 2000, target: 2400)"
        assert result.price_check.reason == PriceCheckReason.WAITING
        assert fake_chain.sent == []

    @pytest.mark.asyncio
    async def test_quote_error_is_failure(self, strategy, fake_chain, mock_oracle, make_agent):
        mock_oracle.quote.side_effect = QuoteError("Failed to get quote from Uniswap: no pool")

        result = await strategy.execute(make_agent("limit-order"))

        assert result.success is False
        assert result.skipped is False
        assert result.error.startswith("Price check failed")
        assert fake_chain.sent == []

    @pytest.mark.asyncio
    async def test_triggered_order_swaps_with_target_floor(self, strategy, fake_chain, mock_oracle, make_agent, contracts):
        mock_oracle.quote.return_value = weth_usdc_quote("2510")
        agent = make_agent("limit-order")

        result = await strategy.execute(agent)

        assert result.success is True
        assert [tx["to"] for tx in fake_chain.sent] == [
            agent.delegation_manager,
            agent.settings().token_in,
            contracts.swap_router,
        ]
        (params,) = decode(SWAP_PARAMS, fake_chain.sent[2]["data"][4:])
        assert params[4] == 10 ** 18
        assert params[5] == 2_400_000_000
        assert result.amount_out == "2400000000"
        assert result.price_check.should_execute is True

    @pytest.mark.asyncio
    async def test_reverted_transfer_reports_hash(self, strategy, fake_chain, mock_oracle, make_agent):
        mock_oracle.quote.return_value = weth_usdc_quote("2600")
        fake_chain.revert_on.add(1)

        result = await strategy.execute(make_agent("limit-order"))

        assert result.success is False
        assert result.tx_hash == fake_chain.sent[0]["hash"]
        assert len(fake_chain.sent) == 1


class TestTargetFloor:

    def test_scales_between_decimals(self):
        assert limit_min_amount_out(10 ** 18, Decimal("2400"), 18, 6) == 2_400_000_000

    def test_scales_up_to_more_decimals(self):
        # 1.5 USDC at 0.0004 WETH/USDC -> 0.0006 WETH
        assert limit_min_amount_out(1_500_000, Decimal("0.0004"), 6, 18) == 600_000_000_000_000

    def test_fractional_result_rounds_down(self):
        assert limit_min_amount_out(3, Decimal("0.5"), 0, 0) == 1
