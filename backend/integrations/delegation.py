"""
Delegation Redeemer
Presents a stored delegation to its DelegationManager so the session key can
move user funds without a live user signature.

Encoding (must be bit-exact, a mismatch reverts on-chain):
    executionCallData = target(20 bytes) || value(uint256, 32 bytes) || callData
    redeemDelegations(bytes[] permissionContexts, bytes32[] modes, bytes[] executionCallDatas)
with a single context, the single-default mode and a single execution.
"""

import logging

from eth_abi.packed import encode_packed
from eth_account.signers.local import LocalAccount
from web3 import Web3

from infrastructure.abi_codec import encode_call, to_bytes
from infrastructure.chain import ChainClient

logger = logging.getLogger("DelegationRedeemer")

# ModeCode.SingleDefault: call type single, exec type default, no selector/payload
SINGLE_DEFAULT_MODE = b"\x00" * 32

REDEEM_SIGNATURE = "redeemDelegations(bytes[],bytes32[],bytes[])"


def encode_single_execution(target: str, value: int, call_data: bytes) -> bytes:
    """Packed (address, uint256, bytes) execution"""
    return encode_packed(
        ["address", "uint256", "bytes"],
        [Web3.to_checksum_address(target), value, to_bytes(call_data)],
    )


def encode_redeem_delegations(permission_context, target: str, value: int, call_data: bytes) -> bytes:
    execution = encode_single_execution(target, value, call_data)
    return encode_call(
        REDEEM_SIGNATURE,
        [[to_bytes(permission_context)], [SINGLE_DEFAULT_MODE], [execution]],
    )


class DelegationRedeemer:
    """Builds and submits redeemDelegations transactions"""

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def redeem(
        self,
        account: LocalAccount,
        delegation_manager: str,
        permission_context: str,
        target: str,
        call_data: bytes,
        gas: int,
        value: int = 0
    ) -> str:
        """Submit a single-execution redemption; returns the tx hash"""
        data = encode_redeem_delegations(permission_context, target, value, call_data)
        logger.info(f"[DelegationRedeemer] Redeeming via {delegation_manager[:10]}... -> {target[:10]}...")
        return await self.chain.send_transaction(account, delegation_manager, data, gas=gas)
