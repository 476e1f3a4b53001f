"""
Aave V3 pool calldata
"""

from web3 import Web3

from infrastructure.abi_codec import encode_call

AAVE_PROTOCOL = "aave-v3"


def encode_supply(asset: str, amount: int, on_behalf_of: str, referral_code: int = 0) -> bytes:
    """Pool.supply - aTokens are minted to `on_behalf_of`"""
    return encode_call(
        "supply(address,uint256,address,uint16)",
        [Web3.to_checksum_address(asset), amount, Web3.to_checksum_address(on_behalf_of), referral_code],
    )
