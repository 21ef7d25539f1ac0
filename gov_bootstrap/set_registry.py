"""
Point the StakingReward registry entry of a live deployment at a new address
"""

import logging

from web3 import Web3

from .chain import Chain, bytes32
from .config import load_address_file
from .receipts import all_ok, persist_run

logger = logging.getLogger(__name__)

DOMAIN = 'StakingReward'


def set_staking_reward(chain: Chain, signer, address_file: str, output_dir: str = ".") -> bool:
    """
    Update StakingReward to the `staker` of the address file

    Writes setStaking_tx.json and setStaking_tx_receipts.json to output_dir.

    Returns:
        True if the update transaction succeeded
    """
    config = load_address_file(address_file)
    staker = Web3.to_checksum_address(config['staker'])

    logger.info(f"Signer {signer.address}")
    registry = chain.contract_at('Registry', config['REGISTRY_ADDRESS'])
    logger.info(f"Registry address: {registry.address}")

    before = registry.functions.getContractAddress(bytes32(DOMAIN)).call()
    logger.info(f"Staking reward before: {before}")

    logger.info(f"Setting staking reward to {staker}")
    receipt = chain.transact(signer, registry.functions.setContractDomain(bytes32(DOMAIN), staker))

    after = registry.functions.getContractAddress(bytes32(DOMAIN)).call()
    logger.info(f"Staking reward after: {after}")

    receipts = persist_run(chain.w3, [receipt['transactionHash']], output_dir, "setStaking")
    return all_ok(receipts)
