"""
Join an existing governance deployment as an arbitrary address on a local fork

Only works against a development node (hardhat or anvil) that honours
hardhat_impersonateAccount.
"""

import logging

from web3 import Web3

from .chain import Chain, DeploymentError, NodeSigner, bytes32
from .config import ETHER, GWEI, load_address_file

logger = logging.getLogger(__name__)

FUNDING_AMOUNT = 1_501_000 * ETHER
DEPOSIT_AMOUNT = 1_500_000 * ETHER
FUNDING_GAS_PRICE = 110 * GWEI


def _rpc(w3: Web3, method: str, params: list):
    response = w3.provider.make_request(method, params)
    if 'error' in response:
        raise DeploymentError(f"{method} failed: {response['error']}")
    return response.get('result')


def impersonate_member(chain: Chain, address_file: str, new_member: str):
    """
    Fund `new_member` from the first node account and stake on its behalf

    Args:
        chain: Chain bound to the fork
        address_file: JSON file holding REGISTRY_ADDRESS
        new_member: Address to impersonate

    Returns:
        Receipt of the deposit
    """
    w3 = chain.w3
    addresses = load_address_file(address_file)
    new_member = Web3.to_checksum_address(new_member)

    _rpc(w3, 'hardhat_impersonateAccount', [new_member])
    logger.info(f"Impersonating {new_member}")
    try:
        sender = NodeSigner(w3, w3.eth.accounts[0])
        w3.eth.wait_for_transaction_receipt(w3.eth.send_transaction({
            'from': sender.address,
            'to': new_member,
            'value': FUNDING_AMOUNT,
            'gasPrice': FUNDING_GAS_PRICE,
        }))
        logger.info(f"Funded {new_member} with {FUNDING_AMOUNT} wei")

        registry = chain.contract_at('Registry', addresses['REGISTRY_ADDRESS'])
        gov_address = registry.functions.getContractAddress(bytes32('GovernanceContract')).call()
        staking_address = registry.functions.getContractAddress(bytes32('Staking')).call()
        logger.info(f"Gov at {gov_address}, Staking at {staking_address}")

        staking = chain.contract_at('StakingImp', staking_address)
        receipt = chain.transact(NodeSigner(w3, new_member), staking.functions.deposit(), value=DEPOSIT_AMOUNT)
        logger.info(f"{new_member} deposited {DEPOSIT_AMOUNT} wei")
        return receipt
    finally:
        _rpc(w3, 'hardhat_stopImpersonatingAccount', [new_member])
