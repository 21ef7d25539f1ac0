#!/usr/bin/env python3
"""
Tests for fork impersonation and the StakingReward maintenance update
"""

import json

import pytest
from unittest.mock import MagicMock, patch

from gov_bootstrap.chain import DeploymentError, bytes32
from gov_bootstrap.config import DeployConfig
from gov_bootstrap.deployer import DeploymentContext, DeploymentResult, write_outputs
from gov_bootstrap.impersonate import DEPOSIT_AMOUNT, FUNDING_AMOUNT, impersonate_member
from gov_bootstrap.set_registry import set_staking_reward

SENDER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
NEW_MEMBER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
REGISTRY = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
GOV = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
STAKING = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"


@pytest.fixture
def address_file(tmp_path):
    path = tmp_path / "gov_addresses.json"
    path.write_text(json.dumps({"REGISTRY_ADDRESS": REGISTRY, "staker": NEW_MEMBER.lower()}))
    return str(path)


def make_chain():
    chain = MagicMock()
    chain.w3.eth.accounts = [SENDER]
    chain.w3.provider.make_request.return_value = {'jsonrpc': '2.0', 'id': 1, 'result': True}
    registry = MagicMock()
    registry.address = REGISTRY
    staking = MagicMock()

    def contract_at(name, address):
        return registry if name == 'Registry' else staking

    def lookup(domain):
        call = MagicMock()
        call.call.return_value = {bytes32('GovernanceContract'): GOV, bytes32('Staking'): STAKING}.get(domain)
        return call

    chain.contract_at.side_effect = contract_at
    registry.functions.getContractAddress.side_effect = lookup
    chain.transact.return_value = {'status': 1, 'transactionHash': b'\x05' * 32}
    return chain, registry, staking


class TestImpersonateMember:
    def test_funds_and_deposits(self, address_file):
        chain, registry, staking = make_chain()
        receipt = impersonate_member(chain, address_file, NEW_MEMBER.lower())
        assert receipt['status'] == 1

        requests = [c.args for c in chain.w3.provider.make_request.call_args_list]
        assert requests == [
            ('hardhat_impersonateAccount', [NEW_MEMBER]),
            ('hardhat_stopImpersonatingAccount', [NEW_MEMBER]),
        ]

        funding = chain.w3.eth.send_transaction.call_args.args[0]
        assert funding['from'] == SENDER
        assert funding['to'] == NEW_MEMBER
        assert funding['value'] == FUNDING_AMOUNT

        chain.contract_at.assert_any_call('StakingImp', STAKING)
        signer = chain.transact.call_args.args[0]
        assert signer.address == NEW_MEMBER
        assert chain.transact.call_args.kwargs['value'] == DEPOSIT_AMOUNT
        staking.functions.deposit.assert_called_once_with()

    def test_stops_impersonating_on_failure(self, address_file):
        chain, _, _ = make_chain()
        chain.transact.side_effect = DeploymentError("reverted")
        with pytest.raises(DeploymentError):
            impersonate_member(chain, address_file, NEW_MEMBER)
        last = chain.w3.provider.make_request.call_args.args
        assert last == ('hardhat_stopImpersonatingAccount', [NEW_MEMBER])

    def test_node_refuses_impersonation(self, address_file):
        chain, _, _ = make_chain()
        chain.w3.provider.make_request.return_value = {'error': {'message': 'Method not found'}}
        with pytest.raises(DeploymentError, match="hardhat_impersonateAccount"):
            impersonate_member(chain, address_file, NEW_MEMBER)
        chain.w3.eth.send_transaction.assert_not_called()

    @patch('gov_bootstrap.deployer.persist_run')
    def test_reads_file_written_by_deploy(self, mock_persist, tmp_path):
        mock_persist.return_value = []
        config = DeployConfig(output_dir=str(tmp_path / "out"), address_file="gov.json")
        ctx = DeploymentContext(chain=MagicMock(), config=config, deployer=MagicMock(address=SENDER))
        write_outputs(ctx, DeploymentResult(addresses={'Registry': REGISTRY}))
        assert (tmp_path / "out" / "gov.json").exists()

        chain, _, _ = make_chain()
        impersonate_member(chain, config.address_path, NEW_MEMBER)
        chain.contract_at.assert_any_call('Registry', REGISTRY)


class TestSetStakingReward:
    @patch('gov_bootstrap.set_registry.persist_run')
    def test_updates_domain(self, mock_persist, address_file, tmp_path):
        mock_persist.return_value = [{'status': 1}]
        chain, registry, _ = make_chain()
        signer = MagicMock(address=SENDER)

        assert set_staking_reward(chain, signer, address_file, str(tmp_path)) is True

        registry.functions.setContractDomain.assert_called_once_with(bytes32('StakingReward'), NEW_MEMBER)
        assert chain.transact.call_args.args[0] is signer
        # read before and after the update
        assert registry.functions.getContractAddress.call_count == 2
        mock_persist.assert_called_once_with(chain.w3, [b'\x05' * 32], str(tmp_path), "setStaking")

    @patch('gov_bootstrap.set_registry.persist_run')
    def test_reports_failed_receipt(self, mock_persist, address_file):
        mock_persist.return_value = [None]
        chain, _, _ = make_chain()
        assert set_staking_reward(chain, MagicMock(address=SENDER), address_file) is False
