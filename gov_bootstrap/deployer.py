#!/usr/bin/env python3
"""
Governance bootstrap deployment

Deploys Registry, EnvStorage, Staking, BallotStorage and Gov (with their
implementations), wires them into the registry, seeds the environment
parameters, stakes every member and hands the encoded roster to GovImp.initOnce.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from web3 import Web3

from .chain import Chain, DeploymentError, LocalSigner, NodeSigner, bytes32
from .codec import MemberRecord, encode_batches
from .config import DeployConfig, build_roster, env_params, hashed_env_params, load_roster
from .receipts import all_ok, persist_run, write_json

logger = logging.getLogger(__name__)


@dataclass
class DeploymentContext:
    chain: Chain
    config: DeployConfig
    deployer: Any
    members: List[Any] = field(default_factory=list)
    roster: List[MemberRecord] = field(default_factory=list)
    staker: Optional[str] = None
    ecosystem: Optional[str] = None
    maintenance: Optional[str] = None
    payloads: List[str] = field(init=False)

    def __post_init__(self):
        self.staker = self.staker or self.config.staking_reward or self.deployer.address
        self.ecosystem = self.ecosystem or self.config.ecosystem or self.deployer.address
        self.maintenance = self.maintenance or self.config.maintenance or self.deployer.address
        # a roster that does not encode must fail before anything is sent
        self.payloads = encode_batches(self.roster, self.config.init_batch_size)


@dataclass
class DeploymentResult:
    addresses: Dict[str, str] = field(default_factory=dict)
    deploy_txs: List[Any] = field(default_factory=list)
    call_txs: List[Any] = field(default_factory=list)
    contracts: Dict[str, Any] = field(default_factory=dict)

    def record_deploy(self, key: str, contract, receipt):
        self.contracts[key] = contract
        self.addresses[key] = contract.address
        self.deploy_txs.append(receipt['transactionHash'])

    def record_call(self, receipt):
        self.call_txs.append(receipt['transactionHash'])

    @property
    def all_txs(self) -> List[Any]:
        return self.deploy_txs + self.call_txs


def make_signers(w3: Web3, config: DeployConfig):
    """Deployer plus member signers, from configured keys or the node's accounts"""
    if config.deployer_private_key:
        deployer = LocalSigner(w3, config.deployer_private_key)
        members = [LocalSigner(w3, key) for key in config.member_private_keys]
    else:
        accounts = list(w3.eth.accounts)
        if not accounts:
            raise DeploymentError("No DEPLOYER_PRIVATE_KEY and the node has no unlocked accounts")
        deployer = NodeSigner(w3, accounts[0])
        members = [NodeSigner(w3, account) for account in accounts[1:]]
    return deployer, members


def make_roster(config: DeployConfig, deployer, members) -> List[MemberRecord]:
    if config.members_file:
        return load_roster(config.members_file)
    addresses = [deployer.address] + [m.address for m in members]
    return build_roster(addresses, stake_amount=config.stake_amount)


def deploy_contracts(ctx: DeploymentContext, result: DeploymentResult):
    chain, deployer = ctx.chain, ctx.deployer

    logger.info("Deploying Registry, EnvStorageImp, StakingImp")
    registry, receipt = chain.deploy('Registry', deployer)
    result.record_deploy('Registry', registry, receipt)
    env_storage_imp, receipt = chain.deploy('EnvStorageImp', deployer)
    result.record_deploy('EnvStorageImp', env_storage_imp, receipt)
    staking_imp, receipt = chain.deploy('StakingImp', deployer)
    result.record_deploy('StakingImp', staking_imp, receipt)

    logger.info("Deploying Staking, BallotStorage, EnvStorage, GovImp")
    staking, receipt = chain.deploy('Staking', deployer, staking_imp.address)
    result.record_deploy('Staking', staking, receipt)
    ballot_storage, receipt = chain.deploy('BallotStorage', deployer, registry.address)
    result.record_deploy('BallotStorage', ballot_storage, receipt)
    env_storage, receipt = chain.deploy('EnvStorage', deployer, env_storage_imp.address)
    result.record_deploy('EnvStorage', env_storage, receipt)
    gov_imp, receipt = chain.deploy('GovImp', deployer)
    result.record_deploy('GovImp', gov_imp, receipt)

    gov, receipt = chain.deploy('Gov', deployer, gov_imp.address)
    result.record_deploy('Gov', gov, receipt)


def register_domains(ctx: DeploymentContext, result: DeploymentResult):
    """Point the registry at every deployed contract and the reward accounts"""
    registry = result.contracts['Registry']
    domains = [
        ('Staking', result.addresses['Staking']),
        ('EnvStorage', result.addresses['EnvStorage']),
        ('BallotStorage', result.addresses['BallotStorage']),
        ('GovernanceContract', result.addresses['Gov']),
        ('StakingReward', ctx.staker),
        ('Ecosystem', ctx.ecosystem),
        ('Maintenance', ctx.maintenance),
    ]
    for domain, address in domains:
        logger.info(f"Registering {domain} -> {address}")
        receipt = ctx.chain.transact(
            ctx.deployer,
            registry.functions.setContractDomain(bytes32(domain), Web3.to_checksum_address(address)),
        )
        result.record_call(receipt)


def transfer_registry_ownership(ctx: DeploymentContext, result: DeploymentResult):
    owner = ctx.config.registry_owner
    if not owner:
        return
    registry = result.contracts['Registry']
    logger.info(f"Transferring registry ownership to {owner}")
    receipt = ctx.chain.transact(ctx.deployer, registry.functions.transferOwnership(Web3.to_checksum_address(owner)))
    result.record_call(receipt)
    if ctx.config.owner_funding:
        result.record_call(ctx.chain.transfer(ctx.deployer, owner, ctx.config.owner_funding))
    logger.info(f"Registry owner: {registry.functions.owner().call()}")


def init_env_storage(ctx: DeploymentContext, result: DeploymentResult):
    env_delegator = ctx.chain.contract_at('EnvStorageImp', result.addresses['EnvStorage'])
    names, values = hashed_env_params(env_params(ctx.config.stake_amount))
    logger.info(f"Initializing env storage with {len(names)} parameters")
    receipt = ctx.chain.transact(
        ctx.deployer,
        env_delegator.functions.initialize(result.addresses['Registry'], names, values),
    )
    result.record_call(receipt)


def init_staking(ctx: DeploymentContext, result: DeploymentResult):
    """Initialize staking and deposit the stake of the deployer and every member"""
    staking_delegator = ctx.chain.contract_at('StakingImp', result.addresses['Staking'])
    receipt = ctx.chain.transact(
        ctx.deployer,
        staking_delegator.functions.init(result.addresses['Registry'], b''),
    )
    result.record_call(receipt)

    amount = ctx.config.stake_amount
    logger.info(f"Staking amount {amount}")
    for signer in [ctx.deployer] + list(ctx.members):
        receipt = ctx.chain.transact(signer, staking_delegator.functions.deposit(), value=amount)
        result.record_call(receipt)


def init_governance(ctx: DeploymentContext, result: DeploymentResult):
    gov_delegator = ctx.chain.contract_at('GovImp', result.addresses['Gov'])
    registry_address = result.addresses['Registry']
    for i, data in enumerate(ctx.payloads):
        logger.info(f"initOnce batch {i + 1}/{len(ctx.payloads)}")
        receipt = ctx.chain.transact(
            ctx.deployer,
            gov_delegator.functions.initOnce(registry_address, ctx.config.stake_amount, Web3.to_bytes(hexstr=data)),
        )
        result.record_call(receipt)


STEPS = [
    deploy_contracts,
    register_domains,
    transfer_registry_ownership,
    init_env_storage,
    init_staking,
    init_governance,
]


def deploy_gov(ctx: DeploymentContext, result: Optional[DeploymentResult] = None) -> DeploymentResult:
    """Run every step in order; each one needs the receipts of the previous"""
    if result is None:
        result = DeploymentResult()
    logger.info(f"Deployer {ctx.deployer.address}, {len(ctx.members)} further members")
    for step in STEPS:
        try:
            step(ctx, result)
        except Exception as e:
            logger.error(f"Step {step.__name__} failed: {e}")
            raise
    return result


def write_outputs(ctx: DeploymentContext, result: DeploymentResult, prefix: str = "deploy") -> bool:
    """Persist addresses, transactions and receipts; True when every receipt succeeded"""
    addresses = {'REGISTRY_ADDRESS': result.addresses['Registry'], 'staker': ctx.staker}
    addresses.update({f"{name.upper()}_ADDRESS": addr for name, addr in result.addresses.items()})
    write_json(ctx.config.address_path, addresses)
    receipts = persist_run(ctx.chain.w3, result.all_txs, ctx.config.output_dir, prefix)
    return all_ok(receipts)


def run(config: DeployConfig, w3: Web3) -> DeploymentResult:
    deployer, members = make_signers(w3, config)
    ctx = DeploymentContext(
        chain=Chain(w3, config.artifacts_dir, config.tx_params),
        config=config,
        deployer=deployer,
        members=members,
        roster=make_roster(config, deployer, members),
    )
    result = DeploymentResult()
    try:
        deploy_gov(ctx, result)
    except Exception:
        if 'Registry' in result.addresses:
            logger.warning(f"Deployment stopped early, saving {len(result.all_txs)} transactions")
            write_outputs(ctx, result)
        raise
    if not write_outputs(ctx, result):
        raise DeploymentError("Some deployment transactions did not succeed")
    return result
