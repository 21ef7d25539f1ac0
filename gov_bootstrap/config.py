"""
Deployment configuration loaded from the environment (.env supported)
"""

import os
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from dotenv import load_dotenv
from web3 import Web3

from .codec import MemberRecord

ETHER = 10 ** 18
GWEI = 10 ** 9

DEFAULT_STAKE = 1_500_000 * ETHER
DEFAULT_GAS_LIMIT = 30_000_000  # 21000 * 1500 rounded up
DEFAULT_GAS_PRICE_GWEI = 110

# Hex tail used for the generated test roster ids
TEST_NODE_ID = (
    "20055aa3c3b31fa73fa989972070dff5a66e19e764c3aed9f8e741dd49637af2"
    "d3190961b20417fc71b3f98a2a11c45e04afaf4111a46ef8b3089df9f9a7520"
)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class DeployConfig:
    rpc_url: str = "http://localhost:8545"
    deployer_private_key: Optional[str] = None
    member_private_keys: List[str] = field(default_factory=list)
    artifacts_dir: str = "artifacts"
    output_dir: str = "."
    gas_limit: int = DEFAULT_GAS_LIMIT
    gas_price: int = DEFAULT_GAS_PRICE_GWEI * GWEI
    stake_amount: int = DEFAULT_STAKE
    registry_owner: Optional[str] = None
    owner_funding: int = 100 * ETHER
    members_file: Optional[str] = None
    init_batch_size: int = 0
    poa_middleware: bool = True
    ledger_account_index: int = 0
    address_file: str = "gov_addresses.json"
    staking_reward: Optional[str] = None
    ecosystem: Optional[str] = None
    maintenance: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'DeployConfig':
        """Build the configuration from environment variables"""
        load_dotenv()
        return cls(
            rpc_url=os.getenv("RPC_URL", "http://localhost:8545"),
            deployer_private_key=os.getenv("DEPLOYER_PRIVATE_KEY") or None,
            member_private_keys=_env_list("MEMBER_PRIVATE_KEYS"),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
            output_dir=os.getenv("OUTPUT_DIR", "."),
            gas_limit=_env_int("GAS_LIMIT", DEFAULT_GAS_LIMIT),
            gas_price=_env_int("GAS_PRICE_GWEI", DEFAULT_GAS_PRICE_GWEI) * GWEI,
            stake_amount=_env_int("STAKE_AMOUNT", DEFAULT_STAKE),
            registry_owner=os.getenv("REGISTRY_OWNER") or None,
            owner_funding=_env_int("OWNER_FUNDING", 100 * ETHER),
            members_file=os.getenv("MEMBERS_FILE") or None,
            init_batch_size=_env_int("INIT_BATCH_SIZE", 0),
            poa_middleware=_env_flag("POA_MIDDLEWARE", True),
            ledger_account_index=_env_int("LEDGER_ACCOUNT_INDEX", 0),
            address_file=os.getenv("GOV_ADDRESS_FILE", "gov_addresses.json"),
            staking_reward=os.getenv("STAKING_REWARD") or None,
            ecosystem=os.getenv("ECOSYSTEM") or None,
            maintenance=os.getenv("MAINTENANCE") or None,
        )

    @property
    def tx_params(self) -> Dict[str, int]:
        return {'gas': self.gas_limit, 'gasPrice': self.gas_price}

    @property
    def address_path(self) -> str:
        """Where deploy writes the address file and the other commands read it"""
        return os.path.join(self.output_dir, self.address_file)


def env_params(stake_amount: int = DEFAULT_STAKE) -> Dict[str, int]:
    """Initial EnvStorage values, in the order they are registered"""
    return {
        'blocksPer': 1,
        'ballotDurationMin': 86400,  # 1 day
        'ballotDurationMax': 604800,  # 7 days
        'stakingMin': stake_amount,
        'stakingMax': stake_amount,
        'MaxIdleBlockInterval': 5,
        'blockCreationTime': 1000,  # ms
        'blockRewardAmount': 1 * ETHER,
        'maxPriorityFeePerGas': 100 * GWEI,
        'blockRewardDistributionBlockProducer': 4000,  # 40%
        'blockRewardDistributionStakingReward': 1000,  # 10%
        'blockRewardDistributionEcosystem': 2500,  # 25%
        'blockRewardDistributionMaintenance': 2500,  # 25%
        'maxBaseFee': 50000 * GWEI,
        'blockGasLimit': 1_050_000_000,  # 21000 gas/tx * 50000 tx
        'baseFeeMaxChangeRate': 55,
        'gasTargetPercentage': 30,
    }


def hashed_env_params(params: Dict[str, int]):
    """Return (keccak256 names, values) as EnvStorageImp.initialize expects them"""
    names = [Web3.keccak(text=name) for name in params]
    return names, list(params.values())


def fake_node_id(index: int) -> str:
    if index == 0:
        return "0x" + TEST_NODE_ID + "0"
    # Over-long on purpose, normalize_id cuts it back to 64 bytes
    return "0x" + str(index) + TEST_NODE_ID + "000"


def build_roster(addresses: Sequence[str], stake_amount: int = DEFAULT_STAKE,
                 ip_prefix: str = "10.29.2.1", port: int = 9101) -> List[MemberRecord]:
    """
    Generate a test roster, the first address being the bootnode

    Args:
        addresses: Deployer address followed by the other member addresses
        stake_amount: Stake recorded for every member
        ip_prefix: Member i gets ip_prefix + str(i)
        port: P2P port of every member

    Returns:
        One MemberRecord per address
    """
    roster = []
    for i, address in enumerate(addresses):
        roster.append(MemberRecord(
            addr=address,
            staker=address,
            voter=address,
            reward=address,
            stake=stake_amount,
            name=f"nxt-{i}",
            id=fake_node_id(i),
            ip=f"{ip_prefix}{i}",
            port=port,
            bootnode=(i == 0),
        ))
    return roster


def member_from_dict(data: Dict[str, Any]) -> MemberRecord:
    staker = data['staker']
    return MemberRecord(
        addr=data.get('addr', staker),
        staker=staker,
        voter=data.get('voter', staker),
        reward=data.get('reward', staker),
        stake=int(data.get('stake', 0)),
        name=data['name'],
        id=data['id'],
        ip=data['ip'],
        port=int(data['port']),
        bootnode=bool(data.get('bootnode', False)),
    )


def load_roster(path: str) -> List[MemberRecord]:
    """Load a roster from a JSON file, either a list or {"members": [...]}"""
    with open(path, 'r') as f:
        data = json.load(f)
    members = data['members'] if isinstance(data, dict) else data
    return [member_from_dict(m) for m in members]


def load_address_file(path: str) -> Dict[str, Any]:
    """Load the deployed-address file (REGISTRY_ADDRESS and friends)"""
    with open(path, 'r') as f:
        data = json.load(f)
    if 'REGISTRY_ADDRESS' not in data:
        raise KeyError(f"REGISTRY_ADDRESS missing from {path}")
    return data
