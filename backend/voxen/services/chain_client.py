"""EVM client for reading the Voxen proposal contract"""
from typing import Optional

import structlog
from web3 import AsyncWeb3
from web3.providers.rpc import AsyncHTTPProvider

from voxen.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


class ChainReadError(RuntimeError):
    """Reading from the chain failed (RPC, decoding or contract error)."""


# Read-only subset of the proposal contract ABI
PROPOSAL_CONTRACT_ABI = [
    {
        "type": "function",
        "name": "getProposal",
        "stateMutability": "view",
        "inputs": [{"name": "_proposalId", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "creator", "type": "address"},
            {"name": "contentHash", "type": "bytes32"},
            {"name": "deadline", "type": "uint256"},
            {"name": "optionCount", "type": "uint8"},
            {"name": "totalVotes", "type": "uint256"},
            {"name": "executed", "type": "bool"},
        ],
    },
]


class ChainClient:
    """Async web3 client with proposal contract read support"""

    def __init__(self, rpc_url: Optional[str] = None, contract_address: Optional[str] = None):
        self.rpc_url = rpc_url or settings.evm_rpc_url
        self.contract_address = contract_address or settings.proposal_contract_address
        self._w3: Optional[AsyncWeb3] = None

    async def connect(self) -> None:
        """Create the web3 provider"""
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
            logger.info("Connected to EVM RPC", url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the provider session"""
        if self._w3 is not None:
            await self._w3.provider.disconnect()
            self._w3 = None
            logger.info("Disconnected from EVM RPC")

    @property
    def w3(self) -> AsyncWeb3:
        """Get the web3 instance, raise if not connected"""
        if self._w3 is None:
            raise RuntimeError("Chain client not connected. Call connect() first.")
        return self._w3

    def _contract(self, address: Optional[str] = None):
        return self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address or self.contract_address),
            abi=PROPOSAL_CONTRACT_ABI,
        )

    async def get_content_hash(self, proposal_id: int, contract_address: Optional[str] = None) -> str:
        """Read the content hash a proposal committed on-chain, as 0x-hex"""
        try:
            proposal = await self._contract(contract_address).functions.getProposal(proposal_id).call()
        except Exception as e:
            raise ChainReadError(f"getProposal({proposal_id}) failed: {e}") from e
        content_hash = proposal[2]
        return "0x" + bytes(content_hash).hex()


_chain_client: Optional[ChainClient] = None


async def get_chain_client() -> ChainClient:
    """Get or create the shared chain client"""
    global _chain_client
    if _chain_client is None:
        _chain_client = ChainClient()
        await _chain_client.connect()
    return _chain_client


async def close_chain_client() -> None:
    """Close the shared chain client"""
    global _chain_client
    if _chain_client is not None:
        await _chain_client.disconnect()
        _chain_client = None
