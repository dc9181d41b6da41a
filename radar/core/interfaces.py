# radar/core/interfaces.py
# Purpose: token standard ABIs, ERC-165 interface ids, and the selector /
# event-topic hex used for bytecode matching and log filtering.

from typing import Dict, List

from web3 import Web3

from radar.core.types import TokenInterface

INTERFACE_ID_BY_TYPE: Dict[TokenInterface, str] = {
    TokenInterface.ERC20Detailed: "0x36372b07",
    TokenInterface.ERC721Metadata: "0x5b5e139f",
    TokenInterface.ERC1155: "0xd9b67a26",
}

# ERC-165 check order doubles as the multi-match tie-break
ERC165_PRIORITY: List[TokenInterface] = [
    TokenInterface.ERC20Detailed,
    TokenInterface.ERC721Metadata,
    TokenInterface.ERC1155,
]

ERC165_ABI = [{
    "name": "supportsInterface",
    "type": "function",
    "stateMutability": "view",
    "inputs": [{"name": "interfaceId", "type": "bytes4"}],
    "outputs": [{"name": "", "type": "bool"}],
}]

ERC20_ABI = [
    {"name": "balanceOf", "outputs": [{"type": "uint256", "name": ""}],
     "inputs": [{"type": "address", "name": "owner"}], "stateMutability": "view", "type": "function"},
    {"name": "totalSupply", "outputs": [{"type": "uint256", "name": ""}],
     "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "allowance", "outputs": [{"type": "uint256", "name": ""}],
     "inputs": [{"type": "address", "name": "owner"}, {"type": "address", "name": "spender"}],
     "stateMutability": "view", "type": "function"},
    {"name": "symbol", "outputs": [{"type": "string", "name": ""}],
     "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "name", "outputs": [{"type": "string", "name": ""}],
     "inputs": [], "stateMutability": "view", "type": "function"},
]

# Legacy tokens (MKR, SAI, ...) return bytes32 from symbol()/name()
ERC20_BYTES32_ABI = [
    {"name": "symbol", "outputs": [{"type": "bytes32", "name": ""}],
     "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "name", "outputs": [{"type": "bytes32", "name": ""}],
     "inputs": [], "stateMutability": "view", "type": "function"},
]

TRANSFER_EVENT = "Transfer(address,address,uint256)"
APPROVAL_EVENT = "Approval(address,address,uint256)"
APPROVAL_FOR_ALL_EVENT = "ApprovalForAll(address,address,bool)"
TRANSFER_SINGLE_EVENT = "TransferSingle(address,address,address,uint256,uint256)"
TRANSFER_BATCH_EVENT = "TransferBatch(address,address,address,uint256[],uint256[])"
URI_EVENT = "URI(string,uint256)"

SYMBOL_FN = "symbol()"
NAME_FN = "name()"

# https://eips.ethereum.org/EIPS/eip-20
ERC20_FUNCTIONS = [
    "balanceOf(address)",
    "allowance(address,address)",
    "approve(address,uint256)",
    "transfer(address,uint256)",
    "transferFrom(address,address,uint256)",
    "totalSupply()",
]
ERC20_EVENTS = [TRANSFER_EVENT, APPROVAL_EVENT]

# https://eips.ethereum.org/EIPS/eip-721
# safeTransferFrom is overloaded and left out
ERC721_FUNCTIONS = [
    "balanceOf(address)",
    "ownerOf(uint256)",
    "transferFrom(address,address,uint256)",
    "approve(address,uint256)",
    "setApprovalForAll(address,bool)",
    "getApproved(uint256)",
    "isApprovedForAll(address,address)",
]
ERC721_EVENTS = [TRANSFER_EVENT, APPROVAL_EVENT, APPROVAL_FOR_ALL_EVENT]

# https://eips.ethereum.org/EIPS/eip-1155
# balanceOf(address,uint256) is often missing from the runtime code, so it is not required
ERC1155_FUNCTIONS = [
    "safeTransferFrom(address,address,uint256,uint256,bytes)",
    "safeBatchTransferFrom(address,address,uint256[],uint256[],bytes)",
    "balanceOfBatch(address[],uint256[])",
    "setApprovalForAll(address,bool)",
    "isApprovedForAll(address,address)",
]
ERC1155_EVENTS = [TRANSFER_SINGLE_EVENT, TRANSFER_BATCH_EVENT, APPROVAL_FOR_ALL_EVENT]

# EIP-1967 implementation slot: keccak256('eip1967.proxy.implementation') - 1
EIP1967_IMPL_SLOT = int(
    "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc", 16
)


def _keccak_hex(text: str) -> str:
    return bytes(Web3.keccak(text=text)).hex()


def selector_hex(signature: str) -> str:
    """4-byte selector as 8 lower-case hex chars, no 0x."""
    return _keccak_hex(signature)[:8]


def topic_hex(signature: str) -> str:
    """32-byte event topic as 64 lower-case hex chars, no 0x."""
    return _keccak_hex(signature)


def event_topic(signature: str) -> str:
    return "0x" + topic_hex(signature)


# topic -> event name, for the events that mark a contract as token-shaped.
# ERC-20 and ERC-721 share the Transfer/Approval topics.
TOKEN_EVENT_NAMES_BY_TOPIC: Dict[str, str] = {
    event_topic(TRANSFER_EVENT): "Transfer",
    event_topic(APPROVAL_EVENT): "Approval",
    event_topic(APPROVAL_FOR_ALL_EVENT): "ApprovalForAll",
    event_topic(TRANSFER_SINGLE_EVENT): "TransferSingle",
    event_topic(TRANSFER_BATCH_EVENT): "TransferBatch",
    event_topic(URI_EVENT): "URI",
}
