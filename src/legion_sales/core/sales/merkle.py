import hashlib
from typing import List, Sequence, Tuple

Leaf = Tuple[str, int]


def hash_leaf(investor: str, amount: int) -> str:
    """
    Hash an (investor, amount) leaf.

    Leaves are double hashed so a leaf can never be confused with an
    internal node of the same tree.
    """
    address = investor.lower().removeprefix("0x")
    if len(address) != 40 or amount < 0:
        raise ValueError(f"Invalid leaf: ({investor}, {amount})")
    encoded = bytes.fromhex(address).rjust(32, b"\x00") + amount.to_bytes(32, "big")
    return hashlib.sha256(hashlib.sha256(encoded).digest()).hexdigest()


def hash_pair(hash1: str, hash2: str) -> str:
    # Sort hashes so proofs do not need to carry sibling positions
    if hash1 > hash2:
        hash1, hash2 = hash2, hash1
    return hashlib.sha256(bytes.fromhex(hash1) + bytes.fromhex(hash2)).hexdigest()


def process_proof(leaf_hash: str, proof: Sequence[str]) -> str:
    computed = leaf_hash
    for sibling_hash in proof:
        computed = hash_pair(computed, sibling_hash)
    return computed


def verify_merkle_proof(root: str, investor: str, amount: int, proof: Sequence[str]) -> bool:
    try:
        return process_proof(hash_leaf(investor, amount), proof) == root
    except (ValueError, OverflowError):
        return False


class MerkleTree:
    """Off-chain builder for accepted-capital and claim-tokens roots."""

    def __init__(self, leaves: Sequence[Leaf]):
        if not leaves:
            raise ValueError("Merkle tree requires at least one leaf.")
        self.original_leaves = [(investor.lower(), amount) for investor, amount in leaves]
        self.data_leaves = [hash_leaf(investor, amount) for investor, amount in self.original_leaves]
        self.tree = self._build_tree(self.data_leaves)
        self.root = self.tree[-1][0]

    def _build_tree(self, leaves: List[str]) -> List[List[str]]:
        tree = [leaves]
        current_level = leaves
        while len(current_level) > 1:
            next_level = []
            for i in range(0, len(current_level), 2):
                hash1 = current_level[i]
                # Duplicate last hash if odd number
                hash2 = current_level[i + 1] if i + 1 < len(current_level) else hash1
                next_level.append(hash_pair(hash1, hash2))
            tree.append(next_level)
            current_level = next_level
        return tree

    def get_root(self) -> str:
        return self.root

    def generate_proof(self, investor: str, amount: int) -> List[str]:
        leaf_hash = hash_leaf(investor, amount)
        if leaf_hash not in self.data_leaves:
            raise ValueError("Leaf not found in the Merkle tree.")

        proof = []
        index = self.data_leaves.index(leaf_hash)

        for level in self.tree[:-1]:
            sibling_index = index + 1 if index % 2 == 0 else index - 1
            proof.append(level[sibling_index] if sibling_index < len(level) else level[index])
            index //= 2

        return proof
