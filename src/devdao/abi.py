"""Minimal ABI fragments for the membership NFT and DAO contracts.

Only the entry points the client calls are listed. The DAO's
`proposals` getter omits the per-proposal voter mapping, which
Solidity cannot return.
"""

NFT_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

DAO_ABI = [
    {
        "inputs": [],
        "name": "numProposals",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "proposals",
        "outputs": [
            {"internalType": "uint256", "name": "nftTokenId", "type": "uint256"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"},
            {"internalType": "uint256", "name": "yayVotes", "type": "uint256"},
            {"internalType": "uint256", "name": "nayVotes", "type": "uint256"},
            {"internalType": "bool", "name": "executed", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "_nftTokenId", "type": "uint256"}],
        "name": "createProposal",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "proposalIndex", "type": "uint256"},
            {"internalType": "enum CryptoDevsDAO.Vote", "name": "vote", "type": "uint8"},
        ],
        "name": "voteOnProposal",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "proposalIndex", "type": "uint256"}],
        "name": "executeProposal",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
