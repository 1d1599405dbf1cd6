"""
Helius API constants.
"""

WEBHOOKS_PATH = "/v0/webhooks"

# Enhanced webhooks deliver parsed transactions
WEBHOOK_TYPE_ENHANCED = "enhanced"

DEFAULT_TRANSACTION_TYPES = ["ANY"]

# Transaction types subscribed per data category when the job
# does not list its own
CATEGORY_TRANSACTION_TYPES: dict[str, list[str]] = {
    "transactions": ["ANY"],
    "nft_events": ["NFT_MINT", "NFT_SALE", "NFT_LISTING", "NFT_BID", "NFT_BID_CANCELLED"],
    "token_transfers": ["TRANSFER", "SWAP"],
}
