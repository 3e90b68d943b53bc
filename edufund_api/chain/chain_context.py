"""
Cardano Chain Context

Blockfrost clients for the configured network: the raw ``BlockFrostApi`` used
for ledger queries and the PyCardano chain context used to build and submit
mint transactions.
"""

from blockfrost import ApiUrls, BlockFrostApi
import pycardano as pc


# network name -> (Blockfrost base URL, PyCardano network)
NETWORKS = {
    "testnet": (ApiUrls.preprod.value, pc.Network.TESTNET),
    "mainnet": (ApiUrls.mainnet.value, pc.Network.MAINNET),
}


class CardanoChainContext:
    """Blockfrost connection for one Cardano network"""

    def __init__(self, network: str = "testnet", blockfrost_project_id: str | None = None):
        """
        Args:
            network: "testnet" (preprod) or "mainnet"
            blockfrost_project_id: Blockfrost project ID for that network

        Raises:
            ValueError: Unknown network or missing project ID
        """
        if network not in NETWORKS:
            raise ValueError(f"Unsupported network '{network}', expected one of {sorted(NETWORKS)}")
        if not blockfrost_project_id:
            raise ValueError("BlockFrost project ID required for chain context")

        self.network = network
        self.base_url, self.cardano_network = NETWORKS[network]

        self.api = BlockFrostApi(project_id=blockfrost_project_id, base_url=self.base_url)
        self.context = pc.BlockFrostChainContext(project_id=blockfrost_project_id, base_url=self.base_url)

    def get_context(self) -> pc.ChainContext:
        """Get the PyCardano chain context"""
        return self.context

    def get_api(self) -> BlockFrostApi:
        """Get the BlockFrost API instance"""
        return self.api
