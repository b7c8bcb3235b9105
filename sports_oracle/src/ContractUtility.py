"""ContractUtility: Web3 initialization, oracle signer and contract ABI loading."""

import json
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.middleware import SignAndSendRawMiddlewareBuilder

DEFAULT_CONTRACT_NAME = "BettingPool"


class ContractUtility:
    """Utility for Web3 connection and contract ABI loading.

    :ivar network: Network RPC URL.
    :ivar w3: Configured Web3 instance, signing with the oracle key if given.
    :ivar account: Oracle account, or None for a read-only connection.
    """

    def __init__(
        self,
        network: str,
        private_key: str | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        """Initialize the contract utility.

        :param network: RPC URL, or "localhost" for a local development node.
        :param private_key: Hex private key of the oracle account.
        :param request_timeout: RPC request timeout in seconds.
        :raises ValueError: If the private key is invalid.
        """
        networks = {
            "localhost": "http://localhost:8545",
        }
        self.network = networks.get(network, network)

        self.w3 = Web3(
            Web3.HTTPProvider(self.network, request_kwargs={"timeout": request_timeout})
        )

        self.account: LocalAccount | None = None
        if private_key:
            account: LocalAccount = Account.from_key(private_key)
            self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
            self.w3.eth.default_account = account.address
            self.account = account

    @property
    def address(self) -> str | None:
        """Return the oracle account address, if any."""
        return self.account.address if self.account else None

    def load_contract(
        self, address: str, contract_name: str = DEFAULT_CONTRACT_NAME
    ) -> Contract:
        """Bind a deployed contract at the given address.

        :param address: Contract address (any checksum casing).
        :param contract_name: Name of the ABI file to use.
        :returns: Web3 contract instance.
        :raises ValueError: If the address is not a valid address.
        """
        if not Web3.is_address(address):
            raise ValueError(f"Invalid contract address: {address}")
        abi = ContractUtility.get_contract_abi(contract_name)
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    @staticmethod
    def get_contract_abi(contract_name: str) -> list:
        """Fetch the ABI of a contract from the contracts folder.

        :param contract_name: Name of the contract (e.g., "BettingPool").
        :returns: Contract ABI.
        """
        output_path = (
            Path(__file__).parent.parent.parent
            / "contracts"
            / "out"
            / f"{contract_name}.sol"
            / f"{contract_name}.json"
        ).resolve()

        with open(output_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
