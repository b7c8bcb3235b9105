"""Unit tests for SettlementSubmitter and ContractUtility."""

from unittest.mock import MagicMock, PropertyMock

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from sports_oracle.src.ContractUtility import ContractUtility
from sports_oracle.src.MatchResult import Winner
from sports_oracle.src.ResultValidator import ConsensusOutcome
from sports_oracle.src.SettlementSubmitter import (
    FailureKind,
    SettlementSubmitter,
    SubmissionFailed,
    SubmissionReceipt,
)

TX_HASH = bytes.fromhex("ab" * 32)
ORACLE_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


def _outcome(match_id: int = 42, home: int = 2, away: int = 1) -> ConsensusOutcome:
    return ConsensusOutcome(
        match_id=match_id,
        home_score=home,
        away_score=away,
        winner=Winner.HOME_WIN if home > away else Winner.AWAY_WIN if away > home else Winner.DRAW,
        agreement_count=2,
        chosen_source="football_data",
        sources=("football_data", "api_football"),
    )


def _submitter(**kwargs):
    """Build a submitter over mocked web3 objects that succeed by default."""
    w3 = MagicMock()
    w3.eth.default_account = ORACLE_ADDRESS
    w3.eth.send_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 100}

    contract = MagicMock()
    call = contract.functions.proposeResult.return_value
    call.build_transaction.return_value = {"to": "0xpool", "data": "0x"}

    kwargs.setdefault("poll_interval", 0)
    submitter = SettlementSubmitter(w3, contract, gas_price_fn=lambda: 7, **kwargs)
    return submitter, w3, contract


class TestSubmitterInit:
    """Test SettlementSubmitter initialization."""

    def test_defaults(self) -> None:
        submitter = SettlementSubmitter(MagicMock(), MagicMock())
        assert submitter.confirmations == 1
        assert submitter.receipt_timeout == 120.0

    def test_invalid_confirmations(self) -> None:
        with pytest.raises(ValueError, match="confirmations must be at least 1"):
            SettlementSubmitter(MagicMock(), MagicMock(), confirmations=0)


class TestSubmit:
    """Test the result report lifecycle."""

    @pytest.mark.asyncio
    async def test_confirmed(self) -> None:
        """A mined successful transaction yields a confirmed receipt."""
        submitter, w3, contract = _submitter()

        receipt = await submitter.submit(_outcome())

        assert receipt == SubmissionReceipt(
            match_id=42,
            transaction_id="0x" + "ab" * 32,
            confirmed=True,
            block_number=100,
        )
        contract.functions.proposeResult.assert_called_once_with(42, 1, 2, 1)
        call = contract.functions.proposeResult.return_value
        call.build_transaction.assert_called_once_with({"gasPrice": 7, "from": ORACLE_ADDRESS})
        w3.eth.send_transaction.assert_called_once_with({"to": "0xpool", "data": "0x"})

    @pytest.mark.asyncio
    async def test_winner_codes(self) -> None:
        """Away wins and draws are sent with their contract codes."""
        submitter, _, contract = _submitter()

        await submitter.submit(_outcome(match_id=1, home=0, away=2))
        await submitter.submit(_outcome(match_id=2, home=1, away=1))

        assert [c.args for c in contract.functions.proposeResult.call_args_list] == [
            (1, 2, 0, 2),
            (2, 3, 1, 1),
        ]

    @pytest.mark.asyncio
    async def test_explicit_sender(self) -> None:
        submitter, _, contract = _submitter(sender="0x000000000000000000000000000000000000dEaD")
        await submitter.submit(_outcome())

        call = contract.functions.proposeResult.return_value
        tx_defaults = call.build_transaction.call_args.args[0]
        assert tx_defaults["from"] == "0x000000000000000000000000000000000000dEaD"

    @pytest.mark.asyncio
    async def test_revert_in_estimation_is_rejected(self) -> None:
        """A revert during gas estimation is a rejection and nothing is sent."""
        submitter, w3, contract = _submitter()
        call = contract.functions.proposeResult.return_value
        call.build_transaction.side_effect = ContractLogicError(
            "execution reverted: result already finalized"
        )

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        error = exc_info.value
        assert error.kind is FailureKind.REJECTED
        assert error.rejected and not error.transient
        assert error.already_finalized
        assert error.transaction_id is None
        w3.eth.send_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_unauthorized_is_rejected(self) -> None:
        submitter, _, contract = _submitter()
        call = contract.functions.proposeResult.return_value
        call.build_transaction.side_effect = ContractLogicError("execution reverted: not oracle")

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.rejected
        assert not exc_info.value.already_finalized

    @pytest.mark.asyncio
    async def test_node_unreachable_is_transient(self) -> None:
        submitter, w3, _ = _submitter()
        w3.eth.send_transaction.side_effect = OSError("connection refused")

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.kind is FailureKind.TRANSIENT
        assert "could not be sent" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_build_web3_error_is_transient(self) -> None:
        submitter, _, contract = _submitter()
        call = contract.functions.proposeResult.return_value
        call.build_transaction.side_effect = Web3Exception("nonce too low")

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_receipt_timeout_is_transient(self) -> None:
        """A missing receipt is transient and carries the transaction id."""
        submitter, w3, _ = _submitter()
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.transient
        assert exc_info.value.transaction_id == "0x" + "ab" * 32

    @pytest.mark.asyncio
    async def test_reverted_on_chain_is_rejected(self) -> None:
        submitter, w3, _ = _submitter()
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 100}

        with pytest.raises(SubmissionFailed) as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.rejected
        assert exc_info.value.transaction_id == "0x" + "ab" * 32
        assert str(exc_info.value).startswith("match 42: rejected:")


class TestConfirmationDepth:
    """Test waiting for confirmation depth."""

    @pytest.mark.asyncio
    async def test_waits_for_depth(self) -> None:
        submitter, w3, _ = _submitter(confirmations=3)
        block_number = PropertyMock(side_effect=[100, 101, 102])
        type(w3.eth).block_number = block_number

        receipt = await submitter.submit(_outcome())

        assert receipt.confirmed
        assert block_number.call_count == 3

    @pytest.mark.asyncio
    async def test_depth_not_reached_is_transient(self) -> None:
        submitter, w3, _ = _submitter(confirmations=5, receipt_timeout=0)
        type(w3.eth).block_number = PropertyMock(return_value=100)

        with pytest.raises(SubmissionFailed, match="confirmations not reached") as exc_info:
            await submitter.submit(_outcome())

        assert exc_info.value.transient


class TestCreateGameAndEvents:
    """Test game creation and event reads."""

    @pytest.mark.asyncio
    async def test_create_game(self, make_result) -> None:
        submitter, _, contract = _submitter()
        call = contract.functions.createGame.return_value
        call.build_transaction.return_value = {"data": "0x"}
        match = make_result("football_data", 0, 0)

        receipt = await submitter.create_game(match)

        assert receipt.confirmed
        contract.functions.createGame.assert_called_once_with(
            42, "Arsenal", "Chelsea", 1714590000
        )

    @pytest.mark.asyncio
    async def test_fetch_recorded_results(self) -> None:
        submitter, _, contract = _submitter()
        contract.events.GameResultSet.get_logs.return_value = [
            {"args": {"gameId": 42, "result": 1}},
            {"args": {"gameId": 7, "result": 3}},
        ]

        recorded = await submitter.fetch_recorded_results(from_block=1200)

        assert recorded == {7, 42}
        contract.events.GameResultSet.get_logs.assert_called_once_with(from_block=1200)


class TestContractUtility:
    """Test web3 setup and ABI loading."""

    def test_contract_abi(self) -> None:
        abi = ContractUtility.get_contract_abi("BettingPool")
        names = {entry.get("name") for entry in abi}
        assert {"proposeResult", "createGame", "GameResultSet"} <= names

    def test_signer(self) -> None:
        utility = ContractUtility("localhost", private_key=TEST_PRIVATE_KEY)
        assert utility.network == "http://localhost:8545"
        assert utility.address == ORACLE_ADDRESS
        assert utility.w3.eth.default_account == utility.address

    def test_read_only(self) -> None:
        utility = ContractUtility("http://node:8545")
        assert utility.address is None

    def test_load_contract(self) -> None:
        utility = ContractUtility("localhost")
        contract = utility.load_contract("0x5fbdb2315678afecb367f032d93f642f64180aa3")
        assert contract.address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert hasattr(contract.functions, "proposeResult")

    def test_load_contract_invalid_address(self) -> None:
        with pytest.raises(ValueError, match="Invalid contract address"):
            ContractUtility("localhost").load_contract("not-an-address")
