"""
Unit tests for the interaction executor flows: write, dry runs and read.
"""

import json

import pytest

from permaweave.core.exceptions import (
    ConfigurationError,
    InteractionRejectedError,
    InvalidInputError,
    NetworkError,
)
from permaweave.core.ledger import BlockInfo
from permaweave.contracts.interact import InteractionExecutor, SubmissionResult
from permaweave.contracts.interaction_tx import create_interaction_tx
from permaweave.contracts.loader import ContractLoader, load_contract
from permaweave.contracts.replay import active_tx_from_mined, interaction_from_tx, replay_interactions

INPUT_SHAPE_SOURCE = '''
def handle(state, action):
    payload = action["input"]
    return {"state": {"keys": sorted(payload["m"].keys()), "is_tuple": isinstance(payload["v"], tuple)}}
'''


@pytest.fixture
def executor(ledger, state_provider):
    return InteractionExecutor(ledger, state_provider=state_provider)


class TestWriteDryRun:
    """Dry runs evaluate without committing"""

    def test_counter_scenario(self, executor, ledger, wallet, counter_contract):
        initial = {"counter": 0}

        first = executor.write_dry_run(wallet, counter_contract, {"amount": 3}, state=initial)
        second = executor.write_dry_run(wallet, counter_contract, {"amount": 3}, state=initial)

        assert first.type == "ok"
        assert first.state["counter"] == 3
        assert second.state["counter"] == 3
        assert initial == {"counter": 0}

    def test_never_posts(self, executor, ledger, wallet, counter_contract):
        executor.write_dry_run(wallet, counter_contract, {"amount": 3}, state={"counter": 0})
        assert "post_transaction" not in ledger.call_names()
        assert ledger.posted == []

    def test_caller_defaults_to_wallet_address(self, executor, wallet, counter_contract):
        result = executor.write_dry_run(wallet, counter_contract, {"amount": 1}, state={"counter": 0})
        assert result.state["last_caller"] == wallet.address

    def test_explicit_caller(self, executor, wallet, counter_contract):
        result = executor.write_dry_run(
            wallet, counter_contract, {"amount": 1}, state={"counter": 0}, caller="someone-else"
        )
        assert result.state["last_caller"] == "someone-else"

    def test_active_transaction_matches_built_tx(self, executor, ledger, wallet, echo_contract):
        result = executor.write_dry_run(
            wallet, echo_contract, {"function": "transfer", "qty": 5}, state={},
            target="recipient", quantity="40",
        ).result

        assert result["owner"] == wallet.address
        assert result["caller"] == wallet.address
        assert result["target"] == "recipient"
        assert result["quantity"] == "40"
        assert result["reward"] == "1000"
        assert json.loads(result["input_tag"]) == {"function": "transfer", "qty": 5}
        assert result["height"] == ledger.network.height
        assert result["block"] == ledger.network.current
        assert result["timestamp"] is None
        assert result["contract"] == echo_contract

    def test_rejection_is_error_result(self, executor, wallet, counter_contract):
        result = executor.write_dry_run(wallet, counter_contract, {"amount": -1}, state={"counter": 5})
        assert result.type == "error"
        assert result.result == "amount must not be negative"
        assert result.state == {"counter": 5}

    def test_state_from_provider(self, executor, state_provider, wallet, counter_contract):
        state_provider.states[counter_contract] = {"counter": 10}
        result = executor.write_dry_run(wallet, counter_contract, {"amount": 1})
        assert result.state["counter"] == 11
        assert state_provider.requested == [counter_contract]

    def test_no_state_and_no_provider(self, ledger, wallet, counter_contract):
        with pytest.raises(ConfigurationError):
            InteractionExecutor(ledger).write_dry_run(wallet, counter_contract, {"amount": 1})

    def test_given_record_skips_loading(self, executor, ledger, wallet, counter_contract):
        record = ContractLoader(ledger, cache_enabled=False).load(counter_contract)
        ledger.calls.clear()
        executor.write_dry_run(wallet, counter_contract, {"amount": 1}, state={"counter": 0}, record=record)
        assert ("get_transaction", counter_contract) not in ledger.calls

    def test_contract_loaded_once(self, ledger, wallet, counter_contract):
        executor = InteractionExecutor(ledger, loader=ContractLoader(ledger, cache_enabled=True))
        for _ in range(3):
            executor.write_dry_run(wallet, counter_contract, {"amount": 1}, state={"counter": 0})
        assert ledger.calls.count(("get_transaction", counter_contract)) == 1

    @pytest.mark.parametrize("value", [None, ""])
    def test_falsy_input(self, executor, ledger, wallet, counter_contract, value):
        with pytest.raises(InvalidInputError):
            executor.write_dry_run(wallet, counter_contract, value, state={"counter": 0})
        assert ledger.calls == []


class TestWriteDryRunCustom:
    """Dry runs against a caller-built transaction"""

    def test_uses_given_transaction_and_caller(self, executor, ledger, wallet, echo_contract):
        tx = create_interaction_tx(ledger, wallet, echo_contract, {"x": 1})
        ledger.calls.clear()

        result = executor.write_dry_run_custom(tx, echo_contract, {"x": 1}, "custom-caller", state={})

        assert result.result["id"] == tx.id
        assert result.result["owner"] == "custom-caller"
        assert result.result["caller"] == "custom-caller"
        assert "create_transaction" not in ledger.call_names()
        assert "post_transaction" not in ledger.call_names()

    def test_counter(self, executor, ledger, wallet, counter_contract):
        tx = create_interaction_tx(ledger, wallet, counter_contract, {"amount": 3})
        result = executor.write_dry_run_custom(tx, counter_contract, {"amount": 3}, "c", state={"counter": 0})
        assert result.state == {"counter": 3, "last_caller": "c"}


class TestDryRunMatchesReplay:
    """Dry runs hand the handler what a replay of the committed tx would"""

    INPUT = {"m": {1: "a"}, "v": (1, 2)}

    def replay(self, ledger, contract_id, tx, caller):
        environment = load_contract(ledger, contract_id).environment
        active_tx = active_tx_from_mined(tx, BlockInfo(height=1, indep_hash="block-1"), owner=caller)
        state, _ = replay_interactions(environment, {}, [(active_tx, interaction_from_tx(tx, caller))])
        return state

    def test_write_dry_run(self, executor, ledger, wallet, deploy):
        contract_id = deploy(INPUT_SHAPE_SOURCE, state="{}")

        dry_run = executor.write_dry_run(wallet, contract_id, self.INPUT, state={})
        tx = create_interaction_tx(ledger, wallet, contract_id, self.INPUT)

        assert dry_run.state == self.replay(ledger, contract_id, tx, wallet.address)
        assert dry_run.state == {"keys": ["1"], "is_tuple": False}

    def test_write_dry_run_custom(self, executor, ledger, wallet, deploy):
        contract_id = deploy(INPUT_SHAPE_SOURCE, state="{}")
        tx = create_interaction_tx(ledger, wallet, contract_id, self.INPUT)

        dry_run = executor.write_dry_run_custom(tx, contract_id, self.INPUT, wallet.address, state={})

        assert dry_run.state == self.replay(ledger, contract_id, tx, wallet.address)

    def test_custom_rejects_unserializable_input(self, executor, ledger, echo_contract):
        tx = create_interaction_tx(ledger, None, echo_contract, {"x": 1}, sign=False)
        ledger.calls.clear()
        with pytest.raises(InvalidInputError):
            executor.write_dry_run_custom(tx, echo_contract, {"x": object()}, "c", state={})
        assert ledger.calls == []


class TestWrite:
    """Submitting interactions"""

    def test_success(self, executor, ledger, wallet):
        result = executor.write(wallet, "contract-1", {"amount": 3})

        assert isinstance(result, SubmissionResult)
        assert result.success
        assert result
        assert result.status == 200
        assert len(ledger.posted) == 1
        assert result.transaction_id == ledger.posted[0].id
        assert ledger.posted[0].get_tag("Contract") == "contract-1"

    def test_does_not_load_contract(self, executor, ledger, wallet):
        executor.write(wallet, "not-on-ledger", {"amount": 3})
        assert "get_transaction" not in ledger.call_names()

    def test_already_known_counts_as_success(self, executor, ledger, wallet):
        ledger.post_status = 208
        assert executor.write(wallet, "contract-1", {"amount": 3}).success

    def test_rejected_submission(self, executor, ledger, wallet, caplog):
        ledger.post_status = 400
        with caplog.at_level("WARNING"):
            result = executor.write(wallet, "contract-1", {"amount": 3})

        assert not result.success
        assert not result
        assert result.status == 400
        assert "400" in result.reason
        assert result.transaction_id
        assert any(getattr(r, "event", None) == "interaction.submit_failed" for r in caplog.records)

    def test_unreachable_gateway(self, executor, ledger, wallet):
        ledger.post_error = NetworkError("connection refused")
        result = executor.write(wallet, "contract-1", {"amount": 3})
        assert not result.success
        assert result.status is None
        assert "connection refused" in result.reason

    def test_falsy_input(self, executor, ledger, wallet):
        with pytest.raises(InvalidInputError):
            executor.write(wallet, "contract-1", None)
        assert ledger.calls == []


class TestRead:
    """Read-only interactions"""

    def test_returns_result(self, executor, wallet, counter_contract):
        assert executor.read(wallet, counter_contract, {"function": "get"}, state={"counter": 7}) == 7

    def test_without_wallet(self, executor, ledger, echo_contract):
        result = executor.read(None, echo_contract, {"function": "get"}, state={})
        assert result["caller"] == ""
        assert result["id"]
        assert "sign" not in ledger.call_names()
        assert "get_address" not in ledger.call_names()

    def test_never_posts(self, executor, ledger, wallet, counter_contract):
        executor.read(wallet, counter_contract, {"function": "get"}, state={"counter": 7})
        assert ledger.posted == []

    def test_rejection_raises(self, executor, wallet, counter_contract):
        with pytest.raises(InteractionRejectedError) as exc_info:
            executor.read(wallet, counter_contract, {"amount": -1}, state={"counter": 0})
        assert exc_info.value.result.type == "error"
        assert exc_info.value.result.result == "amount must not be negative"

    def test_state_from_provider(self, executor, state_provider, wallet, counter_contract):
        state_provider.states[counter_contract] = {"counter": 42}
        assert executor.read(wallet, counter_contract, {"function": "get"}) == 42
