"""Tests for wallet send-error classification."""

from __future__ import annotations

import pytest

from tx_assist.adapters.errors import USER_REJECTED_CODE, classify_send_error, extract_message
from tx_assist.errors.tx_errors import (
    ProviderUnavailableError,
    RpcError,
    UnderpricedError,
    UserRejectionError,
)


class WalletError(Exception):
    """Wallet error carrying an EIP-1193 style ``code``."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


# ---------------------------------------------------------------------------
# extract_message
# ---------------------------------------------------------------------------


class TestExtractMessage:
    def test_plain_text(self) -> None:
        assert extract_message(RuntimeError("nope")) == "nope"

    def test_embedded_json(self) -> None:
        err = RuntimeError('Node error: {"code": -32000, "message": "transaction underpriced"}')
        assert extract_message(err) == "transaction underpriced"

    def test_nested_error_object(self) -> None:
        text = 'rpc {"jsonrpc": "2.0", "error": {"code": -32000, "message": "fee too low"}}'
        assert extract_message(text) == "fee too low"

    def test_malformed_json_falls_back(self) -> None:
        assert extract_message("bad {payload") == "bad {payload"
        assert extract_message("bad {not: json}") == "bad {not: json}"

    def test_assist_error_message_attribute(self) -> None:
        assert extract_message(RpcError("already known")) == "already known"


# ---------------------------------------------------------------------------
# classify_send_error
# ---------------------------------------------------------------------------


class TestClassifySendError:
    @pytest.mark.parametrize(
        "message",
        [
            "transaction underpriced",
            "replacement transaction UNDERPRICED",
            'Returned error: {"message": "transaction underpriced"}',
            "max fee per gas less than block base fee: fee too low",
        ],
    )
    def test_underpriced(self, message: str) -> None:
        classified = classify_send_error(RuntimeError(message))
        assert isinstance(classified, UnderpricedError)
        assert classified.event_code == "txUnderpriced"

    @pytest.mark.parametrize(
        "message",
        [
            "User denied transaction signature",
            "something unexpected",
            "",
        ],
    )
    def test_unrecognised_defaults_to_rejection(self, message: str) -> None:
        classified = classify_send_error(RuntimeError(message))
        assert isinstance(classified, UserRejectionError)
        assert classified.event_code == "txSendFail"
        assert classified.message == "User denied transaction signature"

    def test_user_rejected_code_wins(self) -> None:
        err = WalletError("underpriced, but the user said no", code=USER_REJECTED_CODE)
        assert isinstance(classify_send_error(err), UserRejectionError)

    def test_rpc_error_code_used(self) -> None:
        err = RpcError("transaction underpriced", rpc_code=-32000)
        assert isinstance(classify_send_error(err), UnderpricedError)
        rejected = RpcError("transaction underpriced", rpc_code=USER_REJECTED_CODE)
        assert isinstance(classify_send_error(rejected), UserRejectionError)

    def test_cause_preserved(self) -> None:
        original = RuntimeError("boom")
        assert classify_send_error(original).__cause__ is original

    @pytest.mark.parametrize(
        "error",
        [
            UnderpricedError(),
            UserRejectionError("custom"),
            ProviderUnavailableError("down", operation="eth_sendTransaction"),
        ],
    )
    def test_classified_errors_pass_through(self, error) -> None:
        assert classify_send_error(error) is error
