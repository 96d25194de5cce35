"""Classification of wallet/provider send errors.

The single place where a wallet's free-form error is turned into one of the
fatal error classes the dispatcher understands.
"""

from __future__ import annotations

import json
import re

from tx_assist.errors.assist_errors import AssistError
from tx_assist.errors.tx_errors import (
    ProviderUnavailableError,
    RpcError,
    UnderpricedError,
    UserRejectionError,
)

# EIP-1193 "User Rejected Request".
USER_REJECTED_CODE = 4001

_UNDERPRICED_MARKERS = ("underpriced", "fee too low")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_message(error: BaseException | str) -> str:
    """Pull the innermost human-readable message out of a wallet error.

    Wallets often wrap the node's JSON-RPC error object in their own text, e.g.
    ``'... rpc error with payload {"message": "transaction underpriced"}'``.
    """
    text = error if isinstance(error, str) else getattr(error, "message", None) or str(error)
    match = _JSON_OBJECT.search(text)
    if match:
        try:
            payload = json.loads(match.group(0))
        except ValueError:
            return text
        while isinstance(payload, dict):
            inner = payload.get("error", payload)
            if isinstance(inner, dict) and "message" in inner:
                return str(inner["message"])
            if inner is payload:
                break
            payload = inner
    return text


def classify_send_error(error: BaseException) -> AssistError:
    """Map an error raised by a send function onto the fatal taxonomy.

    Already-classified errors pass through. Unrecognised errors are treated
    as the user declining the signature.
    """
    if isinstance(error, (UnderpricedError, UserRejectionError, ProviderUnavailableError)):
        return error

    code = error.rpc_code if isinstance(error, RpcError) else getattr(error, "code", None)
    message = extract_message(error)

    classified: AssistError
    if code != USER_REJECTED_CODE and any(m in message.lower() for m in _UNDERPRICED_MARKERS):
        classified = UnderpricedError()
    else:
        classified = UserRejectionError()
    classified.__cause__ = error
    return classified
