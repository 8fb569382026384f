"""
Interaction transaction builder.

An interaction is an ordinary ledger transaction whose tags name the contract
and carry the JSON input. Readers replaying the contract find interactions by
these tags, so the tag set and the ``Input`` encoding must not vary between
writers.
"""

from __future__ import annotations

import logging
import math
import secrets
from decimal import Decimal
from typing import Any, Iterable, Mapping, Tuple, Union

from permaweave.core.constants import (
    APP_NAME,
    APP_VERSION,
    INTERACTION_NONCE_DIGITS,
    TAG_APP_NAME,
    TAG_APP_VERSION,
    TAG_CONTRACT,
    TAG_INPUT,
)
from permaweave.core.encoding import compact_json
from permaweave.core.exceptions import InvalidInputError
from permaweave.core.ledger import LedgerClient, TransactionOptions
from permaweave.core.tags import Tag
from permaweave.core.transaction import Transaction
from permaweave.core.units import is_positive_quantity, parse_winston

logger = logging.getLogger(__name__)

TagLike = Union[Tag, Mapping[str, Any], Tuple[str, str]]


def is_truthy_input(value: Any) -> bool:
    """Truthiness of a JSON value.

    ``None``, ``False``, zero, NaN and the empty string are falsy. Every
    object and array is truthy, including empty ones.
    """
    if value is None or value is False:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, float):
        return not math.isnan(value) and value != 0
    if isinstance(value, Decimal):
        return not value.is_nan() and value != 0
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return True


def _tag_pair(tag: TagLike) -> Tuple[str, str]:
    if isinstance(tag, Tag):
        return tag.name, tag.value
    if isinstance(tag, Mapping):
        return str(tag["name"]), str(tag["value"])
    name, value = tag
    return str(name), str(value)


def _nonce() -> str:
    return f"{secrets.randbelow(10 ** INTERACTION_NONCE_DIGITS):0{INTERACTION_NONCE_DIGITS}d}"


def encode_input(contract_id: str, input: Any) -> str:
    """Encode an interaction input as its ``Input`` tag value.

    Raises:
        InvalidInputError: If ``input`` is falsy or not JSON serializable
    """
    if not is_truthy_input(input):
        raise InvalidInputError(
            f"Input should be a truthy value: {input!r}",
            details={"contract_id": contract_id},
        )
    try:
        return compact_json(input)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(
            f"Input is not JSON serializable: {e}",
            details={"contract_id": contract_id},
        ) from e


def create_interaction_tx(
    ledger: LedgerClient,
    wallet: Any,
    contract_id: str,
    input: Any,
    tags: Iterable[TagLike] = (),
    target: str = "",
    quantity: str = "",
    sign: bool = True,
) -> Transaction:
    """Build (and by default sign) an interaction transaction.

    Args:
        ledger: Ledger client used to create and sign the transaction
        wallet: Signing wallet; may be None when ``sign`` is False
        contract_id: Contract the interaction is addressed to
        input: Interaction input, any truthy JSON value
        tags: Extra tags, emitted before the protocol tags
        target: Recipient of a value transfer
        quantity: Winston sent to ``target``; ignored without a target
        sign: Sign through the ledger client; otherwise assign a provisional id

    Raises:
        InvalidInputError: If ``input`` is falsy or not JSON serializable
    """
    encoded_input = encode_input(contract_id, input)

    options = TransactionOptions(data=_nonce())
    if target:
        options.target = str(target)
        if is_positive_quantity(quantity):
            options.quantity = str(parse_winston(quantity))

    tx = ledger.create_transaction(options, wallet)

    for tag in tags or ():
        tx.add_tag(*_tag_pair(tag))
    tx.add_tag(TAG_APP_NAME, APP_NAME)
    tx.add_tag(TAG_APP_VERSION, APP_VERSION)
    tx.add_tag(TAG_CONTRACT, contract_id)
    tx.add_tag(TAG_INPUT, encoded_input)

    if sign:
        ledger.sign(tx, wallet)
    else:
        tx.assign_provisional_id()

    logger.debug(
        f"Interaction tx {tx.id} built for contract {contract_id}",
        extra={
            "event": "interaction.tx_built",
            "contract_id": contract_id,
            "tx_id": tx.id,
            "signed": sign,
            "target": tx.target or None,
        },
    )
    return tx
