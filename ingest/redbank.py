# ingest/redbank.py
"""
Smart-query client for the Red Bank lending contract.

A smart query is a read-only JSON message, base64 encoded into the URL path of
the chain's REST endpoint:

    GET {rest}/cosmwasm/wasm/v1/contract/{contract}/smart/{base64(query)}

The response is {"data": [{"amount": "<u128>", "denom": "<denom>"}, ...]}.

Only the envelope can fail a fetch (transport error, non-2xx, body that isn't
JSON). Individual items are decoded leniently: an amount that doesn't parse as
an unsigned 128-bit integer becomes 0 so one bad entry can't hide the rest of
the account's positions.
"""
import base64
import json
import logging
import re
from typing import Any, Optional, Tuple

import requests

from collateral.errors import InvalidResponse, RequestFailed, TransportError
from collateral.models import U128_MAX, PositionSet, QueryKind, TokenAmount

_U128_TEXT = re.compile(r"\+?[0-9]+")
_U128_DIGITS = len(str(U128_MAX))

# stands in for a missing denom so the amount still counts toward the totals
UNKNOWN_DENOM = "unknown"


def encode_query(kind: QueryKind, user_address: str) -> str:
    query = {kind.value: {"user": user_address}}
    compact = json.dumps(query, separators=(",", ":"))
    return base64.urlsafe_b64encode(compact.encode()).decode()


def build_query_url(rest_endpoint: str, contract: str, kind: QueryKind, user_address: str) -> str:
    return (
        f"{rest_endpoint.rstrip('/')}/cosmwasm/wasm/v1/contract/{contract}"
        f"/smart/{encode_query(kind, user_address)}"
    )


def parse_amount(raw: Any) -> int:
    """u128 text -> int; anything else (missing, negative, too big, junk) -> 0."""
    if not isinstance(raw, str) or not _U128_TEXT.fullmatch(raw):
        logging.warning(f"unparsable amount {raw!r}, defaulting to 0")
        return 0
    digits = raw.lstrip("+").lstrip("0") or "0"
    # at most 39 significant digits ever reach int()
    if len(digits) > _U128_DIGITS or int(digits) > U128_MAX:
        logging.warning(f"amount {raw[:48]!r} overflows u128, defaulting to 0")
        return 0
    return int(digits)


def decode_positions(body: Any) -> PositionSet:
    if not isinstance(body, dict):
        raise InvalidResponse(f"expected a JSON object, got {type(body).__name__}")

    data = body.get("data")
    if not isinstance(data, list):
        return []

    positions: PositionSet = []
    for item in data:
        if not isinstance(item, dict):
            logging.warning(f"skipping non-object position entry {item!r}")
            continue
        denom = item.get("denom")
        if not isinstance(denom, str) or not denom:
            logging.warning(f"position entry without denom, keeping it as {UNKNOWN_DENOM!r}: {item!r}")
            denom = UNKNOWN_DENOM
        positions.append(TokenAmount(denom=denom, amount=parse_amount(item.get("amount"))))
    return positions


class RedBankClient:
    def __init__(
        self,
        rest_endpoint: str,
        contract: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.rest_endpoint = rest_endpoint
        self.contract = contract
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "RedBankClient":
        return cls(
            settings.rest_endpoint,
            settings.contract_address,
            session=session,
            timeout=settings.request_timeout,
        )

    def fetch_positions(self, user_address: str, kind: QueryKind) -> PositionSet:
        url = build_query_url(self.rest_endpoint, self.contract, kind, user_address)
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{kind.value} query failed: {e}") from e

        if not resp.ok:
            raise RequestFailed(resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise InvalidResponse(f"{kind.value} response is not JSON: {e}") from e
        return decode_positions(body)

    def get_user_financials(self, user_address: str) -> Tuple[PositionSet, PositionSet]:
        # strictly sequential: debts first, then collaterals
        debts = self.fetch_positions(user_address, QueryKind.DEBTS)
        collaterals = self.fetch_positions(user_address, QueryKind.COLLATERALS)
        return debts, collaterals

    def close(self):
        self.session.close()
