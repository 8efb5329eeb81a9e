import base64
import json

import pytest
import requests

from collateral.errors import InvalidResponse, RequestFailed, TransportError
from collateral.models import QueryKind, TokenAmount
from collateral.prices import ValuationContext
from collateral.valuation import sum_values
from ingest.redbank import (
    UNKNOWN_DENOM,
    RedBankClient,
    build_query_url,
    decode_positions,
    encode_query,
    parse_amount,
)

REST = "https://lcd.osmosis.zone"
CONTRACT = "osmo1redbank"
USER = "osmo1p2lnskywgtmdszw4lyka8wu3mn925365djuc24"


def make_response(status=200, body=None, raw=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = raw if raw is not None else json.dumps(body).encode()
    return resp


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def close(self):
        pass


def test_encode_query_is_compact_urlsafe_json():
    encoded = encode_query(QueryKind.DEBTS, USER)
    decoded = base64.urlsafe_b64decode(encoded).decode()
    assert decoded == '{"user_debts":{"user":"%s"}}' % USER


def test_build_query_url():
    url = build_query_url(REST + "/", CONTRACT, QueryKind.COLLATERALS, USER)
    prefix = f"{REST}/cosmwasm/wasm/v1/contract/{CONTRACT}/smart/"
    assert url.startswith(prefix)
    assert json.loads(base64.urlsafe_b64decode(url[len(prefix):])) == {"user_collaterals": {"user": USER}}


@pytest.mark.parametrize("raw,expected", [
    ("2000000", 2_000_000),
    ("+7", 7),
    ("0", 0),
    ("abc", 0),
    ("-5", 0),
    ("1.5", 0),
    (" 5", 0),
    ("", 0),
    (None, 0),
    (12, 0),
    (str(2**128), 0),
    ("000005", 5),
    ("+" + "0" * 5000 + "5", 5),
    ("0" * 5000, 0),
    ("9" * 5000, 0),
    (str(2**128 - 1), 2**128 - 1),
])
def test_parse_amount_is_lenient(raw, expected):
    assert parse_amount(raw) == expected


def test_decode_positions_keeps_order_and_defaults_bad_amounts():
    body = {"data": [
        {"amount": "2000000", "denom": "uusdc"},
        {"amount": "not-a-number", "denom": "uosmo"},
        {"denom": "uatom"},
        {"amount": "5"},
        "garbage",
    ]}
    assert decode_positions(body) == [
        TokenAmount("uusdc", 2_000_000),
        TokenAmount("uosmo", 0),
        TokenAmount("uatom", 0),
        TokenAmount(UNKNOWN_DENOM, 5),
    ]


def test_decode_positions_missing_data_is_empty():
    assert decode_positions({}) == []
    assert decode_positions({"data": None}) == []
    with pytest.raises(InvalidResponse):
        decode_positions(["not", "an", "object"])


def test_fetch_positions_success():
    session = FakeSession(make_response(body={"data": [{"amount": "4000000", "denom": "uosmo"}]}))
    client = RedBankClient(REST, CONTRACT, session=session)
    assert client.fetch_positions(USER, QueryKind.COLLATERALS) == [TokenAmount("uosmo", 4_000_000)]
    assert session.urls == [build_query_url(REST, CONTRACT, QueryKind.COLLATERALS, USER)]


def test_fetch_positions_survives_malformed_item():
    session = FakeSession(make_response(body={"data": [{"amount": "oops", "denom": "uosmo"}]}))
    client = RedBankClient(REST, CONTRACT, session=session)
    assert client.fetch_positions(USER, QueryKind.DEBTS) == [TokenAmount("uosmo", 0)]


def test_fetch_positions_non_2xx():
    client = RedBankClient(REST, CONTRACT, session=FakeSession(make_response(status=503, body={})))
    with pytest.raises(RequestFailed) as exc:
        client.fetch_positions(USER, QueryKind.DEBTS)
    assert exc.value.status == 503


def test_fetch_positions_body_not_json():
    client = RedBankClient(REST, CONTRACT, session=FakeSession(make_response(raw=b"<html>")))
    with pytest.raises(InvalidResponse):
        client.fetch_positions(USER, QueryKind.DEBTS)


def test_fetch_positions_transport_error():
    client = RedBankClient(REST, CONTRACT, session=FakeSession(requests.ConnectionError("refused")))
    with pytest.raises(TransportError):
        client.fetch_positions(USER, QueryKind.DEBTS)


def test_get_user_financials_fetches_debts_then_collaterals():
    session = FakeSession(
        make_response(body={"data": [{"amount": "2000000", "denom": "uusdc"}]}),
        make_response(body={"data": [{"amount": "4000000", "denom": "uosmo"}]}),
    )
    client = RedBankClient(REST, CONTRACT, session=session)
    debts, collaterals = client.get_user_financials(USER)
    assert debts == [TokenAmount("uusdc", 2_000_000)]
    assert collaterals == [TokenAmount("uosmo", 4_000_000)]
    assert session.urls == [
        build_query_url(REST, CONTRACT, QueryKind.DEBTS, USER),
        build_query_url(REST, CONTRACT, QueryKind.COLLATERALS, USER),
    ]


def test_get_user_financials_stops_after_failed_debts():
    session = FakeSession(make_response(status=500, body={}))
    client = RedBankClient(REST, CONTRACT, session=session)
    with pytest.raises(RequestFailed):
        client.get_user_financials(USER)
    assert len(session.urls) == 1


def test_fetch_positions_oversized_amount_only_zeroes_that_item():
    session = FakeSession(make_response(body={"data": [
        {"amount": "9" * 5000, "denom": "uosmo"},
        {"amount": "0" * 5000 + "5", "denom": "uatom"},
        {"amount": "2000000", "denom": "uusdc"},
    ]}))
    client = RedBankClient(REST, CONTRACT, session=session)
    assert client.fetch_positions(USER, QueryKind.COLLATERALS) == [
        TokenAmount("uosmo", 0),
        TokenAmount("uatom", 5),
        TokenAmount("uusdc", 2_000_000),
    ]


def test_missing_denom_still_counts_toward_totals():
    debts = decode_positions({"data": [{"amount": "1000000"}, {"amount": "1000000", "denom": "uusdc"}]})
    assert sum_values(debts, ValuationContext.default()) == 2 * 10**12


def test_get_user_financials_fails_when_collaterals_fail():
    session = FakeSession(
        make_response(body={"data": [{"amount": "2000000", "denom": "uusdc"}]}),
        make_response(status=503, body={}),
    )
    client = RedBankClient(REST, CONTRACT, session=session)
    with pytest.raises(RequestFailed) as exc:
        client.get_user_financials(USER)
    assert exc.value.status == 503
    assert len(session.urls) == 2
