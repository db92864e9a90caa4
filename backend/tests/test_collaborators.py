"""
Tests for the outbound adapters (Pyth Hermes, Jupiter, Solana RPC).

Sessions are mocked; payload shapes follow the public API responses.
"""
from unittest.mock import Mock

import pytest
from requests.exceptions import ConnectionError, HTTPError

from ibrl.agent.units import SOL_MINT, USDC_MINT
from ibrl.core.exceptions import UpstreamUnavailable
from ibrl.services.jupiter_client import JupiterSwapRouter, summarize_route
from ibrl.services.pyth_client import CachedPriceOracle, PriceQuote, PythHermesOracle
from ibrl.services.solana_rpc import SolanaRpcClient
from tests.helpers import OWNER


def response(body):
    r = Mock()
    r.json.return_value = body
    r.raise_for_status.return_value = None
    return r


HERMES_BODY = {
    "parsed": [{
        "id": "ef0d",
        "price": {"price": "14523000000", "conf": "5000000", "expo": -8, "publish_time": 1_700_000_000},
    }]
}


class TestPythHermesOracle:
    def test_scales_by_exponent(self):
        session = Mock()
        session.get.return_value = response(HERMES_BODY)
        oracle = PythHermesOracle("https://hermes.test/", "ef0d", session=session)

        quote = oracle.get_price()

        assert quote.price == pytest.approx(145.23)
        assert quote.conf == pytest.approx(0.05)
        assert quote.publish_time == 1_700_000_000
        url = session.get.call_args.args[0]
        assert url == "https://hermes.test/v2/updates/price/latest"
        assert session.get.call_args.kwargs["params"] == {"ids[]": "ef0d", "parsed": "true"}

    def test_network_error_fails_closed(self):
        session = Mock()
        session.get.side_effect = ConnectionError("down")
        with pytest.raises(UpstreamUnavailable) as exc_info:
            PythHermesOracle("https://hermes.test", "ef0d", session=session).get_price()
        assert exc_info.value.collaborator == "price_oracle"

    @pytest.mark.parametrize("body", [
        {"parsed": []},
        {"parsed": [{"price": {"price": "0", "expo": -8}}]},
        {"parsed": [{"price": {"price": "-5", "expo": -8}}]},
        {},
    ])
    def test_malformed_or_nonpositive_fails_closed(self, body):
        session = Mock()
        session.get.return_value = response(body)
        with pytest.raises(UpstreamUnavailable):
            PythHermesOracle("https://hermes.test", "ef0d", session=session).get_price()


class TestCachedPriceOracle:
    def test_serves_cached_within_ttl(self):
        inner = Mock()
        inner.get_price.return_value = PriceQuote(price=150.0)
        clock = Mock(side_effect=[100.0, 110.0, 116.0])
        oracle = CachedPriceOracle(inner, ttl_seconds=15, clock=clock)

        oracle.get_price()
        oracle.get_price()
        assert inner.get_price.call_count == 1

        oracle.get_price()
        assert inner.get_price.call_count == 2

    def test_failures_are_not_cached(self):
        inner = Mock()
        inner.get_price.side_effect = [UpstreamUnavailable("price_oracle"), PriceQuote(price=151.0)]
        oracle = CachedPriceOracle(inner, ttl_seconds=15, clock=Mock(return_value=100.0))

        with pytest.raises(UpstreamUnavailable):
            oracle.get_price()
        assert oracle.get_price().price == 151.0


JUPITER_QUOTE = {
    "inputMint": SOL_MINT,
    "outputMint": USDC_MINT,
    "inAmount": "100000000",
    "outAmount": "14520000",
    "otherAmountThreshold": "14447400",
    "slippageBps": 50,
    "priceImpactPct": "0.0012",
    "routePlan": [
        {"swapInfo": {"label": "Orca"}},
        {"swapInfo": {"label": "Raydium"}},
        {"swapInfo": {"label": "Orca"}},
    ],
}


class TestJupiterSwapRouter:
    def test_quote_snapshot(self):
        session = Mock()
        session.get.return_value = response(JUPITER_QUOTE)
        router = JupiterSwapRouter("https://jup.test/swap/v1", session=session)

        quote = router.quote(SOL_MINT, USDC_MINT, 100_000_000, 50)

        snap = quote.snapshot
        assert (snap.in_amount, snap.out_amount, snap.min_out_amount) == (100_000_000, 14_520_000, 14_447_400)
        assert snap.price_impact_pct == "0.0012"
        assert snap.route.hop_count == 3
        assert snap.route.venues == ["Orca", "Raydium"]
        assert session.get.call_args.kwargs["params"]["amount"] == "100000000"

    def test_quote_failure_returns_none(self):
        session = Mock()
        session.get.return_value.raise_for_status.side_effect = HTTPError("400")
        router = JupiterSwapRouter("https://jup.test/swap/v1", session=session)
        assert router.quote(SOL_MINT, USDC_MINT, 1, 50) is None

    def test_build_posts_quote_and_owner(self):
        session = Mock()
        session.get.return_value = response(JUPITER_QUOTE)
        session.post.return_value = response({"swapTransaction": "AQID"})
        router = JupiterSwapRouter("https://jup.test/swap/v1", session=session)

        built = router.build(router.quote(SOL_MINT, USDC_MINT, 100_000_000, 50), OWNER)

        assert built.tx_base64 == "AQID"
        payload = session.post.call_args.kwargs["json"]
        assert payload["userPublicKey"] == OWNER
        assert payload["quoteResponse"] == JUPITER_QUOTE

    def test_build_without_transaction_returns_none(self):
        session = Mock()
        session.get.return_value = response(JUPITER_QUOTE)
        session.post.return_value = response({})
        router = JupiterSwapRouter("https://jup.test/swap/v1", session=session)
        assert router.build(router.quote(SOL_MINT, USDC_MINT, 1, 50), OWNER) is None

    def test_summarize_route_caps_venues(self):
        plan = [{"swapInfo": {"label": f"Venue{i}"}} for i in range(8)]
        summary = summarize_route(plan)
        assert summary.hop_count == 8
        assert len(summary.venues) == 6
        assert summarize_route(None) is None


class TestSolanaRpcClient:
    def test_native_balance(self):
        session = Mock()
        session.post.return_value = response({"jsonrpc": "2.0", "id": 1, "result": {"value": 2_000_000_000}})
        assert SolanaRpcClient("https://rpc.test", session=session).get_native_balance(OWNER) == 2_000_000_000
        assert session.post.call_args.kwargs["json"]["method"] == "getBalance"

    def test_token_balance_sums_accounts(self):
        def account(amount):
            return {"account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": amount, "decimals": 6}}}}}}

        session = Mock()
        session.post.return_value = response({"result": {"value": [account("1500000"), account("500000")]}})
        balance = SolanaRpcClient("https://rpc.test", session=session).get_token_balance(OWNER, USDC_MINT)

        assert balance.amount_base_units == 2_000_000
        assert balance.decimals == 6

    def test_no_token_account_is_none(self):
        session = Mock()
        session.post.return_value = response({"result": {"value": []}})
        assert SolanaRpcClient("https://rpc.test", session=session).get_token_balance(OWNER, USDC_MINT) is None

    def test_simulate_ok_and_err(self):
        session = Mock()
        session.post.side_effect = [
            response({"result": {"value": {"err": None, "logs": ["ok"], "unitsConsumed": 5000}}}),
            response({"result": {"value": {"err": {"InstructionError": [0, "Custom"]}, "logs": []}}}),
        ]
        client = SolanaRpcClient("https://rpc.test", session=session)

        ok = client.simulate("AQID")
        assert ok.ok and ok.units_consumed == 5000
        params = session.post.call_args.kwargs["json"]["params"][1]
        assert params["sigVerify"] is False
        assert params["replaceRecentBlockhash"] is True

        failed = client.simulate("AQID")
        assert not failed.ok
        assert failed.err == {"InstructionError": [0, "Custom"]}

    def test_rpc_error_raises_upstream(self):
        session = Mock()
        session.post.return_value = response({"error": {"code": -32005, "message": "Node is behind"}})
        with pytest.raises(UpstreamUnavailable) as exc_info:
            SolanaRpcClient("https://rpc.test", session=session).get_native_balance(OWNER)
        assert exc_info.value.collaborator == "solana_rpc"
        assert "Node is behind" in str(exc_info.value)
