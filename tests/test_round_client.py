# tests/test_round_client.py
import unittest
import logging
import sys
import os
from unittest.mock import AsyncMock

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from spin_harvester.application.harvest.round_client import RoundClient, RoundRequest, check_response_error
from spin_harvester.domain.spin.errors import (
    AuthorizationExpired, MalformedResponse, RemoteRejected, RoundIdentityMismatch,
    RoundTooLong, TransportError
)

from spin_fixtures import ScriptedTransport, make_grant, make_response, make_round, make_bonus_round


class TestCheckResponseError(unittest.TestCase):
    """Test classification of error blocks."""

    def test_no_error(self):
        check_response_error(make_response())

    def test_expired_codes(self):
        for code in (1200, "1201"):
            with self.assertRaises(AuthorizationExpired) as ctx:
                check_response_error({"dt": None, "err": {"cd": code, "msg": None}})
            self.assertEqual(ctx.exception.code, str(code))

    def test_other_code(self):
        with self.assertRaises(RemoteRejected) as ctx:
            check_response_error({"dt": None, "err": {"cd": 3001, "msg": "Insufficient balance"}})
        self.assertNotIsInstance(ctx.exception, AuthorizationExpired)
        self.assertEqual(str(ctx.exception), "Error 3001: Insufficient balance")

    def test_empty_response(self):
        with self.assertRaises(MalformedResponse):
            check_response_error({})
        with self.assertRaises(MalformedResponse):
            check_response_error(["not", "a", "dict"])


class TestRoundClient(unittest.IsolatedAsyncioTestCase):
    """Test driving single rounds against a scripted spin service."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.grant = make_grant()

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def request(self, **kwargs):
        return RoundRequest(session_token=self.grant.token, bet_params=self.grant.bet_params, **kwargs)

    async def test_single_spin_round(self):
        transport = ScriptedTransport(make_round(spins=1))
        client = RoundClient(transport.perform_spin)

        completed = await client.run_round(self.request(chaining_id=0))

        self.assertEqual(len(completed), 1)
        self.assertEqual(len(transport.spin_calls), 1)
        self.assertEqual(transport.spin_calls[0]["chaining_id"], 0)
        self.assertEqual(transport.spin_calls[0]["token"], "token-1")

    async def test_multi_spin_round_chains_spin_ids(self):
        transport = ScriptedTransport(make_round(psid="9", first_sid=40, spins=3))
        client = RoundClient(transport.perform_spin)

        completed = await client.run_round(self.request(chaining_id=39))

        self.assertEqual([c["chaining_id"] for c in transport.spin_calls], [39, 40, 41])
        self.assertEqual(completed.parent_round_id, "9")
        self.assertEqual(completed.next_chaining_id, 42)

    async def test_bonus_selector_only_on_first_request(self):
        responses = make_bonus_round()
        transport = ScriptedTransport(responses)
        client = RoundClient(transport.perform_spin)

        completed = await client.run_round(self.request(bonus_selector="2", round_type=1))

        selectors = [c["bonus_selector"] for c in transport.spin_calls]
        self.assertEqual(selectors[0], "2")
        self.assertTrue(all(s is None for s in selectors[1:]))
        self.assertEqual(len(completed), len(responses))
        self.assertEqual(completed.round_type, 1)

    async def test_parent_round_id_mismatch(self):
        script = [make_response(st=1, nst=2, psid="A", sid=1), make_response(st=2, nst=1, psid="B", sid=2)]
        client = RoundClient(ScriptedTransport(script).perform_spin)

        with self.assertRaises(RoundIdentityMismatch) as ctx:
            await client.run_round(self.request())
        self.assertEqual(ctx.exception.expected, "A")
        self.assertEqual(ctx.exception.actual, "B")
        self.assertEqual(ctx.exception.spin_index, 1)

    async def test_expired_token_mid_round(self):
        script = [make_response(st=1, nst=2), {"dt": None, "err": {"cd": "1200", "msg": "expired"}}]
        client = RoundClient(ScriptedTransport(script).perform_spin)

        with self.assertRaises(AuthorizationExpired):
            await client.run_round(self.request())

    async def test_missing_spin_info(self):
        client = RoundClient(ScriptedTransport([{"dt": {"x": 1}, "err": None}]).perform_spin)

        with self.assertRaises(MalformedResponse) as ctx:
            await client.run_round(self.request())
        self.assertIsInstance(ctx.exception, TransportError)

    async def test_transport_error_propagates(self):
        client = RoundClient(ScriptedTransport([TransportError("HTTP 502", 502)]).perform_spin)

        with self.assertRaises(TransportError):
            await client.run_round(self.request())

    async def test_perform_spin_arguments(self):
        perform_spin = AsyncMock(side_effect=make_round(psid="3", first_sid=20))
        client = RoundClient(perform_spin)

        await client.run_round(self.request(chaining_id=5, bonus_selector="4"))

        self.assertEqual(perform_spin.await_count, 2)
        perform_spin.assert_any_await("token-1", 5, self.grant.bet_params, "4")
        perform_spin.assert_awaited_with("token-1", 20, self.grant.bet_params, None)

    async def test_round_too_long(self):
        script = [make_response(st=1, nst=4, sid=i) for i in range(5)]
        transport = ScriptedTransport(script)
        client = RoundClient(transport.perform_spin, max_spins_per_round=3)

        with self.assertRaises(RoundTooLong) as ctx:
            await client.run_round(self.request())
        self.assertEqual(ctx.exception.limit, 3)
        self.assertEqual(len(transport.spin_calls), 3)


if __name__ == "__main__":
    unittest.main()
