"""Unit tests for IPN callback signature checks (HMAC-SHA512 over key-sorted JSON)."""

import hashlib
import hmac

from vipserver.deposits import sign_ipn_payload, verify_ipn_signature

SECRET = "ipn-secret"


class TestIpnSignature:

    def test_matches_reference_digest(self):
        payload = {"payment_status": "finished", "order_id": "DEP-1", "payment_id": 7}
        canonical = '{"order_id":"DEP-1","payment_id":7,"payment_status":"finished"}'
        expected = hmac.new(SECRET.encode(), canonical.encode(), hashlib.sha512).hexdigest()
        assert sign_ipn_payload(payload, SECRET) == expected

    def test_key_order_does_not_matter(self):
        a = {"b": 1, "a": {"y": 2, "x": 3}}
        b = {"a": {"x": 3, "y": 2}, "b": 1}
        assert sign_ipn_payload(a, SECRET) == sign_ipn_payload(b, SECRET)

    def test_verify_accepts_uppercase_hex(self):
        payload = {"payment_id": 1}
        assert verify_ipn_signature(payload, sign_ipn_payload(payload, SECRET).upper(), SECRET)

    def test_tampered_payload_rejected(self):
        payload = {"payment_id": 1, "payment_status": "waiting"}
        signature = sign_ipn_payload(payload, SECRET)
        payload["payment_status"] = "finished"
        assert not verify_ipn_signature(payload, signature, SECRET)

    def test_missing_secret_or_signature_rejected(self):
        payload = {"payment_id": 1}
        assert not verify_ipn_signature(payload, sign_ipn_payload(payload, SECRET), "")
        assert not verify_ipn_signature(payload, "", SECRET)
