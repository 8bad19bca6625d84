"""Operator flows: sign, publish, sign-revoke, revoke.

Each flow is one short-lived, sequential CLI invocation. The ledger and the
attestation store are passed in so the flows can run against in-memory
doubles in tests.
"""
