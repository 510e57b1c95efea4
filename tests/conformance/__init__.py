"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the reserve ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Double-entry accounting and reserve totals
2. atomicity.py - All-or-nothing action semantics
3. idempotency.py - Duplicate execution and zero-elapsed refresh
4. determinism.py - Reproducible behavior and replay
5. canonicalization.py - Content-addressable intent identity
6. monotonicity.py - Index growth and rounding in the reserve's favour

These tests use hypothesis for property-based testing.
"""
