"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the balance rules.
Any compliant Ledger MUST pass these tests.

The tests are organized by invariant in balance_invariants.py:
1. Non-negativity - No accepted intent leaves a negative field
2. Rejections - A declined intent changes nothing
3. Value conservation - Trading at a fixed price moves value, never creates it
4. Withdrawal - All-or-nothing above the minimum
5. Determinism - Identical inputs give identical outcomes

These tests use hypothesis for property-based testing.
"""
