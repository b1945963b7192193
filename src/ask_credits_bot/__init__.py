"""Chat bot core: session affinity cache and credit ledger."""
