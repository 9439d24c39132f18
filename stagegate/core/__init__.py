"""Governance core: permissions, approvals and the audit ledger."""
