"""
Service layer

Pure calculation or read-only helpers, no status transitions:
- result_resolver: pick result -> elimination
- used_teams: the used-teams ledger shared by manual and automatic picks
- auto_assigner: deterministic fallback picks
- completion_service: does the pool end after a round?
- rollover / unresolved_picks: configured policies
- report_service: public per-round report
"""
