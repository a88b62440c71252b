"""
Scouting Service - multi-tenant backend for competition scouting

Responsibilities:
- Identity management and token issuance
- Realm (organization) registry and sharing policy
- Crowd-sourced match observations (reports, comments)
- Report schemas
- Event/match import from The Blue Alliance
"""
