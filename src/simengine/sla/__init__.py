"""
SLA Monitoring Module
=====================

Bounded Context for SLA breach detection.

Responsibilities:
- Mark incidents whose deadline passed, exactly once
- Bump priority one step (critical is absorbing)
- Deduct team morale when a breach raises priority
- SLA status summary and at-risk listing
- Runtime plumbing: engine config hot-reload, Slack client, scheduler
"""
