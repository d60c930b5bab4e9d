"""Self-update pipeline for relay deployments.

Classifies the deployment (container, git checkout or archive install),
decides whether upstream has moved ahead (verdicts are cached for a short
window), and advances git checkouts in place
(stash → fetch → reset → reinstall → rebuild).
"""
