"""Centralized constants for the relay admin service."""

# Cache keys
VERSION_CHECK_CACHE_KEY = "version_check_cache"

# Update check freshness (seconds)
CHECK_CACHE_TTL_SECONDS = 600

# How long a stale verdict is retained for the network-failure fallback
CHECK_CACHE_RETENTION_SECONDS = 86400

# Version label used when the VERSION file is missing
DEFAULT_VERSION = "1.0.0"

# Deployment probes
CONTAINER_MARKER_PATH = "/.dockerenv"
PROBE_TIMEOUT_SECONDS = 3

# External process timeouts (seconds)
GIT_TIMEOUT_SECONDS = 15
FETCH_TIMEOUT_SECONDS = 60
INSTALL_TIMEOUT_SECONDS = 300
BUILD_TIMEOUT_SECONDS = 600

# GitHub API
GITHUB_API_URL = "https://api.github.com"
GITHUB_TIMEOUT_SECONDS = 10
RECENT_CHANGES_LIMIT = 20

# Release notes are trimmed before they are sent to the admin UI
RELEASE_BODY_MAX_LENGTH = 2000

# Restart
RESTART_DELAY_SECONDS = 1.0
