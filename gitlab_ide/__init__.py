# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Terminal view of GitLab CI pipelines for the current branch."""

__version__ = "0.3.0"
