# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer.

Domains:
    family_approval: Provisioning of student accounts from family
        registrations, rejection and expiry of registrations.
"""
