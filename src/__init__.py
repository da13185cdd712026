"""Eleve family approval service.

Turns a parent's registration of children with a skate school into
student accounts (login identity, profile and student record), with
compensation when a child cannot be provisioned.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
