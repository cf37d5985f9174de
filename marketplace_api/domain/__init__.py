# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the marketplace moderation core.

Pure business rules (state machine, cooldown, capability checks), the
exception taxonomy and in-process domain events. Nothing in this package
performs I/O.
"""
