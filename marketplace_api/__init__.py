# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Business lifecycle and moderation-request workflow for the booking marketplace.
"""

__version__ = "1.0.0"
