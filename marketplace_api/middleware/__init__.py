# SPDX-License-Identifier: Apache-2.0

"""
HTTP middleware: authentication and error handling.
"""
