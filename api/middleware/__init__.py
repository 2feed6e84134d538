# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package maps satellite communications errors and request validation
failures to problem documents for the S.O.S satcom API.
"""
