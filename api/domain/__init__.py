# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the satellite communications fallback layer.

This package contains pure functions and error kinds with no side effects.
All domain functions are testable without the service layer.
"""
