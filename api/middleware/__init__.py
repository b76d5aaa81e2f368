# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the centralized error handling of the PQRS case
tracker API.
"""
