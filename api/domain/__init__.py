# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the PQRS case tracker.

This package contains pure business logic functions with no side effects:
classification, transition rules, deadline selection and intake mapping.
"""
