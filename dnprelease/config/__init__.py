# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
YAML configuration loading and schema validation.
"""
