# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Command-line entrypoint and subcommand handlers.
"""
