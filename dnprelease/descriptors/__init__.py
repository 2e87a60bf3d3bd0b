# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Package descriptor handling: manifest, compose file, assets and architectures.
"""
