# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Upload stage and its content store backends (IPFS, Swarm).
"""
