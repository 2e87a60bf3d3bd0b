# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Image build orchestration: timeouts, docker invocation, per-architecture archives.
"""
