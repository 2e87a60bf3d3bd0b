# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
dnprelease: build, pack and upload DAppNode package releases.

A release goes through five stages:
  - descriptors are normalized (manifest, compose file, avatar)
  - the build directory is prepared
  - one image archive is built per target architecture
  - the build directory is uploaded to IPFS or Swarm
  - the resulting content address is recorded in releases.json
"""
