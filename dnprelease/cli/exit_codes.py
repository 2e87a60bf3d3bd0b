# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes. These are the only exit codes dnprelease uses.

  CONFIG_ERROR      tool config file problems and invalid package descriptors
  RUNTIME_ERROR     build, timeout and upload failures (resumable by re-running)
  VALIDATION_ERROR  manifest schema or avatar problems
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
