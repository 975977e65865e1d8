"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
XRAYLINK - Xray Cloud integration engine
Imports test cases into Xray Cloud and keeps their plan, execution, set,
precondition and folder links in sync
"""

__version__ = "0.1.0"
