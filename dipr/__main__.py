# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

import sys

from dipr.cli import main

sys.exit(main())
