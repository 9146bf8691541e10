"""Allow `python -m paidmedia` to launch the assistant."""

import asyncio
import sys

from paidmedia.main import main

sys.exit(asyncio.run(main()))
