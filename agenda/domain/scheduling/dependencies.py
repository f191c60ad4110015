"""Dependency providers shared by the scheduling routers"""

import random
from collections.abc import Callable
from datetime import datetime
from typing import Optional


def get_clock() -> Optional[Callable[[], datetime]]:
    """None lets each service use the tenant's business clock"""
    return None


def get_rng() -> Optional[random.Random]:
    return None
