"""Shared schema types."""

from datetime import time
from typing import Annotated

from pydantic import PlainSerializer

# Slot times travel as "HH:MM" strings
SlotTime = Annotated[time, PlainSerializer(lambda v: v.strftime("%H:%M"), return_type=str)]
